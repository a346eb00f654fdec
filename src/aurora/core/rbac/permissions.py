"""Permission tokens, action aliases and the role grant table."""

from enum import Enum

from aurora.core.rbac.roles import OrgRole


class Permission(str, Enum):
    """Atomic ``resource:verb`` permission tokens."""

    ORGANIZATION_READ = "organization:read"
    ORGANIZATION_WRITE = "organization:write"
    ORGANIZATION_DELETE = "organization:delete"

    MEMBER_READ = "member:read"
    MEMBER_INVITE = "member:invite"
    MEMBER_REMOVE = "member:remove"
    MEMBER_UPDATE_ROLE = "member:update_role"

    PROJECT_READ = "project:read"
    PROJECT_WRITE = "project:write"
    PROJECT_DELETE = "project:delete"
    PROJECT_ASSIGN = "project:assign"

    TASK_READ = "task:read"
    TASK_WRITE = "task:write"
    TASK_DELETE = "task:delete"
    TASK_ASSIGN = "task:assign"


# super_admin is deliberately absent: it confers nothing inside an organization.
ROLE_PERMISSIONS: dict[OrgRole, frozenset[str]] = {
    OrgRole.COMPANY_ADMIN: frozenset(p.value for p in Permission),
    OrgRole.MANAGER: frozenset(
        {
            Permission.ORGANIZATION_READ.value,
            Permission.MEMBER_READ.value,
            Permission.PROJECT_READ.value,
            Permission.PROJECT_WRITE.value,
            Permission.PROJECT_ASSIGN.value,
            Permission.TASK_READ.value,
            Permission.TASK_WRITE.value,
            Permission.TASK_ASSIGN.value,
        }
    ),
    OrgRole.EMPLOYEE: frozenset(
        {
            Permission.ORGANIZATION_READ.value,
            Permission.MEMBER_READ.value,
            Permission.PROJECT_READ.value,
            Permission.TASK_READ.value,
            Permission.TASK_WRITE.value,
        }
    ),
    OrgRole.CLIENT: frozenset(
        {
            Permission.ORGANIZATION_READ.value,
            Permission.MEMBER_READ.value,
            Permission.PROJECT_READ.value,
            Permission.TASK_READ.value,
        }
    ),
}

PERMISSION_ALIASES: dict[str, tuple[str, ...]] = {
    "create_project": (Permission.PROJECT_WRITE.value,),
    "update_project": (Permission.PROJECT_WRITE.value,),
    "delete_project": (Permission.PROJECT_DELETE.value,),
    "assign_project": (Permission.PROJECT_ASSIGN.value,),
    "create_task": (Permission.TASK_WRITE.value,),
    "update_task": (Permission.TASK_WRITE.value,),
    "delete_task": (Permission.TASK_DELETE.value,),
    "assign_task": (Permission.TASK_ASSIGN.value,),
    "update_organization": (Permission.ORGANIZATION_WRITE.value,),
    "delete_organization": (Permission.ORGANIZATION_DELETE.value,),
    "manage_members": (
        Permission.MEMBER_INVITE.value,
        Permission.MEMBER_REMOVE.value,
        Permission.MEMBER_UPDATE_ROLE.value,
    ),
    "invite_member": (Permission.MEMBER_INVITE.value,),
    "view_members": (Permission.MEMBER_READ.value,),
}


def resolve_action(action: str | Permission) -> tuple[str, ...]:
    """Expand an action label into permission tokens.

    Labels that are not aliases are treated as tokens themselves.
    """
    label = action.value if isinstance(action, Permission) else action
    return PERMISSION_ALIASES.get(label, (label,))


def permissions_for_role(role: OrgRole | None) -> frozenset[str]:
    """Tokens granted to a canonical role."""
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())
