"""Permission checker: (identity, organization, action) -> allow/deny."""

from collections.abc import Sequence
from uuid import UUID

import structlog

from aurora.core.auth.repository import AuthRepository
from aurora.core.auth.types import AuthContext
from aurora.core.rbac.permissions import Permission, permissions_for_role, resolve_action
from aurora.core.rbac.roles import normalize_role

logger = structlog.get_logger()

Action = str | Permission


class PermissionChecker:
    """Decides whether an identity may perform an action in an organization.

    Membership is read on every call. Nothing is cached, so role changes and
    removals take effect on the very next request.
    """

    def __init__(self, repo: AuthRepository) -> None:
        """Initialize with auth repository.

        Args:
            repo: Repository used to look up memberships.
        """
        self._repo = repo

    async def has_permission(
        self,
        identity: AuthContext,
        org_id: UUID,
        action: Action | Sequence[Action] | None = None,
        *,
        require_all: bool = False,
    ) -> bool:
        """Evaluate a permission request.

        Args:
            identity: The authenticated caller.
            org_id: Organization the action targets.
            action: One action, several actions, or None for plain membership.
                An empty sequence also means plain membership.
            require_all: Require every resolved token instead of any one.

        Returns:
            True if allowed.
        """
        if identity.is_super_admin:
            return True

        membership = await self._repo.get_membership(identity.user_id, org_id)
        if membership is None or not membership.is_active:
            return False

        if action is None:
            actions: list[Action] = []
        elif isinstance(action, str):
            actions = [action]
        else:
            actions = list(action)
        if not actions:
            return True

        role = normalize_role(membership.role)
        if role is None:
            logger.warning(
                "unknown_membership_role",
                user_id=str(identity.user_id),
                org_id=str(org_id),
                role=membership.role,
            )
            return False

        granted = permissions_for_role(role)
        required = [token for a in actions for token in resolve_action(a)]
        if require_all:
            return all(token in granted for token in required)
        return any(token in granted for token in required)

    async def permissions_for(self, identity: AuthContext, org_id: UUID) -> list[str]:
        """List the permission tokens the identity holds in an organization."""
        if identity.is_super_admin:
            return sorted(p.value for p in Permission)
        membership = await self._repo.get_membership(identity.user_id, org_id)
        if membership is None or not membership.is_active:
            return []
        return sorted(permissions_for_role(normalize_role(membership.role)))
