"""RBAC core domain."""

from aurora.core.rbac.checker import PermissionChecker
from aurora.core.rbac.permissions import (
    PERMISSION_ALIASES,
    ROLE_PERMISSIONS,
    Permission,
    permissions_for_role,
    resolve_action,
)
from aurora.core.rbac.roles import ROLE_ALIASES, TOP_ROLE, OrgRole, is_top_role, normalize_role

__all__ = [
    "PERMISSION_ALIASES",
    "ROLE_ALIASES",
    "ROLE_PERMISSIONS",
    "TOP_ROLE",
    "OrgRole",
    "Permission",
    "PermissionChecker",
    "is_top_role",
    "normalize_role",
    "permissions_for_role",
    "resolve_action",
]
