"""Organization roles and normalization of stored role labels.

Memberships written by older releases carry labels such as ``owner`` or
``member``. Every privilege decision goes through ``normalize_role`` so the
legacy and canonical vocabularies can never disagree.
"""

from enum import Enum
from typing import Any


class OrgRole(str, Enum):
    """Canonical roles, in decreasing order of privilege."""

    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    CLIENT = "client"


# Holder of this role owns the organization and cannot be demoted, removed or leave.
TOP_ROLE = OrgRole.COMPANY_ADMIN

ROLE_ALIASES: dict[str, OrgRole] = {
    "owner": OrgRole.COMPANY_ADMIN,
    "admin": OrgRole.COMPANY_ADMIN,
    "member": OrgRole.EMPLOYEE,
    "viewer": OrgRole.CLIENT,
    "guest": OrgRole.CLIENT,
    **{role.value: role for role in OrgRole},
}


def normalize_role(raw: Any) -> OrgRole | None:
    """Map a stored or submitted role label onto the canonical vocabulary.

    Args:
        raw: Anything. Only strings can match.

    Returns:
        The canonical role, or None for empty, unknown or non-string input.
        None grants no organization privilege.
    """
    if isinstance(raw, OrgRole):
        return raw
    if not isinstance(raw, str):
        return None
    return ROLE_ALIASES.get(raw.strip().lower())


def is_top_role(raw: Any) -> bool:
    """Whether a label names the organization owner role."""
    return normalize_role(raw) is TOP_ROLE
