"""Application services."""

from aurora.services.membership import MembershipService, generate_slug
from aurora.services.tenant import TenantResolver

__all__ = ["MembershipService", "TenantResolver", "generate_slug"]
