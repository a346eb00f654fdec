"""SQLAlchemy schema declarations.

Importing this package registers every table on ``metadata``.
"""

from aurora.models.audit_log import AuditLog
from aurora.models.base import BaseModel, SoftDeleteMixin, metadata
from aurora.models.membership import Membership
from aurora.models.organization import Organization
from aurora.models.password_reset_token import PasswordResetToken
from aurora.models.session import Session
from aurora.models.user import User

__all__ = [
    "AuditLog",
    "BaseModel",
    "Membership",
    "Organization",
    "PasswordResetToken",
    "Session",
    "SoftDeleteMixin",
    "User",
    "metadata",
]
