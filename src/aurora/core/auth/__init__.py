"""Auth domain types and utilities."""

from aurora.core.auth.jwt import (
    JwtConfig,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenIssuer,
)
from aurora.core.auth.password import hash_password, verify_password
from aurora.core.auth.repository import AuthRepository
from aurora.core.auth.types import (
    AuthContext,
    DeviceInfo,
    Membership,
    MembershipStatus,
    Organization,
    Session,
    TokenPair,
    User,
)

__all__ = [
    "AuthContext",
    "AuthRepository",
    "DeviceInfo",
    "JwtConfig",
    "Membership",
    "MembershipStatus",
    "Organization",
    "Session",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "TokenIssuer",
    "TokenPair",
    "User",
    "hash_password",
    "verify_password",
]
