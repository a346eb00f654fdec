"""Request authentication, tenant binding and authorization dependencies."""

from aurora.entrypoints.api.middleware.jwt_auth import (
    AuthContext,
    optional_jwt,
    require_permission,
    require_tenant,
    verify_jwt,
)

__all__ = [
    "AuthContext",
    "optional_jwt",
    "require_permission",
    "require_tenant",
    "verify_jwt",
]
