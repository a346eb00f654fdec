"""Domain-specific exceptions.

All exceptions raised by the aurora core inherit from AuroraError. Each
subclass carries the HTTP status code and a short machine-readable code so a
single top-level handler can translate any of them into a response without
knowing where it was raised.
"""

from __future__ import annotations


class AuroraError(Exception):
    """Base exception for all aurora errors.

    Attributes:
        message: User-safe description of the failure.
        status_code: HTTP status the error maps to.
        code: Stable machine-readable error code.
    """

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: User-safe description. Falls back to the class default.
        """
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(AuroraError):
    """Credential is missing, malformed, expired or revoked.

    Messages never reveal whether an account exists, is deactivated, or
    simply had the wrong password.
    """

    status_code = 401
    code = "unauthorized"
    default_message = "Authentication failed"


class AuthorizationError(AuroraError):
    """Identity is valid but lacks the rights for the requested operation."""

    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class NoOrganizationError(AuthorizationError):
    """Identity has no organization to operate against."""

    code = "no_organization"
    default_message = "No active organization found. Please create or join an organization."


class ValidationError(AuroraError):
    """Input is malformed."""

    status_code = 400
    code = "bad_request"
    default_message = "Invalid request"


class NotFoundError(AuroraError):
    """Entity does not exist within a scope the requester may see."""

    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(AuroraError):
    """A uniqueness constraint was violated."""

    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"
