"""JWT token creation and validation.

Access and refresh tokens are signed with two distinct secrets and carry fixed
issuer/audience claims so tokens minted by any other signer, or of the other
kind, never validate.
"""

import os
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import ValidationError as PydanticValidationError

from aurora.core.auth.types import AccessClaims, RefreshClaims, User

ALGORITHM = "HS256"
ISSUER = "aurora-ops"
AUDIENCE = "aurora-ops-api"

DEFAULT_ACCESS_TTL = timedelta(minutes=15)
DEFAULT_REFRESH_TTL = timedelta(days=7)

_DURATION_RE = re.compile(r"^(\d+)([smhd])$", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


class TokenError(Exception):
    """Raised when token validation fails."""

    pass


class TokenExpiredError(TokenError):
    """Token signature is valid but it has expired."""

    pass


class TokenInvalidError(TokenError):
    """Token is malformed, badly signed, or scoped to another issuer/audience."""

    pass


def parse_duration(value: str | None, fallback: timedelta) -> timedelta:
    """Parse a duration such as ``15m`` or ``7d``.

    Args:
        value: Duration string with an s/m/h/d suffix.
        fallback: Returned when value is empty or malformed.

    Returns:
        The parsed duration.
    """
    if not value:
        return fallback
    match = _DURATION_RE.match(value.strip())
    if not match:
        return fallback
    amount = int(match.group(1))
    return timedelta(seconds=amount * _UNIT_SECONDS[match.group(2).lower()])


@dataclass(frozen=True)
class JwtConfig:
    """Signing configuration for both token kinds."""

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta = DEFAULT_ACCESS_TTL
    refresh_ttl: timedelta = DEFAULT_REFRESH_TTL
    issuer: str = ISSUER
    audience: str = AUDIENCE

    def __post_init__(self) -> None:
        """Reject configurations where one secret could verify both kinds."""
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("JWT secrets must not be empty")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh tokens must use distinct secrets")

    @classmethod
    def from_env(cls) -> "JwtConfig":
        """Load configuration from environment variables."""
        return cls(
            access_secret=os.getenv("JWT_SECRET", "dev-access-secret-change-in-production"),
            refresh_secret=os.getenv(
                "JWT_REFRESH_SECRET", "dev-refresh-secret-change-in-production"
            ),
            access_ttl=parse_duration(os.getenv("JWT_EXPIRES_IN"), DEFAULT_ACCESS_TTL),
            refresh_ttl=parse_duration(os.getenv("JWT_REFRESH_EXPIRES_IN"), DEFAULT_REFRESH_TTL),
        )


@dataclass(frozen=True)
class IssuedRefreshToken:
    """A freshly minted refresh token and its lineage id."""

    token: str
    token_id: str
    expires_at: datetime = field(compare=False)


class TokenIssuer:
    """Mints and verifies access and refresh tokens."""

    def __init__(self, config: JwtConfig) -> None:
        """Initialize with signing configuration.

        Args:
            config: Secrets, lifetimes and scoping claims.
        """
        self._config = config

    @property
    def refresh_ttl(self) -> timedelta:
        """Refresh token lifetime, also used for session and cache expiry."""
        return self._config.refresh_ttl

    def issue_access(self, user: User) -> str:
        """Create a short-lived access token.

        Args:
            user: Identity the token is issued to.

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "iat": int(now.timestamp()),
            "exp": int((now + self._config.access_ttl).timestamp()),
        }
        return jwt.encode(payload, self._config.access_secret, algorithm=ALGORITHM)

    def issue_refresh(self, user: User) -> IssuedRefreshToken:
        """Create a long-lived refresh token with a new lineage id.

        Args:
            user: Identity the token is issued to.

        Returns:
            The encoded token together with its lineage id and expiry.
        """
        now = datetime.now(timezone.utc)
        expires_at = now + self._config.refresh_ttl
        token_id = str(uuid.uuid4())
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "token_id": token_id,
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._config.refresh_secret, algorithm=ALGORITHM)
        return IssuedRefreshToken(token=token, token_id=token_id, expires_at=expires_at)

    def verify_access(self, token: str) -> AccessClaims:
        """Decode and validate an access token.

        Raises:
            TokenExpiredError: If the token has expired.
            TokenInvalidError: If the token is otherwise invalid.
        """
        payload = self._decode(token, self._config.access_secret, kind="access")
        try:
            return AccessClaims.model_validate(payload)
        except PydanticValidationError:
            raise TokenInvalidError("Invalid access token: missing claims") from None

    def verify_refresh(self, token: str) -> RefreshClaims:
        """Decode and validate a refresh token, including its lineage id.

        Raises:
            TokenExpiredError: If the token has expired.
            TokenInvalidError: If the token is otherwise invalid.
        """
        payload = self._decode(token, self._config.refresh_secret, kind="refresh")
        try:
            return RefreshClaims.model_validate(payload)
        except PydanticValidationError:
            raise TokenInvalidError("Invalid refresh token: missing claims") from None

    def _decode(self, token: str, secret: str, kind: str) -> dict[str, object]:
        try:
            payload: dict[str, object] = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                issuer=self._config.issuer,
                audience=self._config.audience,
                options={"require": ["exp", "iat", "sub", "iss", "aud"]},
            )
            return payload
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError(f"{kind.capitalize()} token expired") from None
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid {kind} token: {e}") from None
