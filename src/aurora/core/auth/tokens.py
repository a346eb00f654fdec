"""Opaque token hashing and expiry helpers."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta

TOKEN_BYTES = 32  # 256 bits of entropy


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """Generate a cryptographically secure URL-safe token."""
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    """Hash a token for storage.

    Uses SHA-256: refresh tokens are signed JWTs with a random lineage id,
    so there is nothing to brute-force and lookups must stay fast.

    Args:
        token: The plaintext token to hash.

    Returns:
        Hex-encoded SHA-256 hash of the token.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, expected_hash: str) -> bool:
    """Compare a presented token against a stored hash in constant time."""
    return hmac.compare_digest(hash_token(token), expected_hash)


def get_token_expiry(lifetime: timedelta) -> datetime:
    """Calculate an expiry timestamp ``lifetime`` from now (UTC)."""
    return datetime.now(UTC) + lifetime


def is_token_expired(expires_at: datetime) -> bool:
    """Check if a stored expiry timestamp has passed.

    Args:
        expires_at: The expiry timestamp.

    Returns:
        True if the timestamp is not in the future.
    """
    # Handle timezone-naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return datetime.now(UTC) >= expires_at
