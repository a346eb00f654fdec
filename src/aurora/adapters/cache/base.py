"""Revocation cache protocol and the no-op implementation."""

from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class RevocationCache(Protocol):
    """Advisory fast-path record of which refresh-token lineages are valid.

    The cache is never the source of truth. ``is_valid`` answers True, False,
    or None for "unknown", and implementations must not raise: storage
    failures are logged and reported as unknown so callers fail open to the
    session store.
    """

    async def connect(self) -> None:
        """Open connections."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...

    async def mark_valid(self, user_id: UUID, token_id: str, ttl_seconds: int) -> None:
        """Record a lineage as valid for ``ttl_seconds``."""
        ...

    async def is_valid(self, user_id: UUID, token_id: str) -> bool | None:
        """Whether a lineage is recorded as valid, or None if unknown."""
        ...

    async def revoke(self, user_id: UUID, token_id: str) -> None:
        """Forget one lineage."""
        ...

    async def revoke_all(self, user_id: UUID) -> None:
        """Forget every lineage of a user."""
        ...


def refresh_key(user_id: UUID, token_id: str) -> str:
    """Cache key for a refresh-token lineage."""
    return f"refresh:{user_id}:{token_id}"


class NullRevocationCache:
    """Cache used when no Redis is configured. Knows nothing."""

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def mark_valid(self, user_id: UUID, token_id: str, ttl_seconds: int) -> None:
        return None

    async def is_valid(self, user_id: UUID, token_id: str) -> bool | None:
        return None

    async def revoke(self, user_id: UUID, token_id: str) -> None:
        return None

    async def revoke_all(self, user_id: UUID) -> None:
        return None
