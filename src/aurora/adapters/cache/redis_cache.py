"""Redis-backed revocation cache."""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from aurora.adapters.cache.base import refresh_key

logger = structlog.get_logger()

VALID_MARKER = "valid"


class RedisRevocationCache:
    """Stores ``refresh:{user_id}:{token_id} -> "valid"`` with the refresh TTL.

    Every Redis failure is logged and swallowed. Reads report None on failure
    so the session store stays authoritative.
    """

    DEFAULT_OPERATION_TIMEOUT = 5.0

    def __init__(
        self,
        redis_url: str,
        *,
        socket_timeout: float = DEFAULT_OPERATION_TIMEOUT,
        client: aioredis.Redis | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            redis_url: Redis connection URL.
            socket_timeout: Per-operation and connect timeout in seconds.
            client: Pre-built client, mainly for tests.
        """
        self.redis_url = redis_url
        self._socket_timeout = socket_timeout
        self.client: aioredis.Redis | None = client

    async def connect(self) -> None:
        """Create the client and check connectivity."""
        if self.client is None:
            self.client = aioredis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
        try:
            await self.client.ping()
            logger.info("revocation_cache_connected", url=self.redis_url.split("@")[-1])
        except (RedisError, OSError) as e:
            logger.warning("revocation_cache_unavailable", error=str(e))

    async def close(self) -> None:
        """Close the client."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("revocation_cache_disconnected")

    async def mark_valid(self, user_id: UUID, token_id: str, ttl_seconds: int) -> None:
        if self.client is None:
            return
        try:
            await self.client.set(
                refresh_key(user_id, token_id), VALID_MARKER, ex=max(1, ttl_seconds)
            )
        except (RedisError, OSError) as e:
            logger.warning(
                "revocation_cache_write_failed",
                user_id=str(user_id),
                token_id=token_id,
                error=str(e),
            )

    async def is_valid(self, user_id: UUID, token_id: str) -> bool | None:
        if self.client is None:
            return None
        try:
            value = await self.client.get(refresh_key(user_id, token_id))
        except (RedisError, OSError) as e:
            logger.warning(
                "revocation_cache_read_failed",
                user_id=str(user_id),
                token_id=token_id,
                error=str(e),
            )
            return None
        return value == VALID_MARKER

    async def revoke(self, user_id: UUID, token_id: str) -> None:
        if self.client is None:
            return
        try:
            await self.client.delete(refresh_key(user_id, token_id))
        except (RedisError, OSError) as e:
            logger.warning(
                "revocation_cache_delete_failed",
                user_id=str(user_id),
                token_id=token_id,
                error=str(e),
            )

    async def revoke_all(self, user_id: UUID) -> None:
        """Delete every lineage key of a user."""
        if self.client is None:
            return
        try:
            keys = [key async for key in self.client.scan_iter(match=f"refresh:{user_id}:*")]
            if keys:
                await self.client.delete(*keys)
        except (RedisError, OSError) as e:
            logger.warning(
                "revocation_cache_delete_failed", user_id=str(user_id), error=str(e)
            )
