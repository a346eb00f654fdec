"""Refresh-token revocation cache adapters."""

from aurora.adapters.cache.base import NullRevocationCache, RevocationCache, refresh_key
from aurora.adapters.cache.redis_cache import RedisRevocationCache


def build_revocation_cache(redis_url: str | None) -> RevocationCache:
    """Pick the Redis cache when a URL is configured, else the no-op cache."""
    if redis_url:
        return RedisRevocationCache(redis_url)
    return NullRevocationCache()


__all__ = [
    "NullRevocationCache",
    "RedisRevocationCache",
    "RevocationCache",
    "build_revocation_cache",
    "refresh_key",
]
