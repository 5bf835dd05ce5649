"""
Redis cache management.
Provides connection pooling and helper functions for caching operations.
"""
import json
import logging
from typing import Any, Optional
from redis import asyncio as aioredis
from trave_social.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis cache manager with connection pooling."""

    def __init__(self):
        """Initialize Redis connection pool."""
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if not settings.redis_url:
            logger.info("No Redis URL provided - running without Redis cache")
            self.redis = None
            return

        try:
            self.redis = aioredis.from_url(
                settings.redis_url,
                password=settings.redis_password if settings.redis_password else None,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.warning(f"Could not connect to Redis, running without cache: {e}")
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        if not self.redis:
            return None

        value = await self.redis.get(key)
        if value:
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set value in cache with optional TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds

        Returns:
            True if successful
        """
        if not self.redis:
            return False

        if isinstance(value, (dict, list)):
            value = json.dumps(value)

        if ttl:
            return await self.redis.setex(key, ttl, value)
        return await self.redis.set(key, value)

    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Args:
            key: Cache key

        Returns:
            True if key was deleted
        """
        if not self.redis:
            return False

        return bool(await self.redis.delete(key))


# Global cache instance
cache = RedisCache()


# Identity mapping helpers (identifier variant -> canonical user id)
async def cache_identity(identifier: str, identity: dict) -> bool:
    """Cache the resolved identity for one identifier variant."""
    key = f"identity:{identifier}"
    try:
        return await cache.set(key, identity, ttl=settings.cache_identity_ttl)
    except Exception as e:
        logger.warning(f"Failed to cache identity for {identifier}: {e}")
        return False


async def get_cached_identity(identifier: str) -> Optional[dict]:
    """Get the cached identity for an identifier variant."""
    key = f"identity:{identifier}"
    try:
        return await cache.get(key)
    except Exception as e:
        logger.warning(f"Failed to read identity cache for {identifier}: {e}")
        return None


async def invalidate_identity_cache(*identifiers: str) -> None:
    """Drop cached identities for the given identifier variants."""
    for identifier in identifiers:
        if not identifier:
            continue
        try:
            await cache.delete(f"identity:{identifier}")
        except Exception as e:
            logger.warning(f"Failed to invalidate identity cache for {identifier}: {e}")
