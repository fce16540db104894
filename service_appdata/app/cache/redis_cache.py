"""
Redis cache backend.
"""

from typing import Optional

import redis.asyncio as redis

from shared.errors import AppDataException
from shared.logging import get_logger


class RedisCacheBackend:
    """Redis implementation of the CacheBackend interface."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("appdata.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Connect and verify the Redis connection."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
            await self.redis.ping()

            self.logger.info("Redis cache started")

        except Exception as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise AppDataException("REDIS_START_FAILED", str(e))

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    async def get(self, key: str) -> Optional[bytes]:
        return await self._conn().get(key)

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        await self._conn().setex(key, ttl, value)

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._conn().ping()
            return True
        except Exception:
            return False

    def _conn(self) -> redis.Redis:
        if self.redis is None:
            raise AppDataException("REDIS_NOT_STARTED", "Redis cache has not been started")
        return self.redis
