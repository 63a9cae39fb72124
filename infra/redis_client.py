"""
Redis client and cache helpers.

Purpose:
- Cache reverse-geocoded addresses for bus positions
- Distributed per-bus lock so several API instances serialize location updates
- Degrade gracefully: every helper returns a neutral value when Redis is down

Usage:
- await redis_client.cache_address(lat, lng, address, ttl=600)
- await redis_client.get_address(lat, lng)
- redis_client.lock("journey-lock:b1", timeout=15)

Production notes:
- Key TTLs: geocode 10min; locks expire on their own if a holder dies
"""
import logging
from typing import Optional
import redis.asyncio as redis
from config.settings import settings

logger = logging.getLogger(__name__)


def address_key(lat: float, lng: float) -> str:
    # ~11m grid: neighbouring updates of a parked bus share one lookup
    return f"geocode:{lat:.4f}:{lng:.4f}"


class RedisClient:
    """Async Redis client wrapper."""

    def __init__(self, url: str):
        self.url = url
        self.redis: Optional[redis.Redis] = None

    def _client(self) -> Optional[redis.Redis]:
        """Lazily create the client; None when Redis is switched off or misconfigured."""
        if not settings.USE_REDIS:
            return None
        if self.redis is None:
            try:
                self.redis = redis.Redis.from_url(self.url, encoding="utf-8", decode_responses=True)
                logger.info("Redis client created for %s", self.url)
            except Exception as e:
                logger.error("Failed to create Redis client: %s", e)
                self.redis = None
        return self.redis

    async def disconnect(self):
        """Close Redis connection pool."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[str]:
        client = self._client()
        if not client:
            return None
        try:
            return await client.get(key)
        except Exception as e:
            logger.error("Redis GET error for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """Set key-value with TTL (seconds)."""
        client = self._client()
        if not client:
            return False
        try:
            await client.setex(key, ttl, value)
            return True
        except Exception as e:
            logger.error("Redis SETEX error for %s: %s", key, e)
            return False

    async def cache_address(self, lat: float, lng: float, address: str, ttl: int = 600) -> bool:
        return await self.set(address_key(lat, lng), address, ttl=ttl)

    async def get_address(self, lat: float, lng: float) -> Optional[str]:
        return await self.get(address_key(lat, lng))

    def lock(self, name: str, timeout: float, blocking_timeout: float | None = None):
        """
        Return a redis-py asyncio Lock, or None when Redis is not in use.

        The lock auto-expires after `timeout` seconds so a crashed holder
        cannot wedge a bus forever.
        """
        client = self._client()
        if not client:
            return None
        return client.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)

# Global Redis client instance
redis_client = RedisClient(settings.REDIS_URL)
