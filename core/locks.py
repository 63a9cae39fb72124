"""
Per-bus serialization of location updates.

A location update is read-evaluate-write on the journey's notification list,
so two updates for the same bus must not interleave. Every update holds the
bus's in-process asyncio.Lock; with USE_REDIS=true it also holds a Redis lock
so API instances behind a load balancer serialize too.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from config.settings import settings
from infra.redis_client import redis_client

logger = logging.getLogger(__name__)


def lock_key(bus_id: str) -> str:
    return bus_id.strip().lower()


class BusLocks:
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}  # holders + waiters per key

    def __len__(self):
        return len(self._locks)

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _release(self, key: str):
        remaining = self._users.get(key, 0) - 1
        if remaining > 0:
            self._users[key] = remaining
            return
        # last user gone: forget the key so unknown identifiers leave nothing behind
        self._users.pop(key, None)
        self._locks.pop(key, None)

    @asynccontextmanager
    async def hold(self, bus_id: str) -> AsyncIterator[None]:
        key = lock_key(bus_id)
        local = self._checkout(key)
        try:
            async with local:
                async with self._remote(key):
                    yield
        finally:
            self._release(key)

    @asynccontextmanager
    async def _remote(self, key: str) -> AsyncIterator[None]:
        remote = redis_client.lock(
            f"journey-lock:{key}",
            timeout=settings.BUS_LOCK_TIMEOUT_SEC,
            blocking_timeout=settings.BUS_LOCK_TIMEOUT_SEC,
        )
        acquired = False
        if remote is not None:
            try:
                acquired = await remote.acquire()
                if not acquired:
                    logger.warning("Redis lock for bus %s not acquired within %ss", key, settings.BUS_LOCK_TIMEOUT_SEC)
            except Exception as e:
                logger.warning("Redis lock for bus %s unavailable (%s); using process lock only", key, e)
        try:
            yield
        finally:
            if acquired:
                try:
                    await remote.release()
                except Exception as e:
                    # Lock expired or Redis went away; the TTL cleans up either way
                    logger.warning("Redis lock release for bus %s failed: %s", key, e)

    def reset(self):
        self._locks.clear()
        self._users.clear()

# singleton
bus_locks = BusLocks()
