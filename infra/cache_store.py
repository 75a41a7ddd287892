"""Key/value cache store with per-key TTL.

Values are JSON-encoded. RedisCacheStore is used in production; the
in-memory store backs tests and single-process local runs.
"""

import fnmatch
import json
import time
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import redis.asyncio as aioredis
from loguru import logger


@runtime_checkable
class ICacheStore(Protocol):
    """Interface for cache stores."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    async def scan_keys(self, pattern: str) -> list[str]:
        ...

    async def delete(self, *keys: str) -> int:
        ...

    async def close(self) -> None:
        ...


class RedisCacheStore:
    """Redis-backed store (SETEX / GET / SCAN MATCH / DEL)."""

    def __init__(self, redis_url: str, redis: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url
        self._redis = redis

    async def _conn(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(self.redis_url, decode_responses=True)
            logger.debug(f"Connected to cache at {self.redis_url.split('@')[-1]}")
        return self._redis

    async def get(self, key: str) -> Optional[Any]:
        r = await self._conn()
        raw = await r.get(key)
        return json.loads(raw) if raw is not None else None

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        r = await self._conn()
        await r.setex(key, ttl_seconds, json.dumps(value, default=str))

    async def scan_keys(self, pattern: str) -> list[str]:
        r = await self._conn()
        return [k async for k in r.scan_iter(match=pattern, count=500)]

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        r = await self._conn()
        return await r.delete(*keys)

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class MemoryCacheStore:
    """In-process store. Expiry uses a monotonic clock (injectable for tests)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    def _alive(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        if self._clock() >= entry[1]:
            del self._data[key]
            return False
        return True

    async def get(self, key: str) -> Optional[Any]:
        if not self._alive(key):
            return None
        return json.loads(self._data[key][0])

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._data[key] = (json.dumps(value, default=str), self._clock() + ttl_seconds)

    async def scan_keys(self, pattern: str) -> list[str]:
        return [k for k in list(self._data) if self._alive(k) and fnmatch.fnmatchcase(k, pattern)]

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                del self._data[key]
                removed += 1
        return removed

    async def close(self):
        self._data.clear()


def create_cache_store(redis_url: Optional[str]) -> ICacheStore:
    """Redis when a URL is configured, otherwise in-memory."""
    if redis_url:
        return RedisCacheStore(redis_url)
    logger.info("REDIS_URL not set, using in-memory contact cache")
    return MemoryCacheStore()
