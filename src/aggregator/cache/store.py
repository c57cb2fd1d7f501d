"""Key-value store backends.

``RedisStore`` is the production backend; ``InMemoryStore`` serves
single-process deployments without Redis. Both raise CacheError on
backend failure; CacheService turns those into misses.
"""

import asyncio
import fnmatch
import time
from abc import ABC, abstractmethod

import redis.asyncio as redis
from redis.exceptions import RedisError

from aggregator.exceptions import CacheError
from aggregator.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Byte-valued store with per-key TTL."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...

    @abstractmethod
    async def keys(self, pattern: str) -> list[str]:
        """Return keys matching a glob-style pattern."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def purge_expired(self) -> int:
        """Drop expired entries the backend does not expire on its own."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class RedisStore(KeyValueStore):
    """Redis backend using redis-py's asyncio client.

    Redis expires keys itself, so ``purge_expired`` is a no-op.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url))

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            raise CacheError(f"redis ping failed: {e}") from e

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise CacheError(f"redis get failed: {e}") from e

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        try:
            await self._client.setex(key, ttl, value)
        except RedisError as e:
            raise CacheError(f"redis set failed: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._client.delete(*keys))
        except RedisError as e:
            raise CacheError(f"redis delete failed: {e}") from e

    async def keys(self, pattern: str) -> list[str]:
        try:
            found = [key async for key in self._client.scan_iter(match=pattern)]
        except RedisError as e:
            raise CacheError(f"redis scan failed: {e}") from e
        return [key.decode() if isinstance(key, bytes) else key for key in found]

    async def exists(self, key: str) -> bool:
        try:
            return await self._client.exists(key) == 1
        except RedisError as e:
            raise CacheError(f"redis exists failed: {e}") from e

    async def purge_expired(self) -> int:
        return 0

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("redis_store_closed")


class InMemoryStore(KeyValueStore):
    """Process-local store. Entries expire lazily on read and on purge."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry[1] <= time.monotonic():
                del self._entries[key]
                return None
            return entry[0]

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        async with self._lock:
            self._entries[key] = (value, time.monotonic() + ttl)

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            return sum(1 for key in keys if self._entries.pop(key, None) is not None)

    async def keys(self, pattern: str) -> list[str]:
        now = time.monotonic()
        async with self._lock:
            return [
                key
                for key, (_, expires_at) in self._entries.items()
                if expires_at > now and fnmatch.fnmatchcase(key, pattern)
            ]

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def purge_expired(self) -> int:
        now = time.monotonic()
        async with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
