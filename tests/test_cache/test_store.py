"""Tests for the key-value store backends."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from aggregator.cache.store import InMemoryStore, RedisStore
from aggregator.exceptions import CacheError


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_set_get(self, store: InMemoryStore) -> None:
        await store.set("k", b"v", ttl=30)
        assert await store.get("k") == b"v"
        assert await store.exists("k")

    @pytest.mark.asyncio
    async def test_missing_key(self, store: InMemoryStore) -> None:
        assert await store.get("nope") is None
        assert not await store.exists("nope")

    @pytest.mark.asyncio
    async def test_expired_entries_are_misses(self, store: InMemoryStore) -> None:
        await store.set("k", b"v", ttl=0)
        assert await store.get("k") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_delete_counts_existing(self, store: InMemoryStore) -> None:
        await store.set("a", b"1", ttl=30)
        await store.set("b", b"2", ttl=30)
        assert await store.delete("a", "b", "c") == 2
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_keys_glob(self, store: InMemoryStore) -> None:
        await store.set("ns:tokens:1", b"", ttl=30)
        await store.set("ns:search:1", b"", ttl=30)
        await store.set("other:tokens", b"", ttl=30)

        assert sorted(await store.keys("ns:*")) == ["ns:search:1", "ns:tokens:1"]

    @pytest.mark.asyncio
    async def test_purge_expired(self, store: InMemoryStore) -> None:
        await store.set("short", b"", ttl=0)
        await store.set("long", b"", ttl=500)
        assert await store.purge_expired() == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_close_clears(self, store: InMemoryStore) -> None:
        await store.set("k", b"v", ttl=30)
        await store.close()
        assert len(store) == 0


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_set_uses_setex(self) -> None:
        client = MagicMock()
        client.setex = AsyncMock()
        store = RedisStore(client)

        await store.set("k", b"v", ttl=30)

        client.setex.assert_awaited_once_with("k", 30, b"v")

    @pytest.mark.asyncio
    async def test_keys_decodes_scan_results(self) -> None:
        async def scan_iter(match: str):
            for key in (b"ns:a", b"ns:b"):
                yield key

        client = MagicMock()
        client.scan_iter = scan_iter
        store = RedisStore(client)

        assert await store.keys("ns:*") == ["ns:a", "ns:b"]

    @pytest.mark.asyncio
    async def test_delete_nothing_skips_round_trip(self) -> None:
        client = MagicMock()
        client.delete = AsyncMock()
        store = RedisStore(client)

        assert await store.delete() == 0
        client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_errors_become_cache_errors(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        store = RedisStore(client)

        with pytest.raises(CacheError, match="redis get failed"):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_purge_is_noop(self) -> None:
        assert await RedisStore(MagicMock()).purge_expired() == 0
