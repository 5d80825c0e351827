"""Tests for the key/value store backends."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from core.exceptions import StoreError
from database.kv_store import InMemoryKeyValueStore, RedisKeyValueStore


class TestInMemoryStore:
    async def test_set_get_delete(self, store):
        await store.set("k", "v")
        assert await store.get("k") == "v"
        assert await store.delete("k") is True
        assert await store.get("k") is None
        assert await store.delete("k") is False

    async def test_ttl_expiry(self, store, clock):
        await store.set("k", "v", ttl=10)
        clock.advance(9)
        assert await store.get("k") == "v"
        clock.advance(1)
        assert await store.get("k") is None

    async def test_keep_ttl_preserves_expiry(self, store, clock):
        await store.set("k", "1", ttl=10)
        clock.advance(5)
        await store.set("k", "2", keep_ttl=True)
        assert await store.get("k") == "2"
        clock.advance(5)
        assert await store.get("k") is None

    async def test_scan_by_prefix_with_limit(self, store):
        for i in range(5):
            await store.set(f"a:{i}", "x")
        await store.set("b:1", "x")

        assert sorted(await store.scan("a:")) == [f"a:{i}" for i in range(5)]
        assert len(await store.scan("a:", limit=2)) == 2

    async def test_scan_unsupported_returns_nothing(self):
        store = InMemoryKeyValueStore(supports_scan=False)
        await store.set("a:1", "x")
        assert await store.scan("a:") == []

    async def test_clear(self, store):
        await store.set("a", "1")
        await store.set("b", "2")
        assert await store.clear() == 2
        assert len(store) == 0


class TestRedisStore:
    async def test_keys_are_namespaced(self):
        client = AsyncMock()
        store = RedisKeyValueStore(client, namespace="ns")

        await store.set("k", "v", ttl=30)

        client.setex.assert_awaited_once_with("ns:k", 30, "v")

    async def test_keep_ttl_uses_keepttl(self):
        client = AsyncMock()
        store = RedisKeyValueStore(client, namespace="ns")

        await store.set("k", "2", keep_ttl=True)

        client.set.assert_awaited_once_with("ns:k", "2", keepttl=True)

    async def test_scan_strips_namespace(self):
        client = AsyncMock()
        client.scan.side_effect = [(5, ["ns:a:1"]), (0, ["ns:a:2"])]
        store = RedisKeyValueStore(client, namespace="ns")

        assert await store.scan("a:") == ["a:1", "a:2"]

    async def test_redis_errors_become_store_errors(self):
        client = AsyncMock()
        client.get.side_effect = RedisConnectionError("refused")
        store = RedisKeyValueStore(client)

        with pytest.raises(StoreError):
            await store.get("k")
