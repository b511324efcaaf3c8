"""
Unit Tests for LocalStore

TTL expiry, LRU bound, prefix deletion and the fixed-window counter.
"""

import asyncio

import pytest

from adcache.core.interfaces.store import Store
from adcache.infrastructure.cache.local_store import LocalStore


@pytest.mark.unit
class TestLocalStoreBasics:
    def test_implements_store_protocol(self, local_store):
        assert isinstance(local_store, Store)

    async def test_set_get_delete(self, local_store):
        assert await local_store.set_with_ttl("k", "v", 10) is True
        assert await local_store.get("k") == "v"

        assert await local_store.delete("k") is True
        assert await local_store.get("k") is None
        assert await local_store.delete("k") is False

    async def test_value_expires_after_ttl(self, local_store, clock):
        await local_store.set_with_ttl("k", "v", 10)

        clock.advance(9.9)
        assert await local_store.get("k") == "v"

        clock.advance(0.1)
        assert await local_store.get("k") is None

    async def test_non_positive_ttl_is_not_written(self, local_store):
        assert await local_store.set_with_ttl("k", "v", 0) is False
        assert await local_store.get("k") is None

    async def test_lru_eviction(self, clock):
        store = LocalStore(max_entries=2, clock=clock)
        await store.set_with_ttl("a", "1", 60)
        await store.set_with_ttl("b", "2", 60)
        await store.get("a")
        await store.set_with_ttl("c", "3", 60)

        assert await store.get("a") == "1"
        assert await store.get("b") is None
        assert store.size == 2

    async def test_counters_survive_cache_churn(self, clock):
        store = LocalStore(max_entries=3, clock=clock)
        await store.atomic_increment_with_expiry("ratelimit:v1:user%3A1:default", 60)
        await store.atomic_increment_with_expiry("ratelimit:v1:user%3A1:default", 60)

        for i in range(10):
            await store.set_with_ttl(f"entry:{i}", "x", 60)

        count, _ = await store.atomic_increment_with_expiry("ratelimit:v1:user%3A1:default", 60)
        assert count == 3
        assert store.size == 3
        assert await store.get("entry:9") == "x"

    async def test_expired_entries_evicted_before_live_ones(self, clock):
        store = LocalStore(max_entries=2, clock=clock)
        await store.set_with_ttl("short", "1", 1)
        await store.set_with_ttl("long", "2", 60)
        clock.advance(2)
        await store.set_with_ttl("new", "3", 60)

        assert await store.get("long") == "2"
        assert await store.get("new") == "3"

    async def test_purge_expired(self, local_store, clock):
        await local_store.set_with_ttl("a", "1", 1)
        await local_store.set_with_ttl("b", "2", 60)
        clock.advance(5)

        assert await local_store.purge_expired() == 1
        assert local_store.size == 1


@pytest.mark.unit
class TestLocalStorePrefixDelete:
    async def test_delete_by_prefix(self, local_store):
        await local_store.set_with_ttl("ns:v1:client42:a", "1", 60)
        await local_store.set_with_ttl("ns:v1:client42:b", "2", 60)
        await local_store.set_with_ttl("ns:v1:client420:a", "3", 60)

        assert await local_store.delete_by_prefix("ns:v1:client42:") == 2
        assert await local_store.get("ns:v1:client420:a") == "3"

    async def test_prefix_is_literal(self, local_store):
        await local_store.set_with_ttl("ns*:a", "1", 60)
        await local_store.set_with_ttl("nsx:a", "2", 60)

        assert await local_store.delete_by_prefix("ns*") == 1
        assert await local_store.get("nsx:a") == "2"


@pytest.mark.unit
class TestLocalStoreCounter:
    async def test_window_counts_and_resets(self, local_store, clock):
        start = clock()

        assert await local_store.atomic_increment_with_expiry("rl", 1) == (1, start + 1)
        assert await local_store.atomic_increment_with_expiry("rl", 1) == (2, start + 1)

        clock.advance(1)
        count, reset_at = await local_store.atomic_increment_with_expiry("rl", 1)
        assert count == 1
        assert reset_at == start + 2

    async def test_counter_reads_back_as_string(self, local_store):
        await local_store.atomic_increment_with_expiry("rl", 60)
        await local_store.atomic_increment_with_expiry("rl", 60)

        assert await local_store.get("rl") == "2"

    async def test_concurrent_increments_are_not_lost(self, local_store):
        results = await asyncio.gather(
            *(local_store.atomic_increment_with_expiry("rl", 60) for _ in range(50))
        )

        assert sorted(count for count, _ in results) == list(range(1, 51))

    async def test_increment_over_plain_value_starts_new_window(self, local_store):
        await local_store.set_with_ttl("k", "text", 60)

        count, _ = await local_store.atomic_increment_with_expiry("k", 60)
        assert count == 1

    async def test_health_check(self, local_store):
        health = await local_store.health_check()

        assert health["status"] == "healthy"
        assert health["type"] == "local"
        assert health["max_entries"] == 100
