"""
Store Test Factory

Controllable clock, a distributed store that can be broken mid-test, and
counting upstream fetch functions.
"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from adcache.core.config.settings import Settings
from adcache.core.exceptions import CacheBackendUnavailableError
from adcache.infrastructure.cache.local_store import LocalStore


class FakeClock:
    """Manually advanced clock, callable like time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyDistributedStore:
    """
    Distributed store double backed by a LocalStore.

    Set `broken = True` to make every call raise CacheBackendUnavailableError,
    the way RedisStore does when the server goes away.
    """

    def __init__(self, clock: FakeClock | None = None):
        self.backend = LocalStore(clock=clock) if clock else LocalStore()
        self.broken = False
        self.connect_calls = 0
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.broken:
            raise CacheBackendUnavailableError(f"Redis {operation} failed: connection refused")

    async def connect(self) -> None:
        self.connect_calls += 1
        self._check("connect")

    async def disconnect(self) -> None:
        return None

    async def ping(self) -> bool:
        return not self.broken

    async def health_check(self) -> dict[str, Any]:
        return {"status": "unhealthy" if self.broken else "healthy", "type": "fake"}

    async def get(self, key):
        self._check("get")
        return await self.backend.get(key)

    async def set_with_ttl(self, key, value, ttl_seconds):
        self._check("set_with_ttl")
        return await self.backend.set_with_ttl(key, value, ttl_seconds)

    async def delete(self, key):
        self._check("delete")
        return await self.backend.delete(key)

    async def delete_by_prefix(self, prefix):
        self._check("delete_by_prefix")
        return await self.backend.delete_by_prefix(prefix)

    async def atomic_increment_with_expiry(self, key, window_seconds):
        self._check("atomic_increment_with_expiry")
        return await self.backend.atomic_increment_with_expiry(key, window_seconds)


class CountingFetch:
    """
    Upstream fetch double.

    Counts invocations; optionally waits on an event so tests can hold a
    fetch in flight, and optionally fails.
    """

    def __init__(self, value: Any = "value", error: Exception | None = None, gate: asyncio.Event | None = None):
        self.value = value
        self.error = error
        self.gate = gate
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.value


class StoreTestFactory:
    """Factory for store-related test objects."""

    @staticmethod
    def settings(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "REDIS_URL": None,
            "REDIS_RECONNECT_ATTEMPTS": 1,
            "REDIS_RECONNECT_INTERVAL": 5.0,
            "CACHE_FETCH_TIMEOUT": 5.0,
            "ENVIRONMENT": "test",
        }
        values.update(overrides)
        return Settings(**values)

    @staticmethod
    def mock_redis_client() -> MagicMock:
        """redis.asyncio.Redis double with a registered increment script."""
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.set = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        client.ping = AsyncMock(return_value=True)
        client.script = AsyncMock(return_value=[1, 60000])
        client.register_script = MagicMock(return_value=client.script)
        return client
