"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from adcache.caching.stale_while_revalidate import StaleWhileRevalidateCache  # noqa: E402
from adcache.infrastructure.cache.local_store import LocalStore  # noqa: E402
from adcache.infrastructure.cache.resilient_store import ResilientStore  # noqa: E402
from adcache.rate_limiting.rate_limiter import RateLimiter  # noqa: E402
from tests.test_fixtures import FakeClock, FlakyDistributedStore, StoreTestFactory  # noqa: E402

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings with a single reconnect attempt and no Redis URL."""
    return StoreTestFactory.settings()


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def local_store(clock):
    return LocalStore(max_entries=100, clock=clock)


@pytest.fixture
def flaky_store(clock):
    return FlakyDistributedStore(clock)


@pytest.fixture
async def resilient_store(local_store, flaky_store, test_settings, clock):
    """Facade over a working fake distributed store, already started."""
    store = ResilientStore(local_store, flaky_store, settings=test_settings, clock=clock)
    await store.start()
    yield store
    await store.close()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
async def swr_cache(resilient_store, test_settings, clock):
    cache = StaleWhileRevalidateCache(resilient_store, settings=test_settings, clock=clock)
    yield cache
    await cache.drain()


@pytest.fixture
def rate_limiter(resilient_store, test_settings, clock):
    return RateLimiter(resilient_store, settings=test_settings, clock=clock)
