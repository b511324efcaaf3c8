"""
Service container.

Everything the caching layer needs is built once here and passed by
reference: one store facade shared by the cache and the rate limiter.
"""

from dataclasses import dataclass
from typing import Any

from adcache.caching.stale_while_revalidate import StaleWhileRevalidateCache
from adcache.core.config.settings import Settings, get_settings
from adcache.core.logging.logger import get_logger
from adcache.infrastructure.cache.key_codec import KeyCodec
from adcache.infrastructure.cache.local_store import LocalStore
from adcache.infrastructure.cache.redis_store import RedisStore
from adcache.infrastructure.cache.resilient_store import ResilientStore
from adcache.rate_limiting.rate_limiter import RateLimiter

logger = get_logger(__name__)


@dataclass
class CacheServices:
    settings: Settings
    codec: KeyCodec
    store: ResilientStore
    cache: StaleWhileRevalidateCache
    rate_limiter: RateLimiter

    async def start(self, monitor: bool = True) -> None:
        await self.store.start()
        if monitor:
            self.store.start_health_monitor()

    async def close(self) -> None:
        await self.cache.drain()
        await self.store.close()

    async def health_check(self) -> dict[str, Any]:
        return {
            "store": await self.store.health_check(),
            "cache": self.cache.stats(),
            "rate_limiting_enabled": self.rate_limiter.enabled,
        }


def build_services(settings: Settings | None = None) -> CacheServices:
    """
    Wire the store facade, the cache and the rate limiter.

    No REDIS_URL means local-only mode for the life of the process.
    """
    settings = settings or get_settings()

    local = LocalStore(max_entries=settings.CACHE_LOCAL_MAX_ENTRIES)
    distributed = RedisStore(settings.REDIS_URL, settings=settings) if settings.REDIS_URL else None
    store = ResilientStore(local, distributed, settings=settings)
    codec = KeyCodec(version=settings.CACHE_KEY_VERSION)

    logger.info(
        "Cache services built",
        distributed_configured=distributed is not None,
        key_version=codec.version,
    )

    return CacheServices(
        settings=settings,
        codec=codec,
        store=store,
        cache=StaleWhileRevalidateCache(store, settings=settings),
        rate_limiter=RateLimiter(store, settings=settings, codec=codec),
    )
