"""
Resilient Store Facade

Architecture:
    ResilientStore (Store protocol)
        ├── DistributedStore (Redis, optional)
        ├── LocalStore (always available)
        └── Reconnect / health monitor tasks

Routing:
    healthy   → distributed; on CacheBackendUnavailableError mark unhealthy
                and serve the same call from LocalStore
    unhealthy → LocalStore, and schedule a background reconnect

Callers never wait on a reconnect and never see a backend error. With no
distributed store configured the facade runs on LocalStore permanently.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from adcache.core.config.constants import Stage, StoreMode
from adcache.core.config.settings import Settings, get_settings
from adcache.core.exceptions import CacheBackendUnavailableError
from adcache.core.interfaces.store import DistributedStore, StoredValue
from adcache.core.logging.logger import get_logger, log_stage
from adcache.infrastructure.cache.local_store import LocalStore

logger = get_logger(__name__)

RECONNECT_BASE_DELAY = 0.1


def _log_reconnect_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Redis reconnect attempt failed, retrying",
        stage=Stage.STORE_RECONNECT.value,
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class ResilientStore:
    """
    Store facade with automatic fallback to the in-process store.

    Constructed once at startup and injected into the cache and the rate
    limiter. The `healthy` flag is internal state of this object.

    Usage:
        store = ResilientStore(LocalStore(), RedisStore(url))
        await store.start()
        await store.set_with_ttl("k", "v", 60)
        ...
        await store.close()
    """

    def __init__(
        self,
        local: LocalStore,
        distributed: DistributedStore | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._local = local
        self._distributed = distributed
        self._settings = settings or get_settings()
        self._clock = clock

        self._healthy = False
        self._last_reconnect_at: float | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._monitor_task: asyncio.Task | None = None

        self._fallback_count = 0
        self._reconnect_count = 0

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def healthy(self) -> bool:
        return self._healthy

    @property
    def mode(self) -> StoreMode:
        return StoreMode.DISTRIBUTED if self._healthy else StoreMode.LOCAL

    @property
    def has_distributed(self) -> bool:
        return self._distributed is not None

    @property
    def local(self) -> LocalStore:
        return self._local

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Attempt the first distributed connection. Never raises.

        STAGE-S.0: Store startup
        """
        if self._distributed is None:
            log_stage(
                logger,
                Stage.INITIALIZATION,
                "No distributed store configured, running on local store",
                mode=StoreMode.LOCAL.value,
            )
            return

        try:
            await self._distributed.connect()
        except CacheBackendUnavailableError as e:
            self._mark_unhealthy("connect", e)
            return

        self._healthy = True
        log_stage(logger, Stage.INITIALIZATION, "Store facade started", mode=StoreMode.DISTRIBUTED.value)

    async def close(self) -> None:
        """Cancel background tasks and disconnect the distributed store."""
        for task in (self._monitor_task, self._reconnect_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._monitor_task = None
        self._reconnect_task = None

        if self._distributed is not None:
            await self._distributed.disconnect()
        self._healthy = False

        log_stage(logger, Stage.CLEANUP, "Store facade closed")

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def _mark_unhealthy(self, operation: str, exc: BaseException) -> None:
        was_healthy = self._healthy
        self._healthy = False
        self._fallback_count += 1
        if self._last_reconnect_at is None:
            self._last_reconnect_at = self._clock()

        if was_healthy or operation == "connect":
            log_stage(
                logger,
                Stage.STORE_FALLBACK,
                "Distributed store unavailable, falling back to local store",
                level="warning",
                operation=operation,
                error=str(exc),
            )

    async def _call(self, operation: str, *args: Any) -> Any:
        if self._distributed is not None:
            if self._healthy:
                try:
                    return await getattr(self._distributed, operation)(*args)
                except CacheBackendUnavailableError as e:
                    self._mark_unhealthy(operation, e)
            else:
                self._schedule_reconnect()

        return await getattr(self._local, operation)(*args)

    # -------------------------------------------------------------------------
    # Store protocol
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> StoredValue | None:
        return await self._call("get", key)

    async def set_with_ttl(self, key: str, value: StoredValue, ttl_seconds: float) -> bool:
        return await self._call("set_with_ttl", key, value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        return await self._call("delete", key)

    async def delete_by_prefix(self, prefix: str) -> int:
        return await self._call("delete_by_prefix", prefix)

    async def atomic_increment_with_expiry(
        self, key: str, window_seconds: float
    ) -> tuple[int, float]:
        return await self._call("atomic_increment_with_expiry", key, window_seconds)

    # -------------------------------------------------------------------------
    # Reconnect
    # -------------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return

        now = self._clock()
        interval = self._settings.REDIS_RECONNECT_INTERVAL
        if self._last_reconnect_at is not None and now - self._last_reconnect_at < interval:
            return

        self._last_reconnect_at = now
        self._reconnect_task = asyncio.create_task(self.reconnect_now())

    async def reconnect_now(self) -> bool:
        """
        Try to bring the distributed store back.

        STAGE-S.2: Reconnect with jittered exponential backoff

        Returns:
            True if the distributed store is healthy afterwards
        """
        if self._distributed is None:
            return False
        if self._healthy:
            return True

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.REDIS_RECONNECT_ATTEMPTS),
                wait=wait_exponential(
                    multiplier=RECONNECT_BASE_DELAY,
                    max=self._settings.REDIS_RECONNECT_INTERVAL,
                )
                + wait_random(0, RECONNECT_BASE_DELAY),
                retry=retry_if_exception_type(CacheBackendUnavailableError),
                before_sleep=_log_reconnect_retry,
                reraise=True,
            ):
                with attempt:
                    await self._distributed.connect()
        except CacheBackendUnavailableError as e:
            self._last_reconnect_at = self._clock()
            log_stage(
                logger,
                Stage.STORE_RECONNECT,
                "Redis reconnect failed, staying on local store",
                level="warning",
                error=str(e),
            )
            return False

        self._healthy = True
        self._reconnect_count += 1
        log_stage(logger, Stage.STORE_RECONNECT, "Redis reconnected, routing to distributed store")
        return True

    async def wait_reconnect(self) -> None:
        """Wait for a scheduled background reconnect, if any."""
        task = self._reconnect_task
        if task is not None:
            await asyncio.shield(task)

    # -------------------------------------------------------------------------
    # Health monitoring
    # -------------------------------------------------------------------------

    def start_health_monitor(self) -> None:
        """Ping the distributed store every REDIS_HEALTH_CHECK_INTERVAL seconds."""
        if self._distributed is None:
            return
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(self._monitor_loop())

    async def _monitor_loop(self) -> None:
        interval = self._settings.REDIS_HEALTH_CHECK_INTERVAL
        while True:
            await asyncio.sleep(interval)
            await self.probe()

    async def probe(self) -> bool:
        """
        One health-monitor tick: ping when healthy, reconnect when not.

        STAGE-S.3: Store health
        """
        if self._distributed is None:
            return False

        if self._healthy:
            if await self._distributed.ping():
                return True
            self._mark_unhealthy(
                "ping", CacheBackendUnavailableError("Redis did not answer PING")
            )
            return False

        return await self.reconnect_now()

    async def health_check(self) -> dict[str, Any]:
        """
        Returns:
            Dict with mode, healthy flag and backend health
        """
        health: dict[str, Any] = {
            "status": "healthy" if self._healthy or self._distributed is None else "degraded",
            "mode": self.mode.value,
            "healthy": self._healthy,
            "distributed_configured": self._distributed is not None,
            "fallback_count": self._fallback_count,
            "reconnect_count": self._reconnect_count,
            "local": await self._local.health_check(),
        }
        if self._distributed is not None:
            health["distributed"] = await self._distributed.health_check()
        return health
