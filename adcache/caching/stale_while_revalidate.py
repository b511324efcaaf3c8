"""
Stale-While-Revalidate Cache

Architecture:
    StaleWhileRevalidateCache (Public API)
        ├── Store (normally the ResilientStore facade)
        ├── In-flight map: key → asyncio.Task (single-flight per process)
        └── Stats counters

Read path:
    FRESH   → return value, no fetch
    STALE   → return value now, start one background refresh per key
    EXPIRED → join the in-flight fetch for the key, or lead a new one
    MISSING → same as EXPIRED

Failure policy:
    - Miss-path fetch failure reaches every joined caller as the same
      FetchFailureError; nothing is written (no negative caching)
    - Background refresh failure is logged; the stale entry stays until its
      stale_ttl runs out
    - Store failures degrade to a miss, they never reach the caller
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from adcache.caching.entry import CacheEntry, decode_entry, encode_entry
from adcache.core.config.constants import Freshness, Stage
from adcache.core.config.settings import Settings, get_settings
from adcache.core.exceptions import (
    CacheBackendUnavailableError,
    CacheSerializationError,
    ConfigurationError,
    FetchFailureError,
    InvalidInputError,
    UpstreamTimeoutError,
)
from adcache.core.interfaces.store import Store
from adcache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

FetchFn = Callable[[], Awaitable[Any] | Any]


@dataclass(frozen=True)
class CachedResult:
    """
    Outcome of a cache read.

    is_stale: value is past its fresh_ttl (but within stale_ttl)
    revalidating: a background refresh for the key is running
    """

    value: Any
    is_stale: bool
    revalidating: bool = False


class StaleWhileRevalidateCache:
    """
    Cache-read orchestrator with single-flight upstream fetches.

    Usage:
        cache = StaleWhileRevalidateCache(store)

        result = await cache.fetch(
            codec.build_key("meta:campaigns", user_id, {"accounts": ids}),
            lambda: client.list_campaigns(ids),
            fresh_ttl=300,
            stale_ttl=3600,
        )
        if result.is_stale:
            ...
    """

    def __init__(
        self,
        store: Store,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

        self._in_flight: dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

        self._stats = {
            "fresh_hits": 0,
            "stale_hits": 0,
            "misses": 0,
            "joined": 0,
            "fetches": 0,
            "fetch_failures": 0,
            "refreshes": 0,
            "refresh_failures": 0,
            "decode_failures": 0,
            "bypassed": 0,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    async def fetch(
        self,
        key: str,
        fetch_fn: FetchFn,
        fresh_ttl: float | None = None,
        stale_ttl: float | None = None,
        timeout: float | None = None,
        force_refresh: bool = False,
    ) -> CachedResult:
        """
        Read key through the cache.

        Args:
            key: Cache key (see KeyCodec)
            fetch_fn: Zero-argument upstream call, async or plain
            fresh_ttl: Seconds the value is served without refresh
            stale_ttl: Seconds the value may be served at all
            timeout: Upstream timeout in seconds
            force_refresh: Drop the stored entry before reading

        Raises:
            FetchFailureError: The upstream call failed on the miss path
            UpstreamTimeoutError: The upstream call timed out on the miss path
        """
        fresh_ttl = self._settings.CACHE_FRESH_TTL if fresh_ttl is None else fresh_ttl
        stale_ttl = self._settings.CACHE_STALE_TTL if stale_ttl is None else stale_ttl
        timeout = self._settings.CACHE_FETCH_TIMEOUT if timeout is None else timeout

        try:
            self._validate(key, fresh_ttl, stale_ttl)
        except InvalidInputError as e:
            # Bad input is a miss that is never cached
            self._stats["bypassed"] += 1
            logger.warning("Invalid cache input, bypassing cache", error=e.message, **e.details)
            value = await self._invoke(key, fetch_fn, timeout)
            return CachedResult(value=value, is_stale=False)

        if force_refresh:
            await self.invalidate(key)

        entry = await self._read(key)
        if entry is not None:
            state = entry.freshness(self._clock())

            if state is Freshness.FRESH:
                self._stats["fresh_hits"] += 1
                log_stage(logger, Stage.CACHE_FRESH_HIT, "Cache hit", level="debug", cache_key=key)
                return CachedResult(value=entry.value, is_stale=False)

            if state is Freshness.STALE:
                self._stats["stale_hits"] += 1
                log_stage(
                    logger,
                    Stage.CACHE_STALE_HIT,
                    "Serving stale entry",
                    level="debug",
                    cache_key=key,
                    age=round(entry.age(self._clock()), 3),
                )
                await self._start_refresh(key, fetch_fn, fresh_ttl, stale_ttl, timeout)
                return CachedResult(value=entry.value, is_stale=True, revalidating=True)

        self._stats["misses"] += 1
        log_stage(logger, Stage.CACHE_MISS, "Cache miss", level="debug", cache_key=key)
        value = await self._fetch_or_join(key, fetch_fn, fresh_ttl, stale_ttl, timeout)
        return CachedResult(value=value, is_stale=False)

    async def fetch_preset(
        self,
        resource_type: str,
        key: str,
        fetch_fn: FetchFn,
        timeout: float | None = None,
        force_refresh: bool = False,
    ) -> CachedResult:
        """
        Read key with the TTL pair configured for an upstream resource type
        (accounts, campaigns, adsets, ads, insights, page_names).

        Raises:
            ConfigurationError: If no TTL preset exists for resource_type
        """
        preset = self._settings.CACHE_TTL_PRESETS.get(resource_type)
        if preset is None:
            raise ConfigurationError(
                f"Unknown cache TTL preset: {resource_type}",
                details={"available": sorted(self._settings.CACHE_TTL_PRESETS)},
            )
        return await self.fetch(
            key,
            fetch_fn,
            fresh_ttl=preset.fresh_ttl,
            stale_ttl=preset.stale_ttl,
            timeout=timeout,
            force_refresh=force_refresh,
        )

    async def get_or_set(
        self,
        key: str,
        fetch_fn: FetchFn,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Plain read-through: no stale window, value only."""
        ttl = self._settings.CACHE_FRESH_TTL if ttl is None else ttl
        result = await self.fetch(key, fetch_fn, fresh_ttl=ttl, stale_ttl=ttl, timeout=timeout)
        return result.value

    async def invalidate(self, key: str) -> bool:
        deleted = await self._store.delete(key)
        log_stage(logger, Stage.CACHE_INVALIDATION, "Cache entry invalidated", cache_key=key, deleted=deleted)
        return deleted

    async def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry under prefix, e.g. KeyCodec.build_prefix(ns, client)."""
        deleted = await self._store.delete_by_prefix(prefix)
        log_stage(logger, Stage.CACHE_INVALIDATION, "Cache prefix invalidated", prefix=prefix, deleted=deleted)
        return deleted

    def stats(self) -> dict[str, Any]:
        return {**self._stats, "in_flight": len(self._in_flight)}

    async def drain(self) -> None:
        """Wait for every in-flight fetch and refresh to settle."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    # =========================================================================
    # Store access
    # =========================================================================

    @staticmethod
    def _validate(key: str, fresh_ttl: float, stale_ttl: float) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidInputError("Cache key must be a non-empty string", details={"cache_key": key})
        if fresh_ttl <= 0 or stale_ttl <= 0:
            raise InvalidInputError(
                "TTLs must be positive", details={"fresh_ttl": fresh_ttl, "stale_ttl": stale_ttl}
            )
        if fresh_ttl > stale_ttl:
            raise InvalidInputError(
                "fresh_ttl must not exceed stale_ttl",
                details={"fresh_ttl": fresh_ttl, "stale_ttl": stale_ttl},
            )

    async def _read(self, key: str) -> CacheEntry | None:
        try:
            raw = await self._store.get(key)
        except CacheBackendUnavailableError as e:
            logger.warning("Cache read failed, treating as miss", cache_key=key, error=e.message)
            return None

        if raw is None:
            return None

        try:
            return decode_entry(key, raw)
        except CacheSerializationError as e:
            self._stats["decode_failures"] += 1
            logger.warning("Undecodable cache entry, deleting", cache_key=key, error=e.message)
            try:
                await self._store.delete(key)
            except CacheBackendUnavailableError as delete_error:
                logger.warning("Could not delete undecodable entry", cache_key=key, error=delete_error.message)
            return None

    async def _write(self, key: str, value: Any, fresh_ttl: float, stale_ttl: float) -> bool:
        entry = CacheEntry(key, value, self._clock(), fresh_ttl, stale_ttl)
        try:
            raw = encode_entry(entry)
        except CacheSerializationError as e:
            logger.warning("Value not cacheable, returning uncached", cache_key=key, error=e.message)
            return False

        try:
            return await self._store.set_with_ttl(key, raw, stale_ttl)
        except CacheBackendUnavailableError as e:
            logger.warning("Cache write failed", cache_key=key, error=e.message)
            return False

    # =========================================================================
    # Upstream fetch
    # =========================================================================

    async def _invoke(self, key: str, fetch_fn: FetchFn, timeout: float | None) -> Any:
        """
        Call fetch_fn with a timeout.

        Raises:
            UpstreamTimeoutError: On timeout
            FetchFailureError: On any other upstream exception (chained)
        """
        start = time.perf_counter()
        try:
            result = fetch_fn()
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(
                f"Upstream fetch timed out after {timeout}s",
                details={"cache_key": key, "timeout": timeout},
            ) from e
        except FetchFailureError:
            raise
        except Exception as e:
            raise FetchFailureError.from_exception(
                e, message=f"Upstream fetch failed: {e}", cache_key=key
            ) from e

        log_stage(
            logger,
            Stage.UPSTREAM_FETCH,
            "Upstream fetch completed",
            cache_key=key,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    async def _fetch_or_join(
        self, key: str, fetch_fn: FetchFn, fresh_ttl: float, stale_ttl: float, timeout: float | None
    ) -> Any:
        async with self._lock:
            task = self._in_flight.get(key)
            if task is None:
                task = asyncio.create_task(
                    self._run(key, fetch_fn, fresh_ttl, stale_ttl, timeout, recheck=True)
                )
                task.add_done_callback(partial(self._reap, key, False))
                self._in_flight[key] = task
            else:
                self._stats["joined"] += 1
                log_stage(logger, Stage.CACHE_MISS, "Joining in-flight fetch", level="debug", cache_key=key)

        # Cancelling one caller must not cancel the fetch others are waiting on
        return await asyncio.shield(task)

    async def _start_refresh(
        self, key: str, fetch_fn: FetchFn, fresh_ttl: float, stale_ttl: float, timeout: float | None
    ) -> None:
        async with self._lock:
            if key in self._in_flight:
                return
            task = asyncio.create_task(
                self._run(key, fetch_fn, fresh_ttl, stale_ttl, timeout, recheck=False)
            )
            task.add_done_callback(partial(self._reap, key, True))
            self._in_flight[key] = task
            self._stats["refreshes"] += 1

        log_stage(logger, Stage.BACKGROUND_REFRESH, "Background refresh started", level="debug", cache_key=key)

    async def _run(
        self,
        key: str,
        fetch_fn: FetchFn,
        fresh_ttl: float,
        stale_ttl: float,
        timeout: float | None,
        recheck: bool,
    ) -> Any:
        try:
            if recheck:
                # Another leader may have stored the value between our read and
                # our registration
                entry = await self._read(key)
                if entry is not None and entry.freshness(self._clock()) is Freshness.FRESH:
                    return entry.value

            self._stats["fetches"] += 1
            value = await self._invoke(key, fetch_fn, timeout)
            await self._write(key, value, fresh_ttl, stale_ttl)
            return value
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    def _reap(self, key: str, background: bool, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return

        if background:
            self._stats["refresh_failures"] += 1
            log_stage(
                logger,
                Stage.BACKGROUND_REFRESH,
                "Background refresh failed, keeping stale entry",
                level="warning",
                cache_key=key,
                error=str(exc),
            )
        else:
            self._stats["fetch_failures"] += 1
            log_stage(
                logger, Stage.UPSTREAM_FETCH, "Upstream fetch failed", level="warning", cache_key=key, error=str(exc)
            )
