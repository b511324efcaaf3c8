"""
Rate Limiter

Fixed-window request quotas per client key, counted in the shared store.

Algorithm:
1. Build the counter key: ratelimit:<version>:<client_key>:<scope>
2. Store.atomic_increment_with_expiry(key, window) → (count, reset_at)
3. allowed = count <= limit, remaining = max(0, limit - count)

A client can burst up to 2×limit across a window boundary; callers that need
smoother limiting use a smaller window.

Degradation: the limiter fails open. Invalid input and store errors produce
an allowed result with the full quota remaining.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from adcache.core.config.constants import DEFAULT_RATE_LIMIT_SCOPE, REDIS_KEY_RATE_LIMIT, Stage
from adcache.core.config.settings import Settings, get_settings
from adcache.core.exceptions import CacheError, ConfigurationError, InvalidInputError
from adcache.core.interfaces.store import Store
from adcache.core.logging.logger import get_logger, log_stage
from adcache.infrastructure.cache.key_codec import KeyCodec

logger = get_logger(__name__)


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_duration(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds

    @property
    def reset_at_iso(self) -> str:
        """Window reset as ISO-8601 UTC, e.g. 2025-01-01T12:00:00.000Z."""
        moment = datetime.fromtimestamp(self.reset_at, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def retry_after_seconds(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        return max(0, math.ceil(self.reset_at - now))


class RateLimiter:
    """
    Fixed-window rate limiter over a Store.

    Usage:
        limiter = RateLimiter(store)

        result = await limiter.check("user:42", limit=100, window_seconds=60)
        if not result.allowed:
            ...

        result = await limiter.check_preset("ip:10.0.0.1", "auth")
    """

    def __init__(
        self,
        store: Store,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
        codec: KeyCodec | None = None,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock
        self._codec = codec or KeyCodec(version=self._settings.CACHE_KEY_VERSION)

    @property
    def enabled(self) -> bool:
        return self._settings.RATE_LIMIT_ENABLED

    def build_key(self, client_key: str, scope: str = DEFAULT_RATE_LIMIT_SCOPE) -> str:
        return self._codec.build_key(REDIS_KEY_RATE_LIMIT, client_key, scope)

    def _open(self, limit: int, window_seconds: float) -> RateLimitResult:
        limit = max(0, limit) if _is_count(limit) else 0
        window_seconds = max(0.0, window_seconds) if _is_duration(window_seconds) else 0.0
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=limit,
            reset_at=self._clock() + window_seconds,
        )

    async def check(
        self,
        client_key: str,
        limit: int,
        window_seconds: float,
        scope: str = DEFAULT_RATE_LIMIT_SCOPE,
    ) -> RateLimitResult:
        """
        Count one request for client_key and decide whether it is allowed.

        STAGE-3: Rate limiting

        Never raises: invalid input and store failures fail open.
        """
        if not self.enabled:
            return self._open(limit, window_seconds)

        try:
            if not isinstance(client_key, str) or not client_key:
                raise InvalidInputError("Rate limit client key must be a non-empty string")
            if not _is_count(limit) or not _is_duration(window_seconds):
                raise InvalidInputError(
                    "Rate limit must be an integer and window a finite number",
                    details={"limit": repr(limit), "window_seconds": repr(window_seconds)},
                )
            if limit <= 0 or window_seconds <= 0:
                raise InvalidInputError(
                    "Rate limit and window must be positive",
                    details={"limit": limit, "window_seconds": window_seconds},
                )
        except InvalidInputError as e:
            logger.warning("Invalid rate limit input, failing open", error=e.message, client_key=client_key)
            return self._open(limit, window_seconds)

        key = self.build_key(client_key, scope)
        try:
            count, reset_at = await self._store.atomic_increment_with_expiry(key, window_seconds)
        except CacheError as e:
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit store failed, failing open",
                level="error",
                client_key=client_key,
                error=e.message,
            )
            return self._open(limit, window_seconds)

        result = RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
        )

        if not result.allowed:
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit exceeded",
                level="warning",
                client_key=client_key,
                scope=scope,
                limit=limit,
                count=count,
            )
        return result

    async def check_preset(self, client_key: str, preset_name: str, scope: str | None = None) -> RateLimitResult:
        """
        Check against a configured preset (standard, strict, relaxed, auth).

        Each preset counts in its own scope unless one is given.

        Raises:
            ConfigurationError: If the preset is not configured
        """
        preset = self._settings.RATE_LIMIT_PRESETS.get(preset_name)
        if preset is None:
            raise ConfigurationError(
                f"Unknown rate limit preset: {preset_name}",
                details={"available": sorted(self._settings.RATE_LIMIT_PRESETS)},
            )
        return await self.check(client_key, preset.limit, preset.window_seconds, scope=scope or preset_name)

    async def reset(self, client_key: str, scope: str = DEFAULT_RATE_LIMIT_SCOPE) -> bool:
        """Clear the client's counter for a scope, e.g. the auth quota after a successful login."""
        key = self.build_key(client_key, scope)
        try:
            deleted = await self._store.delete(key)
        except CacheError as e:
            logger.warning("Rate limit reset failed", client_key=client_key, scope=scope, error=e.message)
            return False
        log_stage(logger, Stage.RATE_LIMITING, "Rate limit reset", client_key=client_key, scope=scope)
        return deleted
