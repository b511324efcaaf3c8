"""
Redis Store with Connection Pooling

Architecture:
    RedisStore (Store protocol)
        ├── ConnectionManager (Connection lifecycle)
        └── HealthMonitor (Health checks and pool metrics)

Every Redis or socket failure is raised as CacheBackendUnavailableError. The
store never falls back on its own; that is the facade's job.

Commands used:
    GET, SET key value PX ms, DEL, SCAN MATCH prefix* + batched DEL,
    EVALSHA of the fixed-window increment script.
"""

import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from adcache.core.config.constants import SCAN_BATCH_SIZE
from adcache.core.config.settings import Settings, get_settings
from adcache.core.exceptions import CacheBackendUnavailableError
from adcache.core.interfaces.store import StoredValue
from adcache.core.logging.logger import get_logger

logger = get_logger(__name__)

# INCR and the first-hit PEXPIRE run as one atomic script.
# A counter found without a TTL gets one.
FIXED_WINDOW_INCREMENT_LUA = """
local count = redis.call('INCR', KEYS[1])
local ttl = redis.call('PTTL', KEYS[1])
if count == 1 or ttl < 0 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""

_GLOB_SPECIAL = "\\*?[]"


def escape_glob(prefix: str) -> str:
    """Escape SCAN MATCH metacharacters so the prefix matches literally."""
    return "".join(f"\\{c}" if c in _GLOB_SPECIAL else c for c in prefix)


# =============================================================================
# CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Pool Configuration:
    - Max connections: REDIS_MAX_CONNECTIONS
    - Socket timeouts: REDIS_SOCKET_TIMEOUT
    - Health check interval: REDIS_HEALTH_CHECK_INTERVAL
    """

    def __init__(self, url: str, settings: Settings):
        self._url = url
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheBackendUnavailableError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        redis_settings = self._settings.redis
        try:
            if self._pool is None:
                self._pool = ConnectionPool.from_url(
                    self._url,
                    max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                    socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                    health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                    decode_responses=True,
                )
                self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage="REDIS.2",
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )
            return self._client

        except (RedisError, OSError) as e:
            self._is_connected = False
            logger.warning("Failed to connect to Redis", stage="REDIS.2", error=str(e))
            raise CacheBackendUnavailableError.from_exception(
                e, message=f"Failed to connect to Redis: {e}", operation="connect"
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis client and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False

        logger.info("Redis disconnected", stage="REDIS.3")

    def mark_disconnected(self) -> None:
        self._is_connected = False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool size and utilization (warning above 80%)
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._conn_mgr = connection_manager

    async def health_check(self) -> dict[str, Any]:
        """
        STAGE-REDIS.HEALTH: Redis health check

        Returns:
            Dict with health status and metrics
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "type": "redis",
            "connected": self._conn_mgr.is_connected(),
            "pool_size": 0,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except (RedisError, OSError) as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool:
            health["pool_size"] = pool.max_connections
            if hasattr(pool, "_available_connections") and hasattr(pool, "_in_use_connections"):
                in_use = len(pool._in_use_connections)
                utilization = 100.0 * in_use / pool.max_connections
                health["pool_utilization_pct"] = round(utilization, 1)
                if utilization > 80:
                    health["pool_warning"] = True
                    logger.warning(
                        "Redis pool utilization high",
                        pool_utilization=utilization,
                        max_connections=pool.max_connections,
                    )

        return health


# =============================================================================
# PUBLIC API
# =============================================================================


class RedisStore:
    """
    Distributed Store backed by Redis.

    Usage:
        store = RedisStore("redis://localhost:6379/0")
        await store.connect()

        await store.set_with_ttl("key", "value", ttl_seconds=60)
        value = await store.get("key")
        count, reset_at = await store.atomic_increment_with_expiry("rl:key", 60)

        await store.disconnect()
    """

    def __init__(self, url: str, settings: Settings | None = None, client: redis.Redis | None = None):
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(url, self._settings)
        self._health_monitor = HealthMonitor(self._conn_mgr)
        self._client: redis.Redis | None = client
        self._increment_script = None
        if client is not None:
            self._bind(client)

    def _bind(self, client: redis.Redis) -> None:
        self._client = client
        self._increment_script = client.register_script(FIXED_WINDOW_INCREMENT_LUA)

    def _require_client(self) -> redis.Redis:
        if self._client is None:
            raise CacheBackendUnavailableError("Redis store is not connected")
        return self._client

    def _fail(self, operation: str, key: str, exc: BaseException) -> CacheBackendUnavailableError:
        self._conn_mgr.mark_disconnected()
        logger.warning(
            f"Redis {operation} failed",
            stage=f"REDIS.{operation.upper()}",
            key=key,
            error=str(exc),
        )
        return CacheBackendUnavailableError.from_exception(
            exc, message=f"Redis {operation} failed: {exc}", operation=operation, key=key
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Raises:
            CacheBackendUnavailableError: If connection fails
        """
        client = await self._conn_mgr.connect()
        if client is not self._client:
            self._bind(client)

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._client = None
        self._increment_script = None

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.ping()
            return True
        except (RedisError, OSError) as e:
            self._conn_mgr.mark_disconnected()
            logger.warning("Redis ping failed", stage="REDIS.PING", error=str(e))
            return False

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()

    # -------------------------------------------------------------------------
    # Store operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> StoredValue | None:
        client = self._require_client()
        try:
            return await client.get(key)
        except (RedisError, OSError) as e:
            raise self._fail("get", key, e) from e

    async def set_with_ttl(self, key: str, value: StoredValue, ttl_seconds: float) -> bool:
        client = self._require_client()
        ttl_ms = int(ttl_seconds * 1000)
        if ttl_ms <= 0:
            return False
        try:
            return bool(await client.set(key, value, px=ttl_ms))
        except (RedisError, OSError) as e:
            raise self._fail("set", key, e) from e

    async def delete(self, key: str) -> bool:
        client = self._require_client()
        try:
            return bool(await client.delete(key))
        except (RedisError, OSError) as e:
            raise self._fail("delete", key, e) from e

    async def delete_by_prefix(self, prefix: str) -> int:
        """
        SCAN the keyspace for the prefix and delete matches in batches.
        """
        client = self._require_client()
        deleted = 0
        batch: list[str] = []
        try:
            async for key in client.scan_iter(match=f"{escape_glob(prefix)}*", count=SCAN_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    deleted += await client.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await client.delete(*batch)
        except (RedisError, OSError) as e:
            raise self._fail("scan_delete", prefix, e) from e

        logger.info("Redis prefix invalidation", stage="REDIS.SCAN_DEL", prefix=prefix, deleted=deleted)
        return deleted

    async def atomic_increment_with_expiry(
        self, key: str, window_seconds: float
    ) -> tuple[int, float]:
        self._require_client()
        window_ms = max(1, int(window_seconds * 1000))
        try:
            count, ttl_ms = await self._increment_script(keys=[key], args=[window_ms])
        except (RedisError, OSError) as e:
            raise self._fail("incr_window", key, e) from e

        return int(count), time.time() + int(ttl_ms) / 1000.0
