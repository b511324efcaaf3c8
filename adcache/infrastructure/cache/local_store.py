"""
In-process store.

Single-instance fallback with the same TTL semantics as the Redis store,
including the fixed-window counter. Used permanently when no REDIS_URL is
configured, and temporarily by the facade while Redis is unreachable.
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from adcache.core.interfaces.store import StoredValue
from adcache.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _Record:
    value: Any
    expires_at: float
    counter: bool = False


class LocalStore:
    """
    TTL-aware in-memory key/value store with LRU capacity bound.

    Implementation Details:
    - OrderedDict for O(1) access and LRU ordering
    - asyncio.Lock around every mutation, so the increment is atomic for
      all tasks of this process
    - Expired records are dropped lazily on access and in bulk by
      purge_expired() when the store reaches capacity
    - Counters and values share one keyspace, like Redis
    - Counters are never evicted for capacity, only by their window TTL,
      so cache churn cannot reset a client's quota
    """

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.time):
        self._max_entries = max_entries
        self._clock = clock
        self._records: OrderedDict[str, _Record] = OrderedDict()
        self._lock = asyncio.Lock()

    @property
    def size(self) -> int:
        return len(self._records)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def _live(self, key: str, now: float) -> _Record | None:
        record = self._records.get(key)
        if record is None:
            return None
        if now >= record.expires_at:
            del self._records[key]
            return None
        return record

    def _evict(self, now: float) -> None:
        if len(self._records) <= self._max_entries:
            return
        self._purge(now)
        excess = len(self._records) - self._max_entries
        if excess <= 0:
            return
        victims = []
        for key, record in self._records.items():
            if record.counter:
                continue
            victims.append(key)
            if len(victims) == excess:
                break
        for key in victims:
            del self._records[key]

    def _purge(self, now: float) -> int:
        expired = [k for k, r in self._records.items() if now >= r.expires_at]
        for key in expired:
            del self._records[key]
        return len(expired)

    async def get(self, key: str) -> StoredValue | None:
        async with self._lock:
            record = self._live(key, self._clock())
            if record is None:
                return None
            self._records.move_to_end(key)
            # Counters read back as strings, as they do from Redis
            if record.counter:
                return str(record.value)
            return record.value

    async def set_with_ttl(self, key: str, value: StoredValue, ttl_seconds: float) -> bool:
        if ttl_seconds <= 0:
            return False

        async with self._lock:
            now = self._clock()
            self._records[key] = _Record(value=value, expires_at=now + ttl_seconds)
            self._records.move_to_end(key)
            self._evict(now)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._records.pop(key, None) is not None

    async def delete_by_prefix(self, prefix: str) -> int:
        async with self._lock:
            doomed = [k for k in self._records if k.startswith(prefix)]
            for key in doomed:
                del self._records[key]

        if doomed:
            logger.debug("Local prefix invalidation", prefix=prefix, deleted=len(doomed))
        return len(doomed)

    async def atomic_increment_with_expiry(
        self, key: str, window_seconds: float
    ) -> tuple[int, float]:
        async with self._lock:
            now = self._clock()
            record = self._live(key, now)

            if record is None or not record.counter:
                record = _Record(value=1, expires_at=now + window_seconds, counter=True)
                self._records[key] = record
                self._evict(now)
            else:
                record.value += 1

            return record.value, record.expires_at

    async def purge_expired(self) -> int:
        """Drop every expired record. Returns how many were removed."""
        async with self._lock:
            return self._purge(self._clock())

    async def clear(self) -> None:
        async with self._lock:
            self._records.clear()

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "type": "local",
            "size": self.size,
            "max_entries": self._max_entries,
        }
