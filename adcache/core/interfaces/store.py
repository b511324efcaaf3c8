"""
Store Protocols

Abstract protocols for key/value backends. The stale-while-revalidate cache
and the rate limiter only ever see `Store`; which backend serves a call is
decided by the resilient facade.

Architectural Decision: Protocol-based abstraction
- Two implementations with identical semantics (Redis, in-process)
- Facilitates testing with fakes and AsyncMock
- Keeps the read path and the rate limiter backend-agnostic
"""

from typing import Any, Protocol, runtime_checkable

StoredValue = str | bytes


@runtime_checkable
class Store(Protocol):
    """
    Key/value operations shared by every backend.

    Implementations:
    - LocalStore: in-process, single-instance fallback
    - RedisStore: distributed, shared across processes
    - ResilientStore: facade routing between the two
    """

    async def get(self, key: str) -> StoredValue | None:
        """
        Get value for key.

        Returns:
            The stored value, or None when the key does not exist or expired
        """
        ...

    async def set_with_ttl(self, key: str, value: StoredValue, ttl_seconds: float) -> bool:
        """
        Store value with a time-to-live.

        Returns:
            True if the value was written
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns:
            True if a key was removed
        """
        ...

    async def delete_by_prefix(self, prefix: str) -> int:
        """
        Delete every key starting with prefix (literal match, no globbing).

        Returns:
            Number of keys deleted
        """
        ...

    async def atomic_increment_with_expiry(
        self, key: str, window_seconds: float
    ) -> tuple[int, float]:
        """
        Increment a fixed-window counter in one atomic backend operation.

        A missing or expired counter starts a new window: count becomes 1 and
        the window ends at now + window_seconds.

        Returns:
            (new_count, window_reset_at) with reset_at as an epoch timestamp
        """
        ...


@runtime_checkable
class DistributedStore(Store, Protocol):
    """A Store with a connection lifecycle (Redis)."""

    async def connect(self) -> None:
        """
        Establish the connection.

        Raises:
            CacheBackendUnavailableError: If the backend cannot be reached
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection."""
        ...

    async def ping(self) -> bool:
        """Return True when the backend answers."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Return health status and metrics."""
        ...
