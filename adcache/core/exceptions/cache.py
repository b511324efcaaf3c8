"""
Cache-Related Exceptions

All exceptions related to the store backends and the stale-while-revalidate
read path.
"""

from adcache.core.exceptions.base import AdCacheError


class CacheError(AdCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheBackendUnavailableError(CacheError):
    """
    Raised by the distributed store when Redis cannot serve a call.

    Common causes:
    - Redis server is down or restarting
    - Network partition or socket timeout
    - Authentication failure

    Never reaches callers of the store facade: the facade catches it, marks
    the backend unhealthy and serves the call from the in-process store.
    """
    pass


class CacheSerializationError(CacheError):
    """
    Raised when a stored entry cannot be decoded, or a value cannot be encoded.

    Undecodable entries are deleted and refetched.
    """
    pass


class FetchFailureError(CacheError):
    """
    Raised when the wrapped upstream fetch function fails on the miss path.

    The original exception is chained as __cause__. Every caller that joined
    the same in-flight fetch receives the same instance.
    """
    pass


class UpstreamTimeoutError(FetchFailureError):
    """Raised when the upstream fetch exceeds its timeout."""
    pass
