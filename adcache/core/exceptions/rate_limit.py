"""
Rate Limiting Exceptions

All exceptions related to rate limiting operations
"""

from typing import TYPE_CHECKING

from adcache.core.exceptions.base import AdCacheError

if TYPE_CHECKING:
    from adcache.rate_limiting.rate_limiter import RateLimitResult


class RateLimitError(AdCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised at the HTTP boundary when a client exceeds its quota.

    Carries the RateLimitResult so the handler can render the
    X-RateLimit-* headers and the retryAfterSeconds body field.
    """

    def __init__(self, message: str, result: "RateLimitResult", **kwargs):
        super().__init__(message, **kwargs)
        self.result = result
