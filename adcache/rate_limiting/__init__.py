"""Fixed-window rate limiting and its HTTP contract."""

from adcache.rate_limiting.http import (
    RateLimit,
    rate_limit_exceeded_response,
    rate_limit_headers,
    resolve_client_key,
    setup_rate_limiting,
)
from adcache.rate_limiting.rate_limiter import RateLimiter, RateLimitResult

__all__ = [
    "RateLimiter",
    "RateLimitResult",
    "RateLimit",
    "rate_limit_exceeded_response",
    "rate_limit_headers",
    "resolve_client_key",
    "setup_rate_limiting",
]
