"""
Validation Exceptions

Raised for malformed keys, TTLs and limits. The caching and rate-limiting
paths catch these internally: caching bypasses the store, rate limiting
fails open.
"""

from adcache.core.exceptions.base import AdCacheError


class ValidationError(AdCacheError):
    """Base class for all validation-related errors."""
    pass


class InvalidInputError(ValidationError):
    """
    Raised when input validation fails.

    Common causes:
    - Empty cache key or client key
    - Non-positive TTL, limit or window
    - fresh_ttl greater than stale_ttl
    """
    pass
