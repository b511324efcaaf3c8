"""
Exception Module

Structured exception hierarchy for the caching and rate-limiting layer.

Module Structure:
-----------------
- **base.py**: AdCacheError base class + ConfigurationError
- **cache.py**: Store backend, serialization and upstream fetch errors
- **rate_limit.py**: Rate limiting errors
- **validation.py**: Input validation errors

Usage:
------
```python
from adcache.core.exceptions import FetchFailureError, CacheBackendUnavailableError
```
"""

from adcache.core.exceptions.base import AdCacheError, ConfigurationError
from adcache.core.exceptions.cache import (
    CacheBackendUnavailableError,
    CacheError,
    CacheSerializationError,
    FetchFailureError,
    UpstreamTimeoutError,
)
from adcache.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError
from adcache.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "AdCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheBackendUnavailableError",
    "CacheSerializationError",
    "FetchFailureError",
    "UpstreamTimeoutError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Validation
    "ValidationError",
    "InvalidInputError",
]
