"""
Configuration Module

Centralized, type-safe configuration for the caching and rate-limiting layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Key prefixes, header names, stage identifiers and enums

Usage:
------
```python
from adcache.core.config import get_settings
from adcache.core.config.constants import Freshness

settings = get_settings()
preset = settings.cache.CACHE_TTL_PRESETS["campaigns"]
```
"""

from adcache.core.config.settings import (
    RateLimitPreset,
    Settings,
    TTLPreset,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "TTLPreset",
    "RateLimitPreset",
    "get_settings",
    "reload_settings",
]
