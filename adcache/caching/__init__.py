"""Stale-while-revalidate read path."""

from adcache.caching.entry import CacheEntry, decode_entry, encode_entry
from adcache.caching.stale_while_revalidate import CachedResult, StaleWhileRevalidateCache

__all__ = [
    "CacheEntry",
    "CachedResult",
    "StaleWhileRevalidateCache",
    "decode_entry",
    "encode_entry",
]
