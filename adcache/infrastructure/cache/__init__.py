"""Store backends, the resilient facade and key construction."""

from adcache.infrastructure.cache.key_codec import KeyCodec, build_key, get_key_codec
from adcache.infrastructure.cache.local_store import LocalStore
from adcache.infrastructure.cache.redis_store import RedisStore
from adcache.infrastructure.cache.resilient_store import ResilientStore

__all__ = [
    "KeyCodec",
    "build_key",
    "get_key_codec",
    "LocalStore",
    "RedisStore",
    "ResilientStore",
]
