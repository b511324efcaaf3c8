"""
Cache entry envelope.

Stored as JSON (orjson):
    {"v": <value>, "s": <stored_at epoch>, "f": <fresh_ttl>, "t": <stale_ttl>}

Freshness is derived from age at read time and never stored as a flag.
"""

from dataclasses import dataclass
from typing import Any

import orjson

from adcache.core.config.constants import Freshness
from adcache.core.exceptions import CacheSerializationError
from adcache.core.interfaces.store import StoredValue


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    fresh_ttl: float
    stale_ttl: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def freshness(self, now: float) -> Freshness:
        """
        FRESH if age < fresh_ttl, STALE while age < stale_ttl, else EXPIRED.

        An entry stored "in the future" (clock skew between processes) counts
        as fresh.
        """
        age = self.age(now)
        if age < self.fresh_ttl:
            return Freshness.FRESH
        if age < self.stale_ttl:
            return Freshness.STALE
        return Freshness.EXPIRED


def encode_entry(entry: CacheEntry) -> bytes:
    """
    Raises:
        CacheSerializationError: If the value is not JSON-serializable
    """
    try:
        return orjson.dumps(
            {"v": entry.value, "s": entry.stored_at, "f": entry.fresh_ttl, "t": entry.stale_ttl},
            option=orjson.OPT_NON_STR_KEYS,
        )
    except TypeError as e:
        raise CacheSerializationError.from_exception(
            e, message=f"Cannot encode cache value: {e}", key=entry.key
        ) from e


def decode_entry(key: str, raw: StoredValue) -> CacheEntry:
    """
    Raises:
        CacheSerializationError: If raw is not a valid envelope
    """
    try:
        payload = orjson.loads(raw)
        return CacheEntry(
            key=key,
            value=payload["v"],
            stored_at=float(payload["s"]),
            fresh_ttl=float(payload["f"]),
            stale_ttl=float(payload["t"]),
        )
    except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise CacheSerializationError.from_exception(
            e, message="Cannot decode cache entry", key=key
        ) from e
