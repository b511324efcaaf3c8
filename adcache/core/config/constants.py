"""
System Constants and Enumerations

This module defines constants and enumerations shared by the store facade,
the stale-while-revalidate cache and the rate limiter.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for key prefixes and header names
- Type-safe enums for freshness and backend mode
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the `stage` field of log entries.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    KEY_BUILD = "1.0_KEY_BUILD"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    CACHE_FRESH_HIT = "2.1_CACHE_FRESH_HIT"
    CACHE_STALE_HIT = "2.2_CACHE_STALE_HIT"
    CACHE_MISS = "2.3_CACHE_MISS"
    UPSTREAM_FETCH = "2.4_UPSTREAM_FETCH"
    BACKGROUND_REFRESH = "2.5_BACKGROUND_REFRESH"
    CACHE_INVALIDATION = "2.6_CACHE_INVALIDATION"
    RATE_LIMITING = "3.0_RATE_LIMITING"
    CLEANUP = "6.0_CLEANUP"

    # Cross-cutting
    STORE_FALLBACK = "S.1_STORE_FALLBACK"
    STORE_RECONNECT = "S.2_STORE_RECONNECT"
    STORE_HEALTH = "S.3_STORE_HEALTH"


# ============================================================================
# Cache Entry Freshness
# ============================================================================


class Freshness(str, Enum):
    """
    Derived state of a cache entry.

    FRESH: age < fresh_ttl, served without any fetch
    STALE: fresh_ttl <= age < stale_ttl, served while one refresh runs
    EXPIRED: age >= stale_ttl, hard miss
    """

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


class StoreMode(str, Enum):
    """Which backend the store facade is currently routing to."""

    DISTRIBUTED = "distributed"
    LOCAL = "local"


# ============================================================================
# Keys
# ============================================================================

KEY_SEPARATOR = ":"
MAX_PARAM_SEGMENT_LENGTH = 128  # Longer param strings are hashed
HASHED_SEGMENT_PREFIX = "h."

REDIS_KEY_RATE_LIMIT = "ratelimit"
DEFAULT_RATE_LIMIT_SCOPE = "default"

# SCAN batch size for prefix invalidation
SCAN_BATCH_SIZE = 500

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_FORWARDED_FOR = "X-Forwarded-For"
HEADER_REAL_IP = "X-Real-IP"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"

HTTP_TOO_MANY_REQUESTS = 429
