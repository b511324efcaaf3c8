"""
Unit Tests for Configuration Constants
"""

import pytest

from adcache.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HTTP_TOO_MANY_REQUESTS,
    Freshness,
    Stage,
    StoreMode,
)


@pytest.mark.unit
class TestEnums:
    def test_freshness_values(self):
        assert {f.value for f in Freshness} == {"fresh", "stale", "expired"}

    def test_store_modes(self):
        assert StoreMode.DISTRIBUTED == "distributed"
        assert StoreMode.LOCAL == "local"

    def test_stage_values_are_unique(self):
        values = [s.value for s in Stage]
        assert len(values) == len(set(values))


@pytest.mark.unit
class TestHeaders:
    def test_rate_limit_header_names(self):
        assert HEADER_RATE_LIMIT == "X-RateLimit-Limit"
        assert HEADER_RATE_REMAINING == "X-RateLimit-Remaining"
        assert HEADER_RATE_RESET == "X-RateLimit-Reset"
        assert HTTP_TOO_MANY_REQUESTS == 429
