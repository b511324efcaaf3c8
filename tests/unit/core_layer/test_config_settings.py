"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, presets and default values.
"""

import pytest
from pydantic import ValidationError

from adcache.core.config.settings import RateLimitPreset, Settings, TTLPreset, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsInitialization:
    """Test Settings class initialization and validation."""

    def test_settings_has_nested_views(self):
        settings = Settings(REDIS_URL=None)

        assert settings.redis.REDIS_URL is None
        assert settings.cache.CACHE_FRESH_TTL == 300
        assert settings.cache.CACHE_STALE_TTL == 3600
        assert settings.rate_limit.RATE_LIMIT_ENABLED is True
        assert settings.app.APP_VERSION

    def test_blank_redis_url_means_local_mode(self):
        settings = Settings(REDIS_URL="   ")
        assert settings.REDIS_URL is None

    def test_log_level_is_normalized(self):
        settings = Settings(LOG_LEVEL="debug")
        assert settings.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="LOUD")

    def test_fresh_ttl_above_stale_ttl_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_FRESH_TTL=4000, CACHE_STALE_TTL=3600)


@pytest.mark.unit
class TestPresets:
    """Test per-resource TTL and rate limit presets."""

    def test_default_ttl_presets(self):
        presets = Settings().cache.CACHE_TTL_PRESETS

        assert presets["accounts"] == TTLPreset(fresh_ttl=900, stale_ttl=3600)
        assert presets["campaigns"].fresh_ttl == 300
        for preset in presets.values():
            assert preset.fresh_ttl <= preset.stale_ttl

    def test_default_rate_limit_presets(self):
        presets = Settings().rate_limit.RATE_LIMIT_PRESETS

        assert presets["standard"] == RateLimitPreset(limit=100, window_seconds=60)
        assert presets["auth"] == RateLimitPreset(limit=5, window_seconds=300)
        assert presets["strict"].limit == 10
        assert presets["relaxed"].limit == 300

    def test_ttl_preset_order_validated(self):
        with pytest.raises(ValidationError):
            TTLPreset(fresh_ttl=600, stale_ttl=60)

    def test_rate_limit_preset_must_be_positive(self):
        with pytest.raises(ValidationError):
            RateLimitPreset(limit=0, window_seconds=60)


@pytest.mark.unit
class TestSettingsSingleton:
    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self):
        first = get_settings()
        second = reload_settings()

        assert second is not first
        assert get_settings() is second
