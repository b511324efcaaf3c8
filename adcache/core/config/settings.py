#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
caching and rate-limiting layer. All configuration is centralized here so the
store facade, the stale-while-revalidate cache and the rate limiter read the
same values.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Presets validated once, not on every request
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TTLPreset(BaseModel):
    """Fresh/stale TTL pair for one upstream resource type (seconds)."""

    fresh_ttl: int = Field(gt=0)
    stale_ttl: int = Field(gt=0)

    @model_validator(mode="after")
    def check_order(self):
        if self.fresh_ttl > self.stale_ttl:
            raise ValueError("fresh_ttl must not exceed stale_ttl")
        return self


class RateLimitPreset(BaseModel):
    """Fixed-window quota: at most `limit` requests per `window_seconds`."""

    limit: int = Field(gt=0)
    window_seconds: int = Field(gt=0)


DEFAULT_TTL_PRESETS: dict[str, TTLPreset] = {
    "accounts": TTLPreset(fresh_ttl=900, stale_ttl=3600),
    "campaigns": TTLPreset(fresh_ttl=300, stale_ttl=3600),
    "adsets": TTLPreset(fresh_ttl=300, stale_ttl=3600),
    "ads": TTLPreset(fresh_ttl=300, stale_ttl=3600),
    "insights": TTLPreset(fresh_ttl=600, stale_ttl=3600),
    "page_names": TTLPreset(fresh_ttl=86400, stale_ttl=172800),
}

DEFAULT_RATE_LIMIT_PRESETS: dict[str, RateLimitPreset] = {
    "standard": RateLimitPreset(limit=100, window_seconds=60),
    "strict": RateLimitPreset(limit=10, window_seconds=60),
    "relaxed": RateLimitPreset(limit=300, window_seconds=60),
    "auth": RateLimitPreset(limit=5, window_seconds=300),
}


class RedisSettings(BaseSettings):
    """
    Distributed backend (Redis) configuration.

    STAGE-0.1: Redis connection configuration

    REDIS_URL absent means the process runs on the in-process store for its
    whole lifetime. That is a deployment choice, not a failure.
    """

    REDIS_URL: str | None = Field(default=None, description="Redis connection URL")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_RECONNECT_INTERVAL: float = Field(default=5.0, description="Minimum seconds between reconnect attempts")
    REDIS_RECONNECT_ATTEMPTS: int = Field(default=3, description="Connect attempts per reconnect cycle")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Stale-while-revalidate cache configuration.

    STAGE-2: Cache TTL configuration
    """

    CACHE_KEY_VERSION: str = Field(default="v1", description="Key schema version segment")
    CACHE_FRESH_TTL: int = Field(default=300, description="Default fresh TTL (5 minutes)")
    CACHE_STALE_TTL: int = Field(default=3600, description="Default stale TTL (1 hour)")
    CACHE_FETCH_TIMEOUT: float = Field(default=30.0, description="Upstream fetch timeout in seconds")
    CACHE_LOCAL_MAX_ENTRIES: int = Field(default=10000, description="In-process store capacity")
    CACHE_TTL_PRESETS: dict[str, TTLPreset] = Field(default_factory=lambda: dict(DEFAULT_TTL_PRESETS))

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.

    STAGE-3: Rate limiting thresholds

    Architectural Decision: fixed-window counters in the shared store
    - Per-identifier limits, IP only for unauthenticated traffic
    - Fail open when the store cannot answer
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_PRESETS: dict[str, RateLimitPreset] = Field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMIT_PRESETS)
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Ad Dashboard Cache Layer", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from adcache.core.config.settings import get_settings

        settings = get_settings()
        redis_url = settings.redis.REDIS_URL
        preset = settings.cache.CACHE_TTL_PRESETS["campaigns"]
    """

    # Redis settings
    REDIS_URL: str | None = Field(default=None, description="Redis connection URL")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_RECONNECT_INTERVAL: float = Field(default=5.0, description="Minimum seconds between reconnect attempts")
    REDIS_RECONNECT_ATTEMPTS: int = Field(default=3, description="Connect attempts per reconnect cycle")

    # Cache settings
    CACHE_KEY_VERSION: str = Field(default="v1", description="Key schema version segment")
    CACHE_FRESH_TTL: int = Field(default=300, description="Default fresh TTL (5 minutes)")
    CACHE_STALE_TTL: int = Field(default=3600, description="Default stale TTL (1 hour)")
    CACHE_FETCH_TIMEOUT: float = Field(default=30.0, description="Upstream fetch timeout in seconds")
    CACHE_LOCAL_MAX_ENTRIES: int = Field(default=10000, description="In-process store capacity")
    CACHE_TTL_PRESETS: dict[str, TTLPreset] = Field(default_factory=lambda: dict(DEFAULT_TTL_PRESETS))

    # Rate limit settings
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_PRESETS: dict[str, RateLimitPreset] = Field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMIT_PRESETS)
    )

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Ad Dashboard Cache Layer", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("REDIS_URL")
    @classmethod
    def blank_url_means_local(cls, v):
        """An empty REDIS_URL is the same as an absent one."""
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def check_default_ttls(self):
        if self.CACHE_FRESH_TTL > self.CACHE_STALE_TTL:
            raise ValueError("CACHE_FRESH_TTL must not exceed CACHE_STALE_TTL")
        return self

    # Nested configuration views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_URL=self.REDIS_URL,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_RECONNECT_INTERVAL=self.REDIS_RECONNECT_INTERVAL,
            REDIS_RECONNECT_ATTEMPTS=self.REDIS_RECONNECT_ATTEMPTS,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_KEY_VERSION=self.CACHE_KEY_VERSION,
            CACHE_FRESH_TTL=self.CACHE_FRESH_TTL,
            CACHE_STALE_TTL=self.CACHE_STALE_TTL,
            CACHE_FETCH_TIMEOUT=self.CACHE_FETCH_TIMEOUT,
            CACHE_LOCAL_MAX_ENTRIES=self.CACHE_LOCAL_MAX_ENTRIES,
            CACHE_TTL_PRESETS=self.CACHE_TTL_PRESETS,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_PRESETS=self.RATE_LIMIT_PRESETS,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
