"""Startup wiring and the FastAPI host."""

from adcache.application.app import create_app
from adcache.application.container import CacheServices, build_services

__all__ = ["CacheServices", "build_services", "create_app"]
