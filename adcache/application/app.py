#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Hosts the caching and rate-limiting layer: services are built once, started
in the lifespan hook and published on app.state for route dependencies.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from adcache.application.container import CacheServices, build_services
from adcache.core.config.constants import HEADER_REQUEST_ID
from adcache.core.config.settings import Settings, get_settings
from adcache.core.exceptions import FetchFailureError, UpstreamTimeoutError
from adcache.core.logging.logger import clear_request_id, get_logger, set_request_id, setup_logging
from adcache.rate_limiting.http import setup_rate_limiting

logger = get_logger(__name__)


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None, services: CacheServices | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        services: Prebuilt services (tests inject fakes here)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT)
        logger.info(
            "Starting cache layer",
            environment=settings.ENVIRONMENT,
            version=settings.APP_VERSION,
        )

        container = services or build_services(settings)
        await container.start()

        app.state.services = container
        app.state.cache = container.cache
        app.state.rate_limiter = container.rate_limiter
        logger.info("Application startup complete", store_mode=container.store.mode.value)

        try:
            yield
        finally:
            logger.info("Shutting down application")
            await container.close()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    setup_rate_limiting(app)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Inject request ID into all requests for correlation."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    @app.exception_handler(FetchFailureError)
    async def fetch_failure_handler(request: Request, exc: FetchFailureError):
        """Upstream failures are surfaced, never replaced by placeholder data."""
        logger.error(
            "Upstream fetch failed", error_type=type(exc).__name__, error=exc.message, details=exc.details
        )
        timed_out = isinstance(exc, UpstreamTimeoutError)
        # Upstream messages can carry URLs and tokens; they stay in the log
        return JSONResponse(
            status_code=504 if timed_out else 502,
            content={
                "error_type": type(exc).__name__,
                "message": "Upstream request timed out" if timed_out else "Upstream request failed",
                "request_id": exc.request_id,
            },
        )

    @app.get("/health/cache", tags=["Health"])
    async def cache_health(request: Request):
        container: CacheServices = request.app.state.services
        return await container.health_check()

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
    )
