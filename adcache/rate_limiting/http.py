"""
HTTP rate-limit contract (FastAPI boundary)

Headers on every limited response:
    X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset (ISO-8601 UTC)

Denied requests:
    429 {"error": "...", "retryAfterSeconds": n} plus Retry-After

Usage:
    app = FastAPI()
    setup_rate_limiting(app)
    app.state.rate_limiter = services.rate_limiter

    @app.get("/api/campaigns", dependencies=[Depends(RateLimit("standard"))])
    async def list_campaigns(): ...
"""

from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address

from adcache.core.config.constants import (
    HEADER_FORWARDED_FOR,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REAL_IP,
    HEADER_RETRY_AFTER,
    HTTP_TOO_MANY_REQUESTS,
)
from adcache.core.exceptions import RateLimitExceededError
from adcache.core.logging.logger import get_logger
from adcache.rate_limiting.rate_limiter import RateLimiter, RateLimitResult

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get(HEADER_FORWARDED_FOR)
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get(HEADER_REAL_IP)
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return get_remote_address(request)


def resolve_client_key(request: Request, identifier: str | None = None) -> str:
    """
    Rate limit identity for a request.

    An authenticated identifier always wins; the client IP is only used for
    unauthenticated traffic.
    """
    if identifier:
        return f"user:{identifier}"
    return f"ip:{get_client_ip(request)}"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        HEADER_RATE_LIMIT: str(result.limit),
        HEADER_RATE_REMAINING: str(result.remaining),
        HEADER_RATE_RESET: result.reset_at_iso,
    }


def rate_limit_exceeded_response(result: RateLimitResult, now: float | None = None) -> JSONResponse:
    retry_after = max(1, result.retry_after_seconds(now))
    headers = rate_limit_headers(result)
    headers[HEADER_RETRY_AFTER] = str(retry_after)
    return JSONResponse(
        status_code=HTTP_TOO_MANY_REQUESTS,
        content={"error": RATE_LIMIT_MESSAGE, "retryAfterSeconds": retry_after},
        headers=headers,
    )


def _state_user_id(request: Request) -> str | None:
    return getattr(request.state, "user_id", None)


class RateLimit:
    """
    FastAPI dependency enforcing a rate limit preset.

    The identifier callable reads the authenticated user from the request;
    by default `request.state.user_id` as set by the auth layer.
    """

    def __init__(
        self,
        preset: str = "standard",
        identifier: Callable[[Request], str | None] = _state_user_id,
    ):
        self.preset = preset
        self._identifier = identifier

    async def __call__(self, request: Request, response: Response) -> RateLimitResult:
        limiter: RateLimiter = request.app.state.rate_limiter
        client_key = resolve_client_key(request, self._identifier(request))

        result = await limiter.check_preset(client_key, self.preset)
        response.headers.update(rate_limit_headers(result))

        if not result.allowed:
            raise RateLimitExceededError(
                RATE_LIMIT_MESSAGE,
                result,
                details={"client_key": client_key, "preset": self.preset},
            )
        return result


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> Response:
    """Render a denied request as 429 with rate limit headers."""
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        **exc.details,
    )
    return rate_limit_exceeded_response(exc.result)


def setup_rate_limiting(app: FastAPI) -> None:
    """Register the 429 handler on the application."""
    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    logger.info("Rate limiting configured for FastAPI app")
