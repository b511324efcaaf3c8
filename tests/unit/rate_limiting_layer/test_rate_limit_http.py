"""
Unit Tests for the HTTP rate-limit contract

Client identity resolution, X-RateLimit-* headers and the 429 body.
"""

import orjson
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from adcache.application.container import build_services
from adcache.rate_limiting.http import (
    RateLimit,
    get_client_ip,
    rate_limit_exceeded_response,
    rate_limit_headers,
    resolve_client_key,
    setup_rate_limiting,
)
from adcache.rate_limiting.rate_limiter import RateLimitResult
from tests.test_fixtures import StoreTestFactory


def _request(headers: dict[str, str] | None = None, client=("9.9.9.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def limited_app():
    settings = StoreTestFactory.settings()
    services = build_services(settings)

    app = FastAPI()
    setup_rate_limiting(app)
    app.state.rate_limiter = services.rate_limiter

    @app.get("/login", dependencies=[Depends(RateLimit("auth"))])
    async def login():
        return {"ok": True}

    def header_identity(request):
        return request.headers.get("X-Test-User")

    @app.get("/campaigns", dependencies=[Depends(RateLimit("strict", identifier=header_identity))])
    async def campaigns():
        return {"ok": True}

    return app


@pytest.mark.unit
class TestClientIdentity:
    def test_identifier_is_primary(self):
        request = _request({"X-Forwarded-For": "1.2.3.4"})
        assert resolve_client_key(request, "42") == "user:42"

    def test_forwarded_for_first_hop(self):
        request = _request({"X-Forwarded-For": "1.2.3.4, 10.0.0.1"})
        assert resolve_client_key(request) == "ip:1.2.3.4"

    def test_real_ip_fallback(self):
        assert get_client_ip(_request({"X-Real-IP": " 5.6.7.8 "})) == "5.6.7.8"

    def test_socket_peer_fallback(self):
        assert get_client_ip(_request()) == "9.9.9.9"


@pytest.mark.unit
class TestHeaders:
    def test_rate_limit_headers(self):
        result = RateLimitResult(allowed=True, limit=100, remaining=99, reset_at=1_700_000_000.0)

        assert rate_limit_headers(result) == {
            "X-RateLimit-Limit": "100",
            "X-RateLimit-Remaining": "99",
            "X-RateLimit-Reset": "2023-11-14T22:13:20.000Z",
        }

    def test_exceeded_response(self):
        result = RateLimitResult(allowed=False, limit=5, remaining=0, reset_at=1030.0)

        response = rate_limit_exceeded_response(result, now=1000.0)

        assert response.status_code == 429
        assert orjson.loads(response.body) == {
            "error": "Too many requests. Please try again later.",
            "retryAfterSeconds": 30,
        }
        assert response.headers["Retry-After"] == "30"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_retry_after_is_at_least_one_second(self):
        result = RateLimitResult(allowed=False, limit=5, remaining=0, reset_at=1000.0)

        response = rate_limit_exceeded_response(result, now=1000.5)

        assert response.headers["Retry-After"] == "1"


@pytest.mark.unit
class TestRateLimitDependency:
    def test_headers_then_429(self, limited_app):
        client = TestClient(limited_app)

        responses = [client.get("/login") for _ in range(6)]

        assert [r.status_code for r in responses] == [200] * 5 + [429]
        assert responses[0].headers["X-RateLimit-Limit"] == "5"
        assert responses[0].headers["X-RateLimit-Remaining"] == "4"
        assert responses[0].headers["X-RateLimit-Reset"].endswith("Z")

        denied = responses[-1]
        body = denied.json()
        assert body["error"]
        assert 0 < body["retryAfterSeconds"] <= 300
        assert denied.headers["Retry-After"] == str(body["retryAfterSeconds"])
        assert denied.headers["X-RateLimit-Remaining"] == "0"

    def test_identified_users_have_own_quota(self, limited_app):
        client = TestClient(limited_app)

        for _ in range(10):
            assert client.get("/campaigns", headers={"X-Test-User": "alice"}).status_code == 200
        assert client.get("/campaigns", headers={"X-Test-User": "alice"}).status_code == 429

        assert client.get("/campaigns", headers={"X-Test-User": "bob"}).status_code == 200
        assert client.get("/campaigns").status_code == 200
