"""
Unit Tests for the application wiring

Service container construction, lifespan, health endpoint and the
upstream-failure contract.
"""

import asyncio

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from adcache.application.app import create_app
from adcache.application.container import build_services
from adcache.core.config.constants import HEADER_REQUEST_ID, StoreMode
from adcache.infrastructure.cache.redis_store import RedisStore
from tests.test_fixtures import StoreTestFactory


@pytest.mark.unit
class TestBuildServices:
    def test_local_only_without_redis_url(self):
        services = build_services(StoreTestFactory.settings())

        assert services.store.has_distributed is False
        assert services.store.mode is StoreMode.LOCAL

    def test_redis_store_when_url_configured(self):
        services = build_services(StoreTestFactory.settings(REDIS_URL="redis://cache:6379/0"))

        assert isinstance(services.store._distributed, RedisStore)

    def test_cache_and_limiter_share_one_store(self):
        services = build_services(StoreTestFactory.settings())

        assert services.cache._store is services.store
        assert services.rate_limiter._store is services.store

    async def test_start_and_close_local_only(self):
        services = build_services(StoreTestFactory.settings())

        await services.start()
        await services.cache.fetch("k", lambda: "v", 60, 120)
        health = await services.health_check()
        await services.close()

        assert health["store"]["mode"] == "local"
        assert health["cache"]["misses"] == 1


@pytest.fixture
def app():
    settings = StoreTestFactory.settings()
    app = create_app(settings, services=build_services(settings))

    @app.get("/boom")
    async def boom(request: Request):
        async def failing():
            raise RuntimeError("graph api 500 for /v19.0/act_1/campaigns?access_token=EAAsecret")

        return await request.app.state.cache.fetch("boom", failing, 60, 120)

    @app.get("/slow")
    async def slow(request: Request):
        async def hanging():
            await asyncio.Event().wait()

        return await request.app.state.cache.fetch("slow", hanging, 60, 120, timeout=0.01)

    return app


@pytest.mark.unit
class TestApplication:
    def test_health_endpoint(self, app):
        with TestClient(app) as client:
            response = client.get("/health/cache")

        assert response.status_code == 200
        body = response.json()
        assert body["store"]["mode"] == "local"
        assert body["rate_limiting_enabled"] is True

    def test_request_id_echoed(self, app):
        with TestClient(app) as client:
            response = client.get("/health/cache", headers={HEADER_REQUEST_ID: "req-1"})

        assert response.headers[HEADER_REQUEST_ID] == "req-1"

    def test_request_id_generated(self, app):
        with TestClient(app) as client:
            response = client.get("/health/cache")

        assert response.headers[HEADER_REQUEST_ID]

    def test_upstream_failure_surfaces_as_502(self, app):
        with TestClient(app) as client:
            response = client.get("/boom")

        assert response.status_code == 502
        assert response.json()["error_type"] == "FetchFailureError"
        assert response.json()["message"] == "Upstream request failed"
        assert "EAAsecret" not in response.text
        assert "details" not in response.json()

    def test_upstream_timeout_surfaces_as_504(self, app):
        with TestClient(app) as client:
            response = client.get("/slow")

        assert response.status_code == 504
        assert response.json()["error_type"] == "UpstreamTimeoutError"
