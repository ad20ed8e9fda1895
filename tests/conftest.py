import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from geoproxy.cache import MemoryCacheStore, get_cache_store
from geoproxy.http.upstream import get_http_client
from geoproxy.main import app
from geoproxy.settings import Settings, get_settings

FLOOD_UPSTREAM = "https://services.example.com/arcgis/rest/services/Flood/MapServer/0/query"
WATER_UPSTREAM = "https://services.example.com/arcgis/rest/services/Water/FeatureServer/2/query"

FEATURES_BODY = b'{"type":"FeatureCollection","features":[{"type":"Feature","properties":{"id":1}}]}'


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        cors_origins=("*",),
        upstream_flood=FLOOD_UPSTREAM,
        upstream_water=WATER_UPSTREAM,
        cache_ttl_seconds=3600,
        upstream_timeout_seconds=8.0,
        redis_url="",
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)


class FakeUpstream:
    """MockTransport handler that records requests and returns a canned reply."""

    def __init__(self) -> None:
        self.calls: List[httpx.Request] = []
        self.status = 200
        self.headers: Dict[str, str] = {"content-type": "text/plain", "cache-control": "no-cache"}
        self.body = FEATURES_BODY
        self.delay: Optional[float] = None
        self.error: Optional[Exception] = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if self.delay:
            await asyncio.sleep(self.delay)
        return httpx.Response(self.status, headers=self.headers, content=self.body)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def cache_store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def use_settings():
    def _use(**overrides: Any) -> Settings:
        s = make_settings(**overrides)
        app.dependency_overrides[get_settings] = lambda: s
        return s

    return _use


@pytest.fixture
def client(upstream, cache_store, use_settings):
    use_settings()
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app.dependency_overrides[get_cache_store] = lambda: cache_store
    app.dependency_overrides[get_http_client] = lambda: http_client

    yield TestClient(app)

    app.dependency_overrides.clear()
