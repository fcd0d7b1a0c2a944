"""Pytest configuration and shared fixtures."""

import json
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from redirect_fixer.services.backends.mock import MockCrawlBackend
from redirect_fixer.services.crawl_manager import AdmissionPolicy, CrawlSessionManager, get_crawl_manager
from redirect_fixer.services.session_store import InMemorySessionStore


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it handled."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def json_bodies(self, method: str = "POST") -> List[Dict]:
        return [json.loads(r.content) for r in self.requests if r.method == method and r.content]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_backend(clock):
    return MockCrawlBackend(duration=10.0, clock=clock)


@pytest.fixture
def manager(mock_backend, clock):
    return CrawlSessionManager(
        backend=mock_backend,
        store=InMemorySessionStore(),
        clock=clock,
        ttl_seconds=3600,
        cache_seconds=5.0,
        policy=AdmissionPolicy(max_concurrent=1),
    )


@pytest.fixture
def app():
    from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def api_client(app, manager):
    app.dependency_overrides[get_crawl_manager] = lambda: manager
    return TestClient(app)


@pytest.fixture
def sample_export():
    return (
        "\ufeff\"Address\",\"Content Type\",\"Status Code\",\"Status\",\"Redirect URL\"\n"
        "\"https://example.com/\",\"text/html\",\"200\",\"OK\",\"\"\n"
        "\"https://example.com/old\",\"text/html\",\"301\",\"Moved Permanently\",\"https://example.com/new\"\n"
        "\"https://example.com/temp\",\"text/html\",\"302\",\"Found\",\"https://example.com/\"\n"
        "\"https://example.com/a,b\",\"text/html\",\"301\",\"Moved Permanently\",\"https://example.com/ab\"\n"
    )
