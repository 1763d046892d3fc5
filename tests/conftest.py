"""
Pytest configuration and shared fixtures.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from api.auth import RateLimiter, token_manager
from api.catalog import CatalogClient, get_catalog_client
from api.main import app


def catalog_handler(request: httpx.Request) -> httpx.Response:
    """Simulate the upstream catalog based on the requested author."""
    author = request.url.params.get("author")
    if author == "error":
        raise httpx.ConnectError("simulated network error", request=request)
    if author == "badjson":
        return httpx.Response(200, text="not json")
    if author == "unavailable":
        return httpx.Response(503, text="maintenance")
    if author == "nobooks":
        return httpx.Response(200, json={"docs": []})
    if author == "nulldocs":
        return httpx.Response(200, json={"docs": None})
    if author == "nulltitle":
        return httpx.Response(200, json={"docs": [{"title": None}, {"title": "Real"}]})
    if author == "someauthor":
        return httpx.Response(200, json={"docs": [{"title": "Test Book"}]})
    return httpx.Response(200, json={"docs": [{"title": "Default Book"}]})


@pytest.fixture(autouse=True)
def fresh_rate_limiter(monkeypatch):
    """Give every test its own rate limiter with the stock limits."""
    limiter = RateLimiter(rate_limit=10, window_seconds=3600)
    monkeypatch.setattr("api.auth.rate_limiter", limiter)
    return limiter


@pytest.fixture
def stub_catalog():
    """Route catalog calls to the in-process upstream simulation."""
    requests = []

    def handler(request):
        requests.append(request)
        return catalog_handler(request)

    client = CatalogClient(
        search_url="https://catalog.test/search.json",
        transport=httpx.MockTransport(handler)
    )
    app.dependency_overrides[get_catalog_client] = lambda: client
    yield requests
    app.dependency_overrides.pop(get_catalog_client, None)


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Authorization header carrying a freshly issued token."""
    token = token_manager.issue_token("testuser")
    return {"Authorization": f"Bearer {token}"}
