"""
Tests for the upstream catalog client.
"""

import httpx
import pytest

from api.catalog import CatalogClient, CatalogDecodeError, CatalogFetchError


def make_client(handler) -> CatalogClient:
    return CatalogClient(
        search_url="https://catalog.test/search.json",
        timeout=5.0,
        transport=httpx.MockTransport(handler)
    )


class TestCatalogClient:
    """Test cases for CatalogClient."""

    @pytest.mark.asyncio
    async def test_returns_titles_in_order(self):
        def handler(request):
            return httpx.Response(200, json={
                "numFound": 2,
                "docs": [
                    {"title": "A Wizard of Earthsea", "key": "/works/OL1W"},
                    {"title": "The Left Hand of Darkness"},
                ]
            })

        results = await make_client(handler).search_by_author("Ursula K. Le Guin")
        assert [book.title for book in results.docs] == [
            "A Wizard of Earthsea",
            "The Left Hand of Darkness",
        ]

    @pytest.mark.asyncio
    async def test_author_is_percent_encoded(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"docs": []})

        await make_client(handler).search_by_author("Tom & Jerry/Co")
        request = seen[0]
        assert request.url.host == "catalog.test"
        assert request.url.path == "/search.json"
        assert request.url.params["author"] == "Tom & Jerry/Co"
        assert b" " not in request.url.query
        assert b"&Jerry" not in request.url.query

    @pytest.mark.asyncio
    async def test_missing_docs_is_empty(self):
        results = await make_client(lambda request: httpx.Response(200, json={})).search_by_author("x")
        assert results.docs == []

    @pytest.mark.asyncio
    async def test_missing_title_defaults_to_empty(self):
        handler = lambda request: httpx.Response(200, json={"docs": [{"key": "/works/OL1W"}]})
        results = await make_client(handler).search_by_author("x")
        assert results.docs[0].title == ""

    @pytest.mark.asyncio
    async def test_null_docs_is_empty(self):
        handler = lambda request: httpx.Response(200, json={"docs": None})
        results = await make_client(handler).search_by_author("x")
        assert results.docs == []

    @pytest.mark.asyncio
    async def test_null_title_defaults_to_empty(self):
        handler = lambda request: httpx.Response(200, json={"docs": [{"title": None}]})
        results = await make_client(handler).search_by_author("x")
        assert results.docs[0].title == ""

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogFetchError, match="connection refused"):
            await make_client(handler).search_by_author("x")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(CatalogFetchError):
            await make_client(handler).search_by_author("x")

    @pytest.mark.asyncio
    async def test_error_status(self):
        handler = lambda request: httpx.Response(502, text="bad gateway")
        with pytest.raises(CatalogFetchError, match="502"):
            await make_client(handler).search_by_author("x")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        handler = lambda request: httpx.Response(200, text="<html>oops</html>")
        with pytest.raises(CatalogDecodeError):
            await make_client(handler).search_by_author("x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        [{"title": "a"}],
        {"docs": "not a list"},
        {"docs": [{"title": ["nested"]}]},
    ])
    async def test_unexpected_shape(self, payload):
        handler = lambda request: httpx.Response(200, json=payload)
        with pytest.raises(CatalogDecodeError):
            await make_client(handler).search_by_author("x")

    def test_defaults_come_from_config(self):
        from api.config import config
        client = CatalogClient()
        assert client.search_url == config.catalog_search_url
        assert client.client_config["timeout"] == config.upstream_timeout
        assert "transport" not in client.client_config
