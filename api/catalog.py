"""
Client for the upstream book catalog search API.
"""

from typing import Optional

import httpx
import structlog
from pydantic import ValidationError

from api.config import config
from api.models import SearchResults

logger = structlog.get_logger(__name__)


class CatalogError(Exception):
    """Base error for upstream catalog failures."""


class CatalogFetchError(CatalogError):
    """The upstream request failed or returned a non-success status."""


class CatalogDecodeError(CatalogError):
    """The upstream body was not a valid search payload."""


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class CatalogClient:
    """
    Async client for author searches against the catalog.
    """

    def __init__(
        self,
        search_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            search_url: Full URL of the search endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to stub the upstream
        """
        self.search_url = search_url or config.catalog_search_url
        self.client_config = {
            "timeout": timeout if timeout is not None else config.upstream_timeout,
            "follow_redirects": True,
        }
        if transport is not None:
            self.client_config["transport"] = transport

    async def search_by_author(self, author: str) -> SearchResults:
        """
        Search the catalog for books by an author.

        Args:
            author: Author name, sent percent-encoded as the ``author`` parameter

        Returns:
            SearchResults in upstream order

        Raises:
            CatalogFetchError: On transport failure or non-2xx status
            CatalogDecodeError: On a body that is not a search payload
        """
        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                response = await client.get(self.search_url, params={"author": author})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Catalog returned error status",
                author=author,
                status_code=e.response.status_code
            )
            raise CatalogFetchError(
                f"upstream returned status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Catalog request failed", author=author, error=_describe(e))
            raise CatalogFetchError(_describe(e)) from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("Catalog body is not JSON", author=author, error=_describe(e))
            raise CatalogDecodeError(_describe(e)) from e

        try:
            return SearchResults.model_validate(payload)
        except ValidationError as e:
            logger.warning("Catalog payload has unexpected shape", author=author)
            raise CatalogDecodeError(_describe(e)) from e


def get_catalog_client() -> CatalogClient:
    """Dependency returning a client bound to the configured catalog."""
    return CatalogClient()
