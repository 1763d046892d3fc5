"""
FastAPI main application for the Book Search Gateway.
"""

import html
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import (
    TokenError, check_credentials, enforce_rate_limit, token_manager, verify_bearer_token
)
from api.catalog import (
    CatalogClient, CatalogDecodeError, CatalogFetchError, get_catalog_client
)
from api.config import config
from api.models import ErrorResponse, HealthResponse, SearchResults, TokenResponse

# Setup logging
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting Book Search Gateway",
        catalog=config.catalog_search_url,
        rate_limit=config.rate_limit,
        rate_limit_window=config.rate_limit_window
    )
    if not config.parsed_login_users():
        logger.warning("No login users configured, /login accepts any credentials")

    yield

    logger.info("Shutting down Book Search Gateway")


# Create FastAPI application
app = FastAPI(
    title=config.api_title,
    description="""
    Search the Open Library catalog by author.

    ## Authentication

    `/api/search` requires a token from `/login`. Include it in the Authorization header:

    ```
    Authorization: Bearer your_token_here
    ```

    ## Rate Limiting

    Each client is limited to a fixed number of requests per window. Rate limit
    information is included in response headers.
    """,
    version=config.api_version,
    lifespan=lifespan
)


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=config.api_version
    )


async def _search(author: Optional[str], catalog: CatalogClient) -> SearchResults:
    if not author:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing 'author' query parameter"
        )

    try:
        results = await catalog.search_by_author(author)
    except CatalogFetchError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error fetching data: {e}"
        )
    except CatalogDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error decoding data: {e}"
        )

    if not results.docs:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No books found for author {author}"
        )

    logger.info("Search completed", author=author, results=len(results.docs))
    return results


# Search endpoints
@app.get(
    "/search",
    response_model=SearchResults,
    tags=["Search"],
    dependencies=[Depends(enforce_rate_limit)]
)
async def search_books(
    author: Optional[str] = None,
    catalog: CatalogClient = Depends(get_catalog_client)
):
    """
    Search books by author.

    - **author**: Author name to search for
    """
    return await _search(author, catalog)


@app.get(
    "/api/search",
    response_model=SearchResults,
    tags=["Search"],
    dependencies=[Depends(enforce_rate_limit), Depends(verify_bearer_token)]
)
async def search_books_protected(
    author: Optional[str] = None,
    catalog: CatalogClient = Depends(get_catalog_client)
):
    """
    Search books by author; requires a bearer token.

    - **author**: Author name to search for
    """
    return await _search(author, catalog)


# Authentication endpoints
@app.get("/login", response_model=TokenResponse, tags=["Auth"])
async def login(username: Optional[str] = None, password: Optional[str] = None):
    """
    Issue a bearer token.

    - **username**: Username
    - **password**: Password
    """
    if not username or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing credentials"
        )

    if not check_credentials(username, password):
        logger.warning("Login rejected", username=username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    try:
        token = token_manager.issue_token(username)
    except TokenError as e:
        logger.error("Failed to sign token", username=username, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error generating token"
        )

    logger.info("Token issued", username=username)
    return TokenResponse(token=token)


@app.get(
    "/vulnerable",
    response_class=HTMLResponse,
    tags=["Messages"],
    dependencies=[Depends(enforce_rate_limit)]
)
async def echo_message(message: str = ""):
    """
    Echo a message back inside an HTML page.

    - **message**: Text to display, HTML-escaped
    """
    return (
        "<html><body><h1>User Message:</h1>"
        f"<p>{html.escape(message)}</p></body></html>"
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
