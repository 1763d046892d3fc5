"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Book(BaseModel):
    """A single catalog document; only the title is kept."""
    title: str = Field("", description="Book title")

    @field_validator("title", mode="before")
    @classmethod
    def null_title_as_empty(cls, v):
        return "" if v is None else v


class SearchResults(BaseModel):
    """Upstream search payload, also returned as-is to the caller."""
    docs: List[Book] = Field(default_factory=list, description="Matching books in upstream order")

    @field_validator("docs", mode="before")
    @classmethod
    def null_docs_as_empty(cls, v):
        """Upstream may send ``null`` for an empty result list."""
        return [] if v is None else v


class TokenClaims(BaseModel):
    """Claims carried by an access token."""
    username: str = Field(..., description="Authenticated username")
    iat: int = Field(..., description="Issued-at (unix seconds)")
    exp: int = Field(..., description="Expiry (unix seconds)")
    iss: str = Field(..., description="Token issuer")


class TokenResponse(BaseModel):
    """Login response model."""
    token: str = Field(..., description="Signed bearer token")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
