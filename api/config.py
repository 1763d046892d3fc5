"""
API configuration settings.
"""

from typing import Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book Search Gateway"
    api_version: str = "1.0.0"
    api_description: str = "Author search over the Open Library catalog"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Upstream Catalog
    catalog_search_url: str = "https://openlibrary.org/search.json"
    upstream_timeout: float = 10.0

    # Security Settings
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    token_issuer: str = "book-search-gateway"
    login_users: str = ""  # Comma-separated user:password pairs, empty accepts anyone

    # Rate Limiting
    rate_limit: int = 10  # requests per window
    rate_limit_window: int = 3600  # seconds
    rate_limit_key: str = "peer"  # "peer" (host:port) or "ip"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator('rate_limit')
    @classmethod
    def validate_rate_limit(cls, v):
        """Ensure at least one request is allowed per window."""
        if v < 1:
            raise ValueError('rate_limit must be at least 1')
        return v

    @field_validator('rate_limit_window')
    @classmethod
    def validate_rate_limit_window(cls, v):
        if v <= 0:
            raise ValueError('rate_limit_window must be positive')
        return v

    @field_validator('rate_limit_key')
    @classmethod
    def validate_rate_limit_key(cls, v):
        """Ensure the client key mode is known."""
        valid_keys = ['peer', 'ip']
        if v.lower() not in valid_keys:
            raise ValueError(f'rate_limit_key must be one of: {valid_keys}')
        return v.lower()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def parsed_login_users(self) -> Dict[str, str]:
        """
        Parse the login allow list.

        Returns:
            Mapping of username to password; empty when no list is configured
        """
        users = {}
        for entry in self.login_users.split(","):
            entry = entry.strip()
            if not entry or ":" not in entry:
                continue
            username, password = entry.split(":", 1)
            users[username.strip()] = password
        return users


# Global config instance
config = APIConfig()
