"""
Authentication and rate limiting for the FastAPI API.
"""

import math
import secrets
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

import structlog
from fastapi import Header, HTTPException, Request, Response, status
from jose import JOSEError, jwt
from pydantic import ValidationError

from api.config import APIConfig, config
from api.models import TokenClaims

logger = structlog.get_logger(__name__)


class TokenError(Exception):
    """Raised when a token cannot be issued or verified."""


class TokenManager:
    """Issues and verifies signed bearer tokens."""

    def __init__(self, settings: APIConfig = config):
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.issuer = settings.token_issuer
        self.expire_seconds = settings.access_token_expire_minutes * 60

    def issue_token(self, username: str, now: Optional[float] = None) -> str:
        """
        Issue a token for a user.

        Args:
            username: Username to embed in the token
            now: Issue time (unix seconds), defaults to the current time

        Returns:
            Encoded token string

        Raises:
            TokenError: If the token cannot be signed
        """
        issued_at = int(now if now is not None else time.time())
        claims = TokenClaims(
            username=username,
            iat=issued_at,
            exp=issued_at + self.expire_seconds,
            iss=self.issuer
        )
        try:
            return jwt.encode(claims.model_dump(), self.secret_key, algorithm=self.algorithm)
        except (JOSEError, NotImplementedError) as e:
            raise TokenError(str(e)) from e

    def verify_token(self, token: str) -> TokenClaims:
        """
        Verify a token's signature, expiry and issuer.

        Args:
            token: Encoded token string

        Returns:
            Decoded claims

        Raises:
            TokenError: If the token is invalid for any reason
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require_exp": True, "require_iat": True, "require_iss": True}
            )
            return TokenClaims.model_validate(payload)
        except (JOSEError, ValidationError) as e:
            raise TokenError(str(e)) from e


class RateLimiter:
    """
    Sliding-window request counter keyed by client.

    Check and record happen under one lock, so concurrent requests from the
    same client are counted exactly once each.
    """

    def __init__(
        self,
        rate_limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time
    ):
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _prune(self, requests: Deque[float], current_time: float) -> None:
        while requests and current_time - requests[0] >= self.window_seconds:
            requests.popleft()

    def _sweep(self, current_time: float) -> None:
        """Drop clients with no requests left in the window."""
        for key in list(self._requests):
            self._prune(self._requests[key], current_time)
            if not self._requests[key]:
                del self._requests[key]
        self._last_sweep = current_time

    def hit(self, key: str) -> Dict:
        """
        Count a request for a client if it is within the limit.

        Args:
            key: Client key

        Returns:
            Dictionary with ``allowed`` plus rate limit information
        """
        with self._lock:
            current_time = self._clock()
            if current_time - self._last_sweep >= self.window_seconds:
                self._sweep(current_time)

            requests = self._requests.setdefault(key, deque())
            self._prune(requests, current_time)

            allowed = len(requests) < self.rate_limit
            if allowed:
                requests.append(current_time)

            reset_time = requests[0] + self.window_seconds if requests else current_time
            return {
                "allowed": allowed,
                "rate_limit": self.rate_limit,
                "requests_remaining": max(0, self.rate_limit - len(requests)),
                "reset_time": reset_time,
                "retry_after": max(1, math.ceil(reset_time - current_time))
            }

    def tracked_clients(self) -> int:
        """Number of clients currently holding window state."""
        with self._lock:
            return len(self._requests)

    def reset(self) -> None:
        """Forget all recorded requests."""
        with self._lock:
            self._requests.clear()
            self._last_sweep = self._clock()


token_manager = TokenManager()
rate_limiter = RateLimiter(config.rate_limit, config.rate_limit_window)


def client_key(request: Request, mode: Optional[str] = None) -> str:
    """
    Build the rate limit key for a request.

    ``peer`` keys on the raw ``host:port`` socket address, ``ip`` on the
    host alone. Defaults to the configured ``rate_limit_key``.
    """
    if mode is None:
        mode = config.rate_limit_key
    if request.client is None:
        return "unknown"
    host, port = request.client.host, request.client.port
    if mode == "ip":
        return host
    return f"{host}:{port}"


def get_rate_limit_headers(rate_info: Dict) -> Dict[str, str]:
    """
    Get rate limit headers for response.

    Args:
        rate_info: Result of ``RateLimiter.hit``

    Returns:
        Dictionary with rate limit headers
    """
    return {
        "X-RateLimit-Limit": str(rate_info['rate_limit']),
        "X-RateLimit-Remaining": str(rate_info['requests_remaining']),
        "X-RateLimit-Reset": str(int(rate_info['reset_time']))
    }


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """
    Reject the request once its client has used up the window.

    Raises:
        HTTPException: 429 when the limit is exceeded
    """
    key = client_key(request)
    rate_info = rate_limiter.hit(key)
    headers = get_rate_limit_headers(rate_info)

    if not rate_info["allowed"]:
        logger.warning("Rate limit exceeded", client=key, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={**headers, "Retry-After": str(rate_info["retry_after"])},
        )

    response.headers.update(headers)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_bearer_token(authorization: Optional[str] = Header(None)) -> TokenClaims:
    """
    Verify the bearer token from the Authorization header.

    Args:
        authorization: Raw header value, expected as ``Bearer <token>``

    Returns:
        Claims of the verified token

    Raises:
        HTTPException: 401 if the header is missing, malformed or the token is invalid
    """
    if not authorization:
        raise _unauthorized("Missing Authorization header")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise _unauthorized("Invalid Authorization header format")

    token = parts[1]
    try:
        return token_manager.verify_token(token)
    except TokenError as e:
        logger.warning("Invalid token attempted", token=token[:10] + "...", error=str(e))
        raise _unauthorized("Invalid token")


def check_credentials(username: str, password: str, users: Optional[Dict[str, str]] = None) -> bool:
    """
    Check a username/password pair against the configured allow list.

    An empty allow list accepts any pair.
    """
    if users is None:
        users = config.parsed_login_users()
    if not users:
        return True
    expected = users.get(username)
    if expected is None:
        return False
    return secrets.compare_digest(expected.encode(), password.encode())
