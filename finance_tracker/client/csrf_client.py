"""CSRF-aware HTTP client for the Finance Tracker API.

Wraps ``httpx.AsyncClient`` (which keeps the ``csrf-token`` cookie in its jar)
and takes care of the header side of the double-submit scheme:

- fetches the token once from ``GET /v1/csrf-token`` and caches it
- attaches ``X-CSRF-Token`` to POST/PUT/PATCH/DELETE requests
- on a 403 whose ``error`` mentions CSRF, drops the cached token and retries
  exactly once with a freshly issued one
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from finance_tracker.core.csrf import STATE_CHANGING_METHODS
from finance_tracker.core.errors import AppError

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
DEFAULT_TOKEN_PATH = "/v1/csrf-token"


class CsrfTokenFetchError(AppError):
    """Raised when the token endpoint does not return a usable token."""


def is_csrf_rejection(response: httpx.Response) -> bool:
    """True for a 403 whose JSON ``error`` message is CSRF related."""
    if response.status_code != 403:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    error = body.get("error") if isinstance(body, dict) else None
    return isinstance(error, str) and "CSRF" in error


class CsrfAwareClient:
    """Send requests with a cached CSRF token and one transparent retry."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        token_path: str = DEFAULT_TOKEN_PATH,
    ) -> None:
        self._client = client
        self._token_path = token_path
        self._token: str | None = None
        self._lock = asyncio.Lock()

    @property
    def cached_token(self) -> str | None:
        return self._token

    def clear_token(self) -> None:
        """Forget the cached token; the next state-changing call re-issues one."""
        self._token = None

    async def fetch_token(self) -> str:
        """Return the cached token or fetch one, sharing a single in-flight fetch.

        Raises:
            CsrfTokenFetchError: If the endpoint fails or returns no token.
        """
        if self._token:
            return self._token

        async with self._lock:
            # Another task may have fetched it while we waited for the lock
            if self._token:
                return self._token

            response = await self._client.get(self._token_path)
            if response.is_error:
                raise CsrfTokenFetchError(
                    code="csrf_token_fetch_failed",
                    message="Failed to fetch CSRF token",
                    details={"context": {"status_code": response.status_code}},
                )

            try:
                body = response.json()
            except ValueError as exc:
                raise CsrfTokenFetchError(
                    code="csrf_token_fetch_failed",
                    message="CSRF token endpoint returned invalid JSON",
                ) from exc

            token = body.get("token") if isinstance(body, dict) else None
            if not isinstance(token, str) or not token:
                raise CsrfTokenFetchError(
                    code="csrf_token_fetch_failed",
                    message="CSRF token endpoint returned no token",
                )

            self._token = token
            return token

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, adding the CSRF header for state-changing verbs."""
        method = method.upper()
        if method not in STATE_CHANGING_METHODS:
            return await self._client.request(method, url, **kwargs)

        response = await self._send_with_token(method, url, **kwargs)
        if not is_csrf_rejection(response):
            return response

        logger.info("csrf_client.retry", extra={"request_method": method, "request_path": url})
        self.clear_token()
        response = await self._send_with_token(method, url, **kwargs)
        if is_csrf_rejection(response):
            self.clear_token()
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def _send_with_token(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        token = await self.fetch_token()
        headers = dict(kwargs.pop("headers", None) or {})
        headers[CSRF_HEADER] = token
        return await self._client.request(method, url, headers=headers, **kwargs)
