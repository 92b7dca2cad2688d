"""Uniform cookie access for guards and route handlers.

A ``CookieJar`` built from a request alone is read-only; passing the outgoing
response as well grants write access. Guards that only inspect cookies (CSRF
validation) and handlers that issue them (token endpoint) therefore share the
same API instead of reimplementing cookie handling per call site.
"""

from __future__ import annotations

from typing import Literal

from fastapi import Request, Response


class ReadOnlyCookieJarError(RuntimeError):
    """Raised when writing through a jar that has no response attached."""


class CookieJar:
    """Read cookies from the request, write them to the response."""

    def __init__(self, request: Request, response: Response | None = None) -> None:
        self._request = request
        self._response = response
        self._pending: dict[str, str | None] = {}

    @classmethod
    def read_only(cls, request: Request) -> "CookieJar":
        return cls(request)

    @classmethod
    def read_write(cls, request: Request, response: Response) -> "CookieJar":
        return cls(request, response)

    @property
    def writable(self) -> bool:
        return self._response is not None

    def get(self, name: str) -> str | None:
        """Return the cookie value, honoring writes made through this jar.

        Empty values are reported as absent.
        """
        if name in self._pending:
            return self._pending[name]
        return self._request.cookies.get(name) or None

    def set(
        self,
        name: str,
        value: str,
        *,
        max_age: int,
        secure: bool,
        httponly: bool = True,
        samesite: Literal["lax", "strict", "none"] = "strict",
        path: str = "/",
    ) -> None:
        response = self._require_response(name)
        response.set_cookie(
            key=name,
            value=value,
            max_age=max_age,
            path=path,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        )
        self._pending[name] = value

    def delete(self, name: str, *, path: str = "/") -> None:
        response = self._require_response(name)
        response.delete_cookie(key=name, path=path)
        self._pending[name] = None

    def _require_response(self, name: str) -> Response:
        if self._response is None:
            raise ReadOnlyCookieJarError(f"cannot write cookie {name!r} through a read-only jar")
        return self._response
