"""CSRF protection: double-submit token held in an HTTP-only cookie.

Flow:
1. ``GET /v1/csrf-token`` (or session establishment) issues a 32-byte random
   token, stores it in the ``csrf-token`` cookie and returns it in the body.
2. Client code echoes it in the ``x-csrf-token`` header on POST/PUT/DELETE/PATCH.
3. ``CsrfGuard.verify`` compares header and cookie with ``hmac.compare_digest``.

Each rejection carries its own code so clients can tell "no session token"
(re-issue) apart from a mismatch (stale token or forgery attempt).
"""

from __future__ import annotations

import binascii
import hmac
import logging
import re
import secrets
from typing import NoReturn

from fastapi import Request

from finance_tracker.core.config import settings
from finance_tracker.core.cookies import CookieJar
from finance_tracker.core.errors import CsrfValidationError

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "x-csrf-token"
TOKEN_BYTES = 32
TOKEN_MAX_AGE_SECONDS = 60 * 60 * 24
STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})

_TOKEN_RE = re.compile(rf"[0-9a-f]{{{TOKEN_BYTES * 2}}}")


def generate_csrf_token() -> str:
    """Return a new 64-character hex token (32 random bytes)."""
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed_token(token: str | None) -> bool:
    """True for a 64-character lowercase hex string as minted by this module."""
    return bool(token) and _TOKEN_RE.fullmatch(token) is not None


def validate_csrf_token(token: str | None, stored_token: str | None) -> bool:
    """Compare a presented token with the session token in constant time.

    Absent values, differing lengths and non-hex input are all invalid; none
    of them raise.
    """
    if not token or not stored_token:
        return False

    if len(token) != len(stored_token):
        return False

    try:
        token_bytes = binascii.unhexlify(token)
        stored_bytes = binascii.unhexlify(stored_token)
    except ValueError:
        # binascii.Error and non-ASCII input both subclass ValueError
        return False

    return hmac.compare_digest(token_bytes, stored_bytes)


def requires_csrf(method: str) -> bool:
    return method.upper() in STATE_CHANGING_METHODS


class CsrfGuard:
    """Issue and verify anti-forgery tokens."""

    def __init__(
        self,
        *,
        cookie_secure: bool,
        max_age_seconds: int = TOKEN_MAX_AGE_SECONDS,
        cookie_name: str = CSRF_COOKIE_NAME,
        header_name: str = CSRF_HEADER_NAME,
    ) -> None:
        self.cookie_secure = cookie_secure
        self.max_age_seconds = max_age_seconds
        self.cookie_name = cookie_name
        self.header_name = header_name

    def issue(self, cookies: CookieJar) -> str:
        """Return the session's token, minting one if none is usable.

        An existing well-formed cookie token is reused so in-flight requests
        keep validating; the cookie is rewritten either way to refresh its
        lifetime.

        Raises:
            ReadOnlyCookieJarError: If ``cookies`` has no response attached.
        """
        token = cookies.get(self.cookie_name)
        reused = is_well_formed_token(token)
        if not reused:
            token = generate_csrf_token()

        cookies.set(
            self.cookie_name,
            token,
            max_age=self.max_age_seconds,
            secure=self.cookie_secure,
            httponly=True,
            samesite="strict",
            path="/",
        )
        logger.info("csrf.issued", extra={"reused": reused})
        return token

    def verify(self, request: Request, cookies: CookieJar) -> None:
        """Validate the request's header token against the session cookie.

        Safe methods (GET, HEAD, OPTIONS, ...) pass without inspection.

        Raises:
            CsrfValidationError: With code ``csrf_token_missing``,
                ``csrf_session_token_missing`` or ``csrf_token_invalid``.
        """
        if not requires_csrf(request.method):
            return

        header_token = request.headers.get(self.header_name)
        if not header_token:
            self._reject(request, "csrf_token_missing", "CSRF token missing")

        cookie_token = cookies.get(self.cookie_name)
        if not cookie_token:
            self._reject(request, "csrf_session_token_missing", "CSRF token not found in session")

        if not validate_csrf_token(header_token, cookie_token):
            self._reject(request, "csrf_token_invalid", "Invalid CSRF token")

    def _reject(self, request: Request, code: str, message: str) -> NoReturn:
        logger.warning(
            "csrf.rejected",
            extra={
                "reason": code,
                "request_method": request.method,
                "request_path": request.url.path,
            },
        )
        raise CsrfValidationError(code=code, message=message)


def get_csrf_guard() -> CsrfGuard:
    """Build the guard from current settings."""

    secure = settings.csrf.cookie_secure
    if secure is None:
        secure = settings.is_production
    return CsrfGuard(cookie_secure=secure, max_age_seconds=settings.csrf.max_age_seconds)
