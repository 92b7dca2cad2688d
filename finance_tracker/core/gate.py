"""Request gate: rate limit, then authentication, then CSRF.

Rate limiting runs first to shed abusive traffic before any session lookup or
token comparison. The gate keeps no per-request state; every decision comes
from the token store, the auth provider and the request's cookies.

Usage:
    write_gate = RequestGate("write")

    @router.post("/transactions")
    async def create(user: Annotated[User, Depends(write_gate)]): ...
"""

import logging
from typing import Annotated

from fastapi import Depends, Request, Response

from finance_tracker.core.auth import AbstractAuthProvider, get_auth_provider
from finance_tracker.core.config import settings
from finance_tracker.core.cookies import CookieJar
from finance_tracker.core.csrf import CsrfGuard, get_csrf_guard
from finance_tracker.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededError,
)
from finance_tracker.core.rate_limit import (
    SlidingWindowRateLimiter,
    get_client_ip,
    get_rate_limiter,
    hash_client_id,
    rate_limit_headers,
)
from finance_tracker.schemas.user import User

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please try again later."


class RequestGate:
    """FastAPI dependency sequencing the request guards.

    Args:
        namespace: Rate limit policy (``read``, ``write``/``default``, ``auth``).
        require_auth: Reject anonymous requests with 401.
        csrf_exempt: Skip CSRF validation (only for the token-issuing endpoint).
    """

    def __init__(
        self,
        namespace: str = "write",
        *,
        require_auth: bool = True,
        csrf_exempt: bool = False,
    ) -> None:
        self.namespace = namespace
        self.require_auth = require_auth
        self.csrf_exempt = csrf_exempt

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RequestGate(namespace={self.namespace!r}, require_auth={self.require_auth}, "
            f"csrf_exempt={self.csrf_exempt})"
        )

    async def __call__(
        self,
        request: Request,
        response: Response,
        limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
        auth_provider: Annotated[AbstractAuthProvider, Depends(get_auth_provider)],
        csrf_guard: Annotated[CsrfGuard, Depends(get_csrf_guard)],
    ) -> User | None:
        quota_headers: dict[str, str] = {}
        if settings.rate_limit.enabled:
            quota_headers = await self._enforce_rate_limit(request, limiter)
            response.headers.update(quota_headers)

        try:
            user = await self._authenticate(request, auth_provider)
            if not self.csrf_exempt:
                csrf_guard.verify(request, CookieJar.read_only(request))
        except AppError as exc:
            # Rejections after the quota check still report quota state
            exc.headers = {**quota_headers, **(exc.headers or {})}
            raise

        return user

    async def _enforce_rate_limit(
        self,
        request: Request,
        limiter: SlidingWindowRateLimiter,
    ) -> dict[str, str]:
        client_ip = get_client_ip(request)
        decision = await limiter.check(self.namespace, client_ip)
        headers = rate_limit_headers(decision)

        if decision.admitted:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "namespace": self.namespace,
                    "client_hash": hash_client_id(client_ip),
                    "limit": decision.limit,
                    "remaining": decision.remaining,
                    "degraded": decision.degraded,
                },
            )
            return headers

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "namespace": self.namespace,
                "client_hash": hash_client_id(client_ip),
                "limit": decision.limit,
                "retry_after_s": decision.retry_after_seconds,
            },
        )
        headers["Retry-After"] = str(decision.retry_after_seconds or 1)
        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message=TOO_MANY_REQUESTS_MESSAGE,
            details={
                "namespace": self.namespace,
                "limit": decision.limit,
                "retry_after": decision.retry_after_seconds or 1,
            },
            headers=headers,
        )

    async def _authenticate(
        self,
        request: Request,
        auth_provider: AbstractAuthProvider,
    ) -> User | None:
        if not self.require_auth:
            return None

        user = await auth_provider.get_current_user(request)
        if user is None:
            logger.warning(
                "auth.missing_user",
                extra={"request_method": request.method, "request_path": request.url.path},
            )
            raise AuthenticationAppError(code="unauthorized", message="Unauthorized")
        return user


read_gate = RequestGate("read")
write_gate = RequestGate("write")
auth_gate = RequestGate("auth")
csrf_issuance_gate = RequestGate("read", csrf_exempt=True)
