"""Sliding-window rate limiting on top of the shared token store.

Design goals:
- No in-process counters: every hit goes through the token store, which
  serializes concurrent increments (Lua script in Redis, a lock in memory).
- Per-namespace policies: ``write`` (alias ``default``), ``read`` and ``auth``
  each carry their own quota and window.
- Explicit outage policy: when the store is unreachable the limiter either
  fails closed (raises RateLimitUnavailableError -> 503) or fails open
  (admits the request, marked ``degraded``), per RATE_LIMIT_FAIL_CLOSED.

Accounting is at-least-once: a hit accepted by the store is never rolled back,
even if the caller is cancelled before it sees the decision.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from fastapi import Request

from finance_tracker.adapters.token_store import AbstractTokenStore, create_token_store
from finance_tracker.core.config import RateLimitSettings, settings
from finance_tracker.core.errors import RateLimitUnavailableError, TokenStoreUnavailableError

logger = logging.getLogger(__name__)

LOOPBACK_FALLBACK_IP = "127.0.0.1"

NAMESPACE_ALIASES = {"default": "write"}


@dataclass(frozen=True)
class RateLimitPolicy:
    """Quota for one namespace: ``limit`` requests per ``window_seconds``."""

    name: str
    limit: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        admitted: Whether the request may proceed.
        limit: Max requests per window for the namespace.
        remaining: Requests left in the current window (never negative).
        reset_at: UNIX epoch seconds when the oldest counted hit leaves the window.
        retry_after_seconds: Suggested wait when rejected, else None.
        degraded: True when the decision was made without the token store.
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None = None
    degraded: bool = False


def build_policies(cfg: RateLimitSettings) -> dict[str, RateLimitPolicy]:
    """Build the namespace -> policy table from settings."""

    return {
        "write": RateLimitPolicy("write", cfg.write_requests, cfg.write_window_seconds),
        "read": RateLimitPolicy("read", cfg.read_requests, cfg.read_window_seconds),
        "auth": RateLimitPolicy("auth", cfg.auth_requests, cfg.auth_window_seconds),
    }


def get_client_ip(request: Request) -> str:
    """Resolve the originating client address from proxy headers.

    Precedence: first entry of ``x-forwarded-for``, then ``x-real-ip``, then a
    loopback fallback for untraceable origins.
    """

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return LOOPBACK_FALLBACK_IP


def hash_client_id(client_id: str) -> str:
    """Hash a client identifier for logging without exposing addresses."""
    return hashlib.sha256(client_id.encode()).hexdigest()[:16]


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Standard quota headers so clients can self-throttle."""

    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }


class SlidingWindowRateLimiter:
    """Admit or reject requests per ``(namespace, client)`` sliding window."""

    def __init__(
        self,
        *,
        store: AbstractTokenStore,
        policies: Mapping[str, RateLimitPolicy],
        key_prefix: str = "finance-tracker:ratelimit",
        fail_closed: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared token store holding the counters.
            policies: Namespace -> policy table.
            key_prefix: Prefix for every store key.
            fail_closed: Reject traffic when the store is unavailable.
            clock: Time source returning UNIX time in seconds.
        """
        if not policies:
            raise ValueError("at least one policy is required")

        self._store = store
        self._policies = dict(policies)
        self._key_prefix = key_prefix
        self._fail_closed = fail_closed
        self._clock = clock

    @property
    def store(self) -> AbstractTokenStore:
        return self._store

    def policy_for(self, namespace: str) -> RateLimitPolicy:
        """Return the policy for ``namespace`` (``default`` maps to ``write``).

        Raises:
            ValueError: If the namespace is unknown.
        """
        name = NAMESPACE_ALIASES.get(namespace, namespace)
        try:
            return self._policies[name]
        except KeyError:
            raise ValueError(f"unknown rate limit namespace: {namespace!r}") from None

    def build_key(self, policy: RateLimitPolicy, client_id: str) -> str:
        return f"{self._key_prefix}:{policy.name}:{client_id}"

    async def check(self, namespace: str, client_id: str) -> RateLimitDecision:
        """Count one request for ``client_id`` and decide whether to admit it.

        Args:
            namespace: Policy namespace (``read``, ``write``/``default``, ``auth``).
            client_id: Client identifier, typically the originating IP.

        Returns:
            RateLimitDecision for this request.

        Raises:
            ValueError: If the namespace is unknown or client_id is empty.
            RateLimitUnavailableError: If the store is down and the limiter
                fails closed.
        """
        if not client_id:
            raise ValueError("client_id must be a non-empty string")

        policy = self.policy_for(namespace)
        key = self.build_key(policy, client_id)
        window_ms = policy.window_seconds * 1000
        now_ms = int(self._clock() * 1000)

        try:
            window = await self._store.increment_with_window(
                key,
                window_seconds=policy.window_seconds,
                limit=policy.limit,
                now_ms=now_ms,
            )
        except TokenStoreUnavailableError as exc:
            return self._on_store_failure(policy, now_ms, exc)

        oldest_ms = window.oldest_ms if window.oldest_ms is not None else now_ms
        reset_at_ms = oldest_ms + window_ms
        remaining = max(0, policy.limit - window.count)

        if window.admitted:
            return RateLimitDecision(
                admitted=True,
                limit=policy.limit,
                remaining=remaining,
                reset_at=math.ceil(reset_at_ms / 1000),
            )

        return RateLimitDecision(
            admitted=False,
            limit=policy.limit,
            remaining=0,
            reset_at=math.ceil(reset_at_ms / 1000),
            retry_after_seconds=max(1, math.ceil((reset_at_ms - now_ms) / 1000)),
        )

    def _on_store_failure(
        self,
        policy: RateLimitPolicy,
        now_ms: int,
        exc: TokenStoreUnavailableError,
    ) -> RateLimitDecision:
        reset_at = math.ceil(now_ms / 1000) + policy.window_seconds

        if self._fail_closed:
            logger.error(
                "rate_limit.store_unavailable",
                extra={"namespace": policy.name, "policy": "fail_closed"},
            )
            raise RateLimitUnavailableError(
                code="rate_limit_unavailable",
                message="Service temporarily unavailable. Please try again later.",
                details={"namespace": policy.name, "retry_after": policy.window_seconds},
                headers={"Retry-After": str(policy.window_seconds)},
            ) from exc

        logger.warning(
            "rate_limit.store_unavailable",
            extra={"namespace": policy.name, "policy": "fail_open"},
        )
        return RateLimitDecision(
            admitted=True,
            limit=policy.limit,
            remaining=policy.limit,
            reset_at=reset_at,
            degraded=True,
        )


_limiter: SlidingWindowRateLimiter | None = None
_limiter_config: tuple | None = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Return the process-wide rate limiter.

    The limiter (and its store connection) is cached in-module; if the
    configuration changes (primarily in tests) it is rebuilt.

    Returns:
        SlidingWindowRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    cfg = settings.rate_limit
    config = (
        tuple(sorted(cfg.model_dump().items())),
        tuple(sorted(settings.token_store.model_dump().items())),
    )

    if _limiter is None or _limiter_config != config:
        _limiter = SlidingWindowRateLimiter(
            store=create_token_store(settings.token_store),
            policies=build_policies(cfg),
            key_prefix=cfg.key_prefix,
            fail_closed=cfg.fail_closed,
        )
        _limiter_config = config

    return _limiter


def reset_rate_limiter() -> None:
    """Forget the cached limiter so the next call builds a fresh one."""

    global _limiter, _limiter_config
    _limiter = None
    _limiter_config = None
