"""Application-level exception types.

This module defines domain errors used across the request gate, adapters and
routes, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    hint: str
    namespace: str
    limit: int
    retry_after: int
    backend: str
    reason: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (returned as ``error``).
        details: Optional structured details for debugging/observability.
        headers: Optional response headers to send with the error response.
    """

    code: str
    message: str
    details: ErrorDetails | None = None
    headers: dict[str, str] | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the request carries no authenticated session."""


class CsrfValidationError(AppError):
    """Raised when a state-changing request fails anti-forgery validation."""


class RateLimitExceededError(AppError):
    """Raised when a client exhausts its quota for a policy namespace."""


class RateLimitUnavailableError(AppError):
    """Raised when quota cannot be evaluated and the limiter fails closed."""


class TokenStoreUnavailableError(AppError):
    """Raised by token store adapters when the backing store is unreachable."""
