"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → 400, 401, 403, 429, 503 (see app_error_status)
- Unexpected Exception → generic 500 (safety net)
- Body shape: {"error": <message>, "code": <code>, "request_id": <id>}
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from finance_tracker.core.errors import (
    AppError,
    AuthenticationAppError,
    CsrfValidationError,
    RateLimitExceededError,
    RateLimitUnavailableError,
    TokenStoreUnavailableError,
)
from finance_tracker.core.logging import get_request_id

logger = logging.getLogger(__name__)


def app_error_status(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, (RateLimitUnavailableError, TokenStoreUnavailableError)):
        return 503
    if isinstance(exc, CsrfValidationError):
        return 403
    if isinstance(exc, AuthenticationAppError):
        return 401
    return 400  # ValidationAppError and other client faults


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error: Human-readable message (what client code matches on)
    - code: Machine-readable error code
    - request_id: For distributed tracing
    - details: Optional structured context

    Headers attached to the error (rate limit state, Retry-After) are copied
    onto the response.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = app_error_status(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    content = {
        "error": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }
    if exc.details:
        content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=exc.headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "code": "internal_server_error",
            "request_id": get_request_id(),
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
