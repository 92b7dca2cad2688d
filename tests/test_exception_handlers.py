"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, the flat error body, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from finance_tracker.core.errors import (
    AppError,
    AuthenticationAppError,
    CsrfValidationError,
    RateLimitExceededError,
    RateLimitUnavailableError,
    TokenStoreUnavailableError,
    ValidationAppError,
)
from finance_tracker.core.exception_handlers import (
    app_error_status,
    general_exception_handler,
    setup_exception_handlers,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        "error_cls,status_code",
        [
            (ValidationAppError, 400),
            (AuthenticationAppError, 401),
            (CsrfValidationError, 403),
            (RateLimitExceededError, 429),
            (RateLimitUnavailableError, 503),
            (TokenStoreUnavailableError, 503),
        ],
    )
    def test_status_mapping(self, error_cls, status_code: int) -> None:
        assert app_error_status(error_cls(code="c", message="m")) == status_code

    def test_error_body_is_flat(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses carry error, code and request_id at top level."""
        @app_with_handlers.get("/test-csrf")
        async def test_endpoint():
            raise CsrfValidationError(code="csrf_token_invalid", message="Invalid CSRF token")

        response = client.get("/test-csrf")

        assert response.status_code == 403
        data = response.json()
        assert data["error"] == "Invalid CSRF token"
        assert data["code"] == "csrf_token_invalid"
        assert "request_id" in data
        assert "details" not in data

    def test_details_included_when_provided(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-details")
        async def test_endpoint():
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="Too many requests. Please try again later.",
                details={"namespace": "write", "limit": 10, "retry_after": 4},
            )

        data = client.get("/test-details").json()

        assert data["details"] == {"namespace": "write", "limit": 10, "retry_after": 4}

    def test_error_headers_are_sent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify headers attached to the error reach the response."""
        @app_with_handlers.get("/test-headers")
        async def test_endpoint():
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="Too many requests. Please try again later.",
                headers={"Retry-After": "4", "X-RateLimit-Remaining": "0"},
            )

        response = client.get("/test-headers")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "4"
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: redis connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["code"] == "internal_server_error"
        assert data["error"] == "Internal server error"
        # Original error message should NOT be in response
        assert "redis connection" not in response.body.decode()
        assert "request_id" in data

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text

    def test_unhandled_error_through_app(self, app_with_handlers: FastAPI):
        @app_with_handlers.get("/boom")
        async def test_endpoint():
            raise RuntimeError("secret internals")

        client = TestClient(app_with_handlers, raise_server_exceptions=False)
        response = client.get("/boom")

        assert response.status_code == 500
        assert "secret internals" not in response.text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        """Verify calling setup_exception_handlers multiple times is safe."""
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
