"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports
``finance_tracker.core.config`` so the global settings pick them up.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault(
    "APP_AUTH_TOKENS",
    "test-session-alice:user_alice:alice@example.com,test-session-bob:user_bob",
)

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from finance_tracker.adapters.token_store import InMemoryTokenStore
from finance_tracker.core.config import RateLimitSettings
from finance_tracker.core.rate_limit import (
    SlidingWindowRateLimiter,
    build_policies,
    get_rate_limiter,
)


class FakeClock:
    """Deterministic clock for window arithmetic."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore(max_keys=1000)


@pytest.fixture
def limiter(token_store: InMemoryTokenStore, clock: FakeClock) -> SlidingWindowRateLimiter:
    """Limiter with the default policies (write 10/10s, read 30/10s, auth 5/60s)."""
    return SlidingWindowRateLimiter(
        store=token_store,
        policies=build_policies(RateLimitSettings()),
        clock=clock,
    )


@pytest.fixture
def app(limiter: SlidingWindowRateLimiter) -> FastAPI:
    """Fresh app whose gate uses the isolated limiter fixture."""
    from finance_tracker.api.routes.transactions import get_transaction_service
    from finance_tracker.core.app_factory import create_app

    application = create_app()
    application.dependency_overrides[get_rate_limiter] = lambda: limiter
    get_transaction_service().clear()
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def alice_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-session-alice"}
