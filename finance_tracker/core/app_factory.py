from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from finance_tracker.api.routes import health_router, security_router, transactions_router
from finance_tracker.core.config import settings
from finance_tracker.core.exception_handlers import setup_exception_handlers
from finance_tracker.core.logging import configure_logging
from finance_tracker.core.middleware import request_id_middleware
from finance_tracker.core.openapi import apply_openapi_customizations, TAGS_METADATA
from finance_tracker.core.rate_limit import get_rate_limiter, reset_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "token_store_backend": settings.token_store.backend,
            "rate_limit_fail_closed": settings.rate_limit.fail_closed,
        },
    )
    yield
    await get_rate_limiter().store.close()
    reset_rate_limiter()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Finance Tracker API",
        description=(
            "Personal-finance tracking API. Every business endpoint sits behind a "
            "request gate: sliding-window rate limiting per client address, "
            "session authentication, and CSRF validation on state-changing requests."
        ),
        version="0.1.0",
        openapi_tags=TAGS_METADATA,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(security_router, prefix="/v1")
    app.include_router(transactions_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
