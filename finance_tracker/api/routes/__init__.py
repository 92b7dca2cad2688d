from __future__ import annotations

from finance_tracker.api.routes.health import router as health_router
from finance_tracker.api.routes.security import router as security_router
from finance_tracker.api.routes.transactions import router as transactions_router

__all__ = ["health_router", "security_router", "transactions_router"]
