from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from finance_tracker.core.rate_limit import SlidingWindowRateLimiter, get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a simple status response to verify the API process is up. Not
    gated, so load balancers never consume quota.
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
) -> JSONResponse:
    """Readiness check: 503 while the rate limit token store is unreachable."""

    if await limiter.store.ping():
        return JSONResponse({"status": "ok", "token_store": "ok"})
    return JSONResponse({"status": "degraded", "token_store": "unavailable"}, status_code=503)
