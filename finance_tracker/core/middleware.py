"""HTTP middleware for request correlation and access logging.

The middleware:
- Accepts an incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars so guard and handler logs carry it
- Echoes request_id and total duration in response headers
- Emits one ``http.request`` log line per request with status and duration
- Clears context after request completion to prevent context leaks

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from finance_tracker.core.config import settings
from finance_tracker.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("finance_tracker.access")


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request and log its outcome.

    If the client provides the configured request id header (LOG_REQUEST_ID_HEADER,
    default X-Request-ID), that value is used; otherwise a new UUID is generated.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` and
            ``X-Request-Duration-ms`` headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log = logger.warning if response.status_code in (403, 429, 503) else logger.info
        log(
            "http.request",
            extra={
                "request_method": request.method,
                "request_path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
