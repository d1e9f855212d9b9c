"""HTTP middleware: request correlation, timing, access logging and throttling.

For every request the middleware:
- Accepts the incoming X-Request-ID header or generates a UUID
- Stores the request id in contextvars for log correlation
- Adds X-Request-ID, X-Response-Time and X-Request-Duration-ms headers
- Emits one ``http.access`` record (method, path, status, duration)
- Clears the context afterwards to prevent leaks between requests

``rate_limit_middleware`` counts each request against the client's quota and
answers throttled ones itself.

Usage:
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)  # registered last, runs first
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.errors import RateLimitExceededError
from app.core.exception_handlers import rate_limit_error_handler
from app.core.logging import clear_request_id, set_request_id
from app.core.rate_limit import enforce_rate_limit

logger = logging.getLogger("app.access")


async def request_id_middleware(request: Request, call_next) -> Response:
    """Correlate, time and log one HTTP request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with correlation and timing headers.

    Example:
        >>> # Request arrives with custom ID
        >>> # Headers: {"X-Request-ID": "req-abc-123"}
        >>> # Response includes:
        >>> # {"X-Request-ID": "req-abc-123", "X-Response-Time": "45.67ms"}
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        if settings.log.access_log:
            logger.info(
                "http.access",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Reject throttled requests before routing.

    Runs for every request, so unknown paths and the docs count against the
    client's quota too. An exception raised here would bypass the app's
    exception handlers, so the throttling response is built directly.
    """

    try:
        await enforce_rate_limit(request)
    except RateLimitExceededError as exc:
        return await rate_limit_error_handler(request, exc)
    return await call_next(request)
