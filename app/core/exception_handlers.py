"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- RateLimitExceededError → configured throttling status (429 by default)
- DatabaseAppError escaping a route → 500 with {error, details}
- Other AppError subclasses → appropriate HTTP status (400, 500)
- Unexpected Exception → generic 500 (safety net)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    DatabaseAppError,
    RateLimitExceededError,
    ValidationAppError,
)
from app.core.logging import get_request_id
from app.core.rate_limit import RATE_LIMIT_ERROR

logger = logging.getLogger(__name__)

DATABASE_ERROR_MESSAGE = "Failed to load user due to database error."


async def rate_limit_error_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Turn a throttled request into the rate limit response.

    Body: ``{"error": "Too many requests", "message": "..."}``. When enabled,
    ``Retry-After`` and ``X-RateLimit-*`` headers tell the client when the
    window resets.

    Args:
        request: FastAPI request object.
        exc: Raised rate limit error.

    Returns:
        JSONResponse with the configured throttling status.
    """
    details = exc.details or {}
    context = details.get("context", {})

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(details.get("retry_after", 0))
        headers["X-RateLimit-Limit"] = str(details.get("limit", ""))
        headers["X-RateLimit-Remaining"] = str(context.get("remaining", 0))
        headers["X-RateLimit-Reset"] = str(context.get("reset_at", ""))

    return JSONResponse(
        status_code=settings.app.rate_limit_status_code,
        content={"error": RATE_LIMIT_ERROR, "message": exc.message},
        headers=headers or None,
    )


async def database_error_handler(request: Request, exc: DatabaseAppError) -> JSONResponse:
    """Handle database failures that escaped route-level handling."""
    logger.error(
        "db.request_failed",
        extra={
            "error_code": exc.code,
            "error_msg": exc.message,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=500,
        content={"error": DATABASE_ERROR_MESSAGE, "details": exc.message},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - ValidationAppError → 400 Bad Request (client fault)
    - anything else → 500 Internal Server Error (server fault)

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = 400 if isinstance(exc, ValidationAppError) else 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        }
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Starlette picks the handler registered for the closest class in the
    exception's MRO, so specific handlers win over the ``AppError`` and
    ``Exception`` fallbacks.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_error_handler)
    app.exception_handler(DatabaseAppError)(database_error_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
