"""Rate limiting check applied to every request.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: one middleware throttles every request, so routes carry
  no rate limiting code.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.
- Injectable: the limiter lives on ``app.state`` so each app instance (and
  each test) owns independent counters.

Rate limiting strategy:
- Global fixed-window limit per client address, applied to every request,
  including unknown paths and the docs.
- Throttled requests never reach a handler or the connection pool, and the
  check runs on the event loop so it never waits for a worker thread.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR = "Too many requests"


def build_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter:
    """Create the limiter configured by application settings.

    Args:
        app_settings: Optional app settings; defaults to global settings.

    Returns:
        AbstractRateLimiter: Fresh limiter with empty counters.
    """

    cfg = app_settings or settings.app
    return InMemoryFixedWindowRateLimiter(
        limit=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
    )


def rate_limit_message(limit: int, window_seconds: int) -> str:
    """Human-readable rejection message for the configured quota."""

    if window_seconds == 60:
        period = "minute"
    else:
        period = f"{window_seconds} seconds"
    return f"Too many requests. Maximum {limit} requests per {period}."


def _build_rate_limit_key(request: Request) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.

    Returns:
        str: Namespaced limiter key.
    """

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_rate_limit(request: Request) -> None:
    """Enforce rate limits for one request.

    When enabled, counts the request against the client's window. If the
    client exceeds the configured rate, raises ``RateLimitExceededError``,
    which ``rate_limit_middleware`` turns into the throttling response.

    Args:
        request: FastAPI request.

    Raises:
        RateLimitExceededError: When the rate limit is exceeded.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = _build_rate_limit_key(request)
    key_hash = _hash_limiter_key(key)

    decision = limiter.admit(key)
    if decision.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "window_s": limiter.window_seconds,
            },
        )
        return

    retry_after = decision.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": decision.limit,
            "window_s": limiter.window_seconds,
            "retry_after_s": retry_after,
            "path": request.url.path,
        },
    )

    raise RateLimitExceededError(
        code="rate_limit_exceeded",
        message=rate_limit_message(decision.limit, limiter.window_seconds),
        details={
            "limit": decision.limit,
            "window_seconds": limiter.window_seconds,
            "retry_after": retry_after,
            "context": {"remaining": decision.remaining, "reset_at": decision.reset_at},
        },
    )
