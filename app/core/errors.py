"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    limit: int
    window_seconds: int
    capacity: int
    timeout_seconds: float
    driver_code: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class RateLimitExceededError(AppError):
    """Raised when a client exceeds its request quota for the current window."""


class DatabaseAppError(AppError):
    """Base class for failures talking to the database."""


class DatabaseConnectionError(DatabaseAppError):
    """Raised when a new database session cannot be established."""


class PoolExhaustedError(DatabaseAppError):
    """Raised when no pooled connection frees up within the acquire timeout."""


class PoolClosedError(DatabaseAppError):
    """Raised when a connection is requested from a pool that is shutting down."""


@dataclass
class QueryError(DatabaseAppError):
    """Raised when the database rejects or fails a query.

    Attributes:
        connection_fatal: True when the failure left the session unusable, so
            the pool must discard the connection instead of recycling it.
    """

    connection_fatal: bool = False


class LeaseReleasedError(RuntimeError):
    """Raised on use or release of a lease that was already released.

    This signals a programming error in the caller, not a database fault.
    """
