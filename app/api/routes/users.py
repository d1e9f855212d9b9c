"""User listing endpoints, one per connection strategy.

- ``/normal``: open a dedicated connection, query, close it.
- ``/pool``: lease a pooled connection, query, release the lease.
- ``/pool2``: let the pooled executor acquire and release internally.

Handlers are plain ``def`` functions: FastAPI runs them on its worker thread
pool, where blocking on the driver or on ``pool.acquire`` is acceptable.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.adapters.database.base import AbstractConnectionFactory
from app.adapters.database.executor import PooledQueryExecutor
from app.adapters.database.pool import ConnectionPool
from app.api.dependencies import (
    get_connection_factory,
    get_connection_pool,
    get_query_executor,
    get_user_query,
)
from app.core.errors import DatabaseAppError, QueryError
from app.schemas.errors import DatabaseErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    500: {"model": DatabaseErrorResponse, "description": "Database failure"},
}


def _database_error_response(
    request: Request, exc: DatabaseAppError, message: str, strategy: str
) -> JSONResponse:
    """Log a database failure and build the 500 ``{error, details}`` body."""

    logger.error(
        "db.query_failed",
        extra={
            "strategy": strategy,
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_code": exc.code,
            "error_msg": exc.message,
            "connection_fatal": isinstance(exc, QueryError) and exc.connection_fatal,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"error": message, "details": exc.message},
    )


@router.get("/normal", response_model=list[dict[str, Any]], responses=_ERROR_RESPONSES)
def list_users_dedicated_connection(
    request: Request,
    factory: AbstractConnectionFactory = Depends(get_connection_factory),
    query: str = Depends(get_user_query),
):
    """List users over a connection opened for this request only.

    The connection is closed on both success and failure.
    """
    try:
        with factory.open() as connection:
            rows = connection.execute(query)
    except DatabaseAppError as exc:
        return _database_error_response(
            request, exc, "Failed to load user due to database error.", "dedicated"
        )
    return rows


@router.get("/pool", response_model=list[dict[str, Any]], responses=_ERROR_RESPONSES)
def list_users_leased_connection(
    request: Request,
    pool: ConnectionPool = Depends(get_connection_pool),
    query: str = Depends(get_user_query),
):
    """List users over a connection leased from the pool.

    The lease is scoped to the ``with`` block, so it goes back to the pool
    even when the query fails.
    """
    try:
        with pool.acquire() as lease:
            rows = lease.execute(query)
    except DatabaseAppError as exc:
        return _database_error_response(
            request, exc, "Failed to load users due to database error.", "lease"
        )
    return rows


@router.get("/pool2", response_model=list[dict[str, Any]], responses=_ERROR_RESPONSES)
def list_users_pooled_query(
    request: Request,
    executor: PooledQueryExecutor = Depends(get_query_executor),
    query: str = Depends(get_user_query),
):
    """List users through the pooled executor (acquire/release handled inside)."""
    try:
        rows = executor.run(query)
    except DatabaseAppError as exc:
        return _database_error_response(
            request, exc, "Failed to load user due to database error.", "pooled_query"
        )
    return rows
