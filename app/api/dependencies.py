"""FastAPI dependencies exposing the database collaborators built at startup.

The lifespan stores them on ``app.state``; routes receive them through
``Depends`` so tests can swap in fakes per app instance.
"""

from __future__ import annotations

from fastapi import Request

from app.adapters.database.base import AbstractConnectionFactory
from app.adapters.database.executor import PooledQueryExecutor
from app.adapters.database.pool import ConnectionPool


def get_connection_factory(request: Request) -> AbstractConnectionFactory:
    """Factory opening one unshared connection per call."""
    return request.app.state.connection_factory


def get_connection_pool(request: Request) -> ConnectionPool:
    """Process-wide connection pool."""
    return request.app.state.connection_pool


def get_query_executor(request: Request) -> PooledQueryExecutor:
    """Executor running single queries on pooled connections."""
    return request.app.state.query_executor


def get_user_query(request: Request) -> str:
    """Query issued by the user listing endpoints."""
    return request.app.state.user_query
