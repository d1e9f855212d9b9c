"""Caller-facing query API over the connection pool."""

from __future__ import annotations

from typing import Any

from app.adapters.database.base import Rows
from app.adapters.database.pool import ConnectionPool


class PooledQueryExecutor:
    """Runs single queries on pooled connections without exposing leases.

    Each ``run`` is one unit of work: acquire, execute, release. Handlers use
    this so they never manipulate leases directly.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    def run(self, query: str, params: Any = None) -> Rows:
        """Run one query on a pooled connection.

        Raises:
            PoolExhaustedError: No connection became available in time.
            DatabaseConnectionError: A new pooled connection could not be opened.
            QueryError: The database rejected or failed the query.
        """
        return self._pool.execute(query, params)
