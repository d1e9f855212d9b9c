"""Database adapters: connection factories, the connection pool and the executor.

Routes and services depend on the abstractions in ``base`` so the driver can
be swapped (or faked in tests) without touching the HTTP layer.
"""

from app.adapters.database.base import (
    AbstractConnection,
    AbstractConnectionFactory,
    Rows,
)
from app.adapters.database.executor import PooledQueryExecutor
from app.adapters.database.factory import create_connection_factory
from app.adapters.database.pool import ConnectionPool, Lease, PoolStats

__all__ = [
    "AbstractConnection",
    "AbstractConnectionFactory",
    "ConnectionPool",
    "Lease",
    "PoolStats",
    "PooledQueryExecutor",
    "Rows",
    "create_connection_factory",
]
