"""PyMySQL database adapter.

Wraps PyMySQL sessions behind ``AbstractConnection`` and classifies driver
errors so the pool knows whether a failed connection can be recycled.
"""

from __future__ import annotations

import logging
from typing import Any

import pymysql
from pymysql.constants import CLIENT
from pymysql.cursors import DictCursor

from app.adapters.database.base import AbstractConnection, AbstractConnectionFactory, Rows
from app.core.errors import DatabaseConnectionError, QueryError

logger = logging.getLogger(__name__)

# Client error codes meaning the session itself is gone or out of sync.
# 0 is what PyMySQL reports when the socket was already closed locally.
CONNECTION_FATAL_ERROR_CODES = frozenset({0, 2006, 2013, 2014, 2055})


def _error_code(exc: BaseException) -> int | None:
    """Extract the MySQL error code PyMySQL stores as the first argument."""
    if exc.args and isinstance(exc.args[0], int):
        return exc.args[0]
    return None


def _error_message(exc: BaseException) -> str:
    """Extract the human-readable driver message."""
    if len(exc.args) >= 2:
        return str(exc.args[1])
    return str(exc)


def is_connection_fatal(exc: BaseException) -> bool:
    """Tell whether a PyMySQL error left the session unusable.

    Args:
        exc: Exception raised by the driver while running a query.

    Returns:
        True for interface errors and lost/closed-session operational errors.
        Syntax errors, constraint violations and other server-side rejections
        leave the session usable and return False.
    """

    if isinstance(exc, pymysql.err.InterfaceError):
        return True
    if isinstance(exc, pymysql.err.OperationalError):
        return _error_code(exc) in CONNECTION_FATAL_ERROR_CODES
    return not isinstance(exc, pymysql.err.MySQLError)


class PyMySQLConnection(AbstractConnection):
    """A single PyMySQL session returning rows as dictionaries."""

    def __init__(self, raw: pymysql.connections.Connection) -> None:
        self._raw = raw
        self._broken = False
        self._connection_id = str(raw.thread_id())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def closed(self) -> bool:
        return self._broken or not self._raw.open

    def execute(self, query: str, params: Any = None) -> Rows:
        """Run a query and return the rows of its first result set.

        Remaining result sets of a multi-statement query are drained when the
        cursor closes, so the session is ready for the next query.
        """
        try:
            with self._raw.cursor() as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
        except pymysql.err.MySQLError as exc:
            fatal = is_connection_fatal(exc)
            if fatal:
                self._broken = True
            raise QueryError(
                code="query_failed",
                message=_error_message(exc),
                details={"driver_code": _error_code(exc) or 0},
                connection_fatal=fatal,
            ) from exc
        return list(rows or [])

    def close(self) -> None:
        if not self._raw.open:
            return
        try:
            self._raw.close()
        except pymysql.err.Error as exc:
            logger.debug(
                "db.close_failed",
                extra={"connection_id": self._connection_id, "error_msg": str(exc)},
            )


class PyMySQLConnectionFactory(AbstractConnectionFactory):
    """Opens one new PyMySQL session per call, with fixed configuration."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str,
        multiple_statements: bool = True,
        connect_timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize the factory.

        Args:
            host: Database server host.
            port: Database server port.
            user: User to authenticate as.
            password: Password for ``user``.
            database: Database selected on connect.
            multiple_statements: Allow several statements per query.
            connect_timeout_seconds: Timeout for establishing the session.
        """
        self._params: dict[str, Any] = {
            "host": host,
            "port": port,
            "user": user,
            "password": password,
            "database": database,
            "connect_timeout": connect_timeout_seconds,
            "client_flag": CLIENT.MULTI_STATEMENTS if multiple_statements else 0,
            "cursorclass": DictCursor,
            "autocommit": True,
            "charset": "utf8mb4",
        }

    def open(self) -> PyMySQLConnection:
        """Open a new session.

        Raises:
            DatabaseConnectionError: If the server is unreachable or rejects
                the credentials. Never retried here.
        """
        try:
            raw = pymysql.connect(**self._params)
        except pymysql.err.MySQLError as exc:
            raise DatabaseConnectionError(
                code="db_connection_failed",
                message=_error_message(exc),
                details={
                    "driver_code": _error_code(exc) or 0,
                    "context": {
                        "host": self._params["host"],
                        "port": self._params["port"],
                        "database": self._params["database"],
                    },
                },
            ) from exc
        return PyMySQLConnection(raw)
