"""Database connection interfaces.

The pool, the executor and the HTTP layer depend on these abstractions only.
A concrete driver (e.g. PyMySQL) implements them and translates its own
exceptions into ``DatabaseConnectionError`` and ``QueryError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Rows = list[dict[str, Any]]


class AbstractConnection(ABC):
    """One live session to the database."""

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Stable identifier of the session, used in logs."""
        raise NotImplementedError

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether the session is closed or known to be broken."""
        raise NotImplementedError

    @abstractmethod
    def execute(self, query: str, params: Any = None) -> Rows:
        """Run a query and return its rows as dictionaries.

        Args:
            query: SQL text.
            params: Optional driver-style query parameters.

        Returns:
            Rows: Result rows of the first result set (empty for statements
            that do not return rows).

        Raises:
            QueryError: If the database rejects or fails the query.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Close the session. Must be safe to call on a closed connection."""
        raise NotImplementedError

    def __enter__(self) -> "AbstractConnection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class AbstractConnectionFactory(ABC):
    """Produces new, unshared database connections."""

    @abstractmethod
    def open(self) -> AbstractConnection:
        """Open one new database session.

        Every call is independent: no caching and no limit enforcement. The
        caller owns the returned connection and must close it.

        Raises:
            DatabaseConnectionError: If transport or authentication fails.
        """
        raise NotImplementedError
