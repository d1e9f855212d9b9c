"""Bounded, thread-safe database connection pool.

Notes:
- Connections are created lazily, up to ``capacity`` live connections.
- Thread-safe: a single condition variable guards the idle set and counters.
  FastAPI runs sync route handlers on a worker thread pool, so ``acquire``
  may block a worker thread until a connection frees up or the timeout hits.
- Leases are single-use. Releasing a lease twice raises ``LeaseReleasedError``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable

from app.adapters.database.base import AbstractConnection, AbstractConnectionFactory, Rows
from app.core.errors import (
    AppError,
    LeaseReleasedError,
    PoolClosedError,
    PoolExhaustedError,
    QueryError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time view of the pool counters.

    Attributes:
        capacity: Maximum number of live connections.
        idle: Connections ready to be leased.
        leased: Connections currently held by callers.
        opening: Connections being established for a caller.
        waiting: Callers blocked in ``acquire``.
        closed: Whether the pool stopped handing out connections.
    """

    capacity: int
    idle: int
    leased: int
    opening: int
    waiting: int
    closed: bool

    @property
    def live(self) -> int:
        return self.idle + self.leased + self.opening


class Lease:
    """Temporary ownership of one pooled connection.

    Lifecycle: acquired -> used (zero or more queries) -> released. Use it as a
    context manager so release happens on every exit path::

        with pool.acquire() as lease:
            rows = lease.execute("SELECT 1")
    """

    def __init__(self, pool: "ConnectionPool", connection: AbstractConnection) -> None:
        self._pool = pool
        self._connection = connection
        self._released = False
        self._broken = False

    @property
    def pool(self) -> "ConnectionPool":
        return self._pool

    @property
    def connection(self) -> AbstractConnection:
        """The leased connection.

        Raises:
            LeaseReleasedError: If the lease was already released.
        """
        if self._released:
            raise LeaseReleasedError("lease was already released")
        return self._connection

    @property
    def released(self) -> bool:
        return self._released

    @property
    def broken(self) -> bool:
        return self._broken

    def mark_broken(self) -> None:
        """Have the pool discard the connection instead of recycling it."""
        self._broken = True

    def execute(self, query: str, params: Any = None) -> Rows:
        """Run a query on the leased connection.

        Raises:
            QueryError: Propagated from the connection. Connection-fatal
                errors mark the lease broken.
        """
        try:
            return self.connection.execute(query, params)
        except QueryError as exc:
            if exc.connection_fatal:
                self._broken = True
            raise

    def release(self) -> None:
        """Return the connection to the pool. Allowed exactly once."""
        self._pool.release(self)

    def __enter__(self) -> "Lease":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        # Anything other than a domain error leaves the session state unknown.
        if exc is not None and not isinstance(exc, AppError):
            self._broken = True
        if not self._released:
            self.release()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        state = "released" if self._released else "active"
        return f"Lease(connection={self._connection.connection_id}, {state})"


class ConnectionPool:
    """Bounded pool of reusable connections handing out single-use leases.

    Invariants:
        idle + leased + opening <= capacity at all times.
        A connection is leased to at most one caller at a time.
        A closed or broken connection is never handed out again.
    """

    def __init__(
        self,
        factory: AbstractConnectionFactory,
        *,
        capacity: int = 10,
        acquire_timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the pool. No connection is opened until first use.

        Args:
            factory: Opens new connections when the pool has spare capacity.
            capacity: Maximum number of live connections.
            acquire_timeout_seconds: Default bound on how long ``acquire`` waits.
            clock: Monotonic time source in seconds.

        Raises:
            ValueError: If capacity or timeout are invalid.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if acquire_timeout_seconds <= 0:
            raise ValueError("acquire_timeout_seconds must be > 0")

        self._factory = factory
        self._capacity = capacity
        self._acquire_timeout = acquire_timeout_seconds
        self._clock = clock
        self._cond = threading.Condition(threading.Lock())
        self._idle: deque[AbstractConnection] = deque()
        self._leased = 0
        self._opening = 0
        self._waiting = 0
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> PoolStats:
        """Return a consistent snapshot of the pool counters."""
        with self._cond:
            return PoolStats(
                capacity=self._capacity,
                idle=len(self._idle),
                leased=self._leased,
                opening=self._opening,
                waiting=self._waiting,
                closed=self._closed,
            )

    def _live(self) -> int:
        return len(self._idle) + self._leased + self._opening

    def _checkout(
        self, deadline: float, timeout: float, stale: list[AbstractConnection]
    ) -> AbstractConnection | None:
        """Take an idle connection or reserve a slot for a new one.

        Idle connections found closed are moved to ``stale`` for the caller to
        dispose of outside the lock.

        Returns:
            The idle connection, or None when a slot was reserved instead.

        Raises:
            PoolClosedError: If the pool is closed.
            PoolExhaustedError: If nothing frees up before ``deadline``.
        """
        with self._cond:
            while True:
                if self._closed:
                    raise PoolClosedError(
                        code="db_pool_closed",
                        message="Connection pool is closed",
                    )

                while self._idle:
                    connection = self._idle.pop()
                    if connection.closed:
                        stale.append(connection)
                        continue
                    self._leased += 1
                    return connection

                if self._live() < self._capacity:
                    self._opening += 1
                    return None

                remaining = deadline - self._clock()
                if remaining <= 0:
                    logger.warning(
                        "pool.exhausted",
                        extra={
                            "capacity": self._capacity,
                            "leased": self._leased,
                            "waiting": self._waiting,
                            "timeout_s": timeout,
                        },
                    )
                    raise PoolExhaustedError(
                        code="db_pool_exhausted",
                        message=(
                            f"No database connection available within {timeout:g}s "
                            f"(pool capacity: {self._capacity})"
                        ),
                        details={"capacity": self._capacity, "timeout_seconds": timeout},
                    )

                self._waiting += 1
                try:
                    self._cond.wait(remaining)
                finally:
                    self._waiting -= 1

    def _open_reserved(self) -> AbstractConnection:
        """Open a connection for a slot reserved by ``_checkout``."""
        try:
            connection = self._factory.open()
        except BaseException:
            with self._cond:
                self._opening -= 1
                self._cond.notify_all()
            raise

        with self._cond:
            self._opening -= 1
            closed = self._closed
            if not closed:
                self._leased += 1
            else:
                self._cond.notify_all()

        if closed:
            connection.close()
            raise PoolClosedError(
                code="db_pool_closed",
                message="Connection pool is closed",
            )

        logger.info(
            "pool.connection_opened",
            extra={"connection_id": connection.connection_id, "capacity": self._capacity},
        )
        return connection

    def _discard(self, connection: AbstractConnection, reason: str) -> None:
        connection.close()
        logger.info(
            "pool.connection_discarded",
            extra={"connection_id": connection.connection_id, "reason": reason},
        )

    def acquire(self, timeout: float | None = None) -> Lease:
        """Lease a connection, waiting up to ``timeout`` seconds for one.

        An idle connection is reused when available; otherwise a new one is
        opened if capacity allows; otherwise the caller waits for a release.

        Args:
            timeout: Override of the pool's default acquire timeout.

        Returns:
            Lease: Must be released exactly once (use it as a context manager).

        Raises:
            PoolExhaustedError: No connection became available in time.
            PoolClosedError: The pool is closed or closing.
            DatabaseConnectionError: Opening a new connection failed.
        """
        wait = self._acquire_timeout if timeout is None else timeout
        deadline = self._clock() + wait

        stale: list[AbstractConnection] = []
        try:
            connection = self._checkout(deadline, wait, stale)
        finally:
            for stale_connection in stale:
                self._discard(stale_connection, reason="stale")

        if connection is None:
            connection = self._open_reserved()
        return Lease(self, connection)

    def release(self, lease: Lease, *, discard: bool = False) -> None:
        """Return a leased connection to the pool.

        Healthy connections go back to the idle set and wake one waiter.
        Broken or closed connections, and every connection released after the
        pool closed, are closed instead; their slot frees up for a new one.

        Args:
            lease: Lease obtained from this pool's ``acquire``.
            discard: Force the connection to be closed instead of recycled.

        Raises:
            LeaseReleasedError: If the lease was already released.
            ValueError: If the lease belongs to another pool.
        """
        if lease.pool is not self:
            raise ValueError("lease belongs to a different pool")

        connection = lease._connection
        with self._cond:
            if lease._released:
                raise LeaseReleasedError("lease was already released")
            lease._released = True
            self._leased -= 1

            recycle = not (discard or lease.broken or connection.closed or self._closed)
            if recycle:
                self._idle.append(connection)

            if self._closed:
                self._cond.notify_all()
            else:
                self._cond.notify()

        if not recycle:
            if self._closed:
                reason = "pool_closed"
            elif lease.broken or connection.closed:
                reason = "broken"
            else:
                reason = "discarded"
            self._discard(connection, reason=reason)

    def execute(self, query: str, params: Any = None) -> Rows:
        """Acquire, run one query and release as a single unit of work.

        The lease is released on success and on failure; a connection-fatal
        ``QueryError`` discards the connection instead of recycling it.
        """
        with self.acquire() as lease:
            return lease.execute(query, params)

    def close(self, timeout: float = 0.0) -> None:
        """Stop leasing and close pooled connections.

        Waiters are woken and fail with ``PoolClosedError``. Outstanding leases
        get up to ``timeout`` seconds to come back; they are closed on release.

        Args:
            timeout: Seconds to wait for in-flight leases before closing idle
                connections.
        """
        deadline = self._clock() + timeout
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            while self._leased or self._opening:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)
            idle = list(self._idle)
            self._idle.clear()
            outstanding = self._leased

        for connection in idle:
            connection.close()

        log = logger.warning if outstanding else logger.info
        log(
            "pool.closed",
            extra={"closed_connections": len(idle), "outstanding_leases": outstanding},
        )

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
