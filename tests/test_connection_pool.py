"""Unit tests for the bounded connection pool."""

import threading
import time

import pytest

from app.adapters.database.pool import ConnectionPool
from app.core.errors import (
    DatabaseConnectionError,
    LeaseReleasedError,
    PoolClosedError,
    PoolExhaustedError,
    QueryError,
)
from _fakes import FakeConnectionFactory, lost_connection_error, syntax_error


def test_connections_are_created_lazily(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=3)

    assert factory.opened == []
    stats = pool.stats()
    assert stats.idle == 0
    assert stats.leased == 0
    assert stats.capacity == 3


def test_released_connection_is_reused(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=2)

    first = pool.acquire()
    connection = first.connection
    first.release()

    second = pool.acquire()
    assert second.connection is connection
    second.release()

    assert len(factory.opened) == 1
    assert pool.stats().idle == 1


def test_lease_context_manager_releases(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)

    with pool.acquire() as lease:
        rows = lease.execute("SELECT * FROM user")
        assert pool.stats().leased == 1

    assert rows[0]["name"] == "alice"
    assert lease.released is True
    assert pool.stats().leased == 0
    assert pool.stats().idle == 1


def test_double_release_is_rejected(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)
    lease = pool.acquire()
    lease.release()

    with pytest.raises(LeaseReleasedError):
        lease.release()

    stats = pool.stats()
    assert stats.leased == 0
    assert stats.idle == 1


def test_use_after_release_is_rejected(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)
    lease = pool.acquire()
    lease.release()

    with pytest.raises(LeaseReleasedError):
        lease.execute("SELECT 1")


def test_lease_from_other_pool_is_rejected(factory: FakeConnectionFactory) -> None:
    pool_a = ConnectionPool(factory, capacity=1)
    pool_b = ConnectionPool(factory, capacity=1)
    lease = pool_a.acquire()

    with pytest.raises(ValueError):
        pool_b.release(lease)

    lease.release()


def test_acquire_times_out_when_exhausted(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=2, acquire_timeout_seconds=0.1)
    leases = [pool.acquire(), pool.acquire()]

    start = time.monotonic()
    with pytest.raises(PoolExhaustedError) as exc_info:
        pool.acquire()
    elapsed = time.monotonic() - start

    assert elapsed >= 0.09
    assert exc_info.value.code == "db_pool_exhausted"
    assert exc_info.value.details["capacity"] == 2
    assert len(factory.opened) == 2

    for lease in leases:
        lease.release()


def test_waiter_gets_connection_released_in_time(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1, acquire_timeout_seconds=2.0)
    holder = pool.acquire()
    acquired = []

    def waiter() -> None:
        with pool.acquire() as lease:
            acquired.append(lease.connection)

    thread = threading.Thread(target=waiter)
    thread.start()
    time.sleep(0.05)
    assert pool.stats().waiting == 1

    holder.release()
    thread.join(timeout=2.0)

    assert acquired == [holder._connection]
    assert len(factory.opened) == 1


def test_sixth_acquire_fails_while_five_long_queries_run() -> None:
    factory = FakeConnectionFactory(delay=0.5)
    pool = ConnectionPool(factory, capacity=5, acquire_timeout_seconds=0.1)
    started = threading.Barrier(6)
    errors: list[BaseException] = []

    def long_query() -> None:
        with pool.acquire() as lease:
            started.wait(timeout=2.0)
            lease.execute("SELECT SLEEP(0.5)")

    threads = [threading.Thread(target=long_query) for _ in range(5)]
    for thread in threads:
        thread.start()
    started.wait(timeout=2.0)

    try:
        pool.acquire()
    except PoolExhaustedError as exc:
        errors.append(exc)

    for thread in threads:
        thread.join(timeout=5.0)

    assert len(errors) == 1
    assert pool.stats().idle == 5
    assert pool.stats().leased == 0


def test_leased_never_exceeds_capacity_under_contention() -> None:
    factory = FakeConnectionFactory(delay=0.002)
    capacity = 3
    pool = ConnectionPool(factory, capacity=capacity, acquire_timeout_seconds=5.0)
    lock = threading.Lock()
    in_use: set[int] = set()
    peak = [0]
    violations: list[str] = []

    def worker() -> None:
        for _ in range(20):
            with pool.acquire() as lease:
                key = id(lease.connection)
                with lock:
                    if key in in_use:
                        violations.append("connection leased twice")
                    in_use.add(key)
                    peak[0] = max(peak[0], len(in_use))
                lease.execute("SELECT 1")
                with lock:
                    in_use.discard(key)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30.0)

    stats = pool.stats()
    assert violations == []
    assert peak[0] <= capacity
    assert len(factory.opened) <= capacity
    assert stats.leased == 0
    assert stats.live <= capacity


def test_connection_safe_error_recycles_connection() -> None:
    factory = FakeConnectionFactory(error=syntax_error())
    pool = ConnectionPool(factory, capacity=2, acquire_timeout_seconds=0.1)

    for _ in range(pool.capacity + 1):
        with pytest.raises(QueryError):
            pool.execute("SELEC * FROM user")

    stats = pool.stats()
    assert len(factory.opened) == 1
    assert stats.idle == 1
    assert stats.leased == 0
    assert factory.opened[0].closed is False


def test_connection_fatal_error_discards_connection() -> None:
    factory = FakeConnectionFactory(error=lost_connection_error())
    pool = ConnectionPool(factory, capacity=2)

    with pytest.raises(QueryError) as exc_info:
        pool.execute("SELECT * FROM user")

    assert exc_info.value.connection_fatal is True
    stats = pool.stats()
    assert stats.idle == 0
    assert stats.leased == 0
    assert factory.opened[0].closed is True


def test_unexpected_exception_in_scope_discards_connection(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)

    with pytest.raises(KeyError):
        with pool.acquire() as lease:
            lease.execute("SELECT * FROM user")
            raise KeyError("boom")

    assert pool.stats().idle == 0
    assert factory.opened[0].closed is True


def test_release_with_discard_closes_connection(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)
    lease = pool.acquire()

    pool.release(lease, discard=True)

    assert pool.stats().idle == 0
    assert factory.opened[0].closed is True

    with pool.acquire() as replacement:
        assert replacement.connection is not factory.opened[0]
    assert len(factory.opened) == 2


def test_stale_idle_connection_is_replaced(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)
    pool.execute("SELECT 1")
    factory.opened[0].close()

    rows = pool.execute("SELECT * FROM user")

    assert rows
    assert len(factory.opened) == 2
    assert pool.stats().idle == 1


def test_open_failure_frees_reserved_slot() -> None:
    factory = FakeConnectionFactory(fail_open=True)
    pool = ConnectionPool(factory, capacity=1, acquire_timeout_seconds=0.1)

    with pytest.raises(DatabaseConnectionError):
        pool.acquire()

    stats = pool.stats()
    assert stats.opening == 0
    assert stats.leased == 0

    factory.fail_open = False
    with pool.acquire() as lease:
        assert lease.execute("SELECT 1")


def test_close_rejects_new_acquires_and_closes_idle(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=2)
    pool.execute("SELECT 1")

    pool.close()

    assert pool.closed is True
    assert factory.opened[0].closed is True
    with pytest.raises(PoolClosedError):
        pool.acquire()


def test_close_waits_for_outstanding_lease(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1)
    lease = pool.acquire()

    def release_later() -> None:
        time.sleep(0.1)
        lease.release()

    thread = threading.Thread(target=release_later)
    thread.start()
    pool.close(timeout=2.0)
    thread.join()

    stats = pool.stats()
    assert stats.leased == 0
    assert stats.idle == 0
    assert factory.opened[0].closed is True


def test_close_wakes_waiters(factory: FakeConnectionFactory) -> None:
    pool = ConnectionPool(factory, capacity=1, acquire_timeout_seconds=5.0)
    holder = pool.acquire()
    errors: list[BaseException] = []

    def waiter() -> None:
        try:
            pool.acquire()
        except PoolClosedError as exc:
            errors.append(exc)

    thread = threading.Thread(target=waiter)
    thread.start()
    time.sleep(0.05)

    pool.close(timeout=0)
    thread.join(timeout=2.0)
    holder.release()

    assert len(errors) == 1
    assert factory.opened[0].closed is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"capacity": 0},
        {"capacity": 1, "acquire_timeout_seconds": 0},
    ],
)
def test_invalid_constructor_args(factory: FakeConnectionFactory, kwargs: dict) -> None:
    with pytest.raises(ValueError):
        ConnectionPool(factory, **kwargs)
