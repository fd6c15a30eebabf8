"""
Per-(resource, date) serialization for the atomic write units.

Every operation that writes a reservation together with its availability
record runs inside ``atomic_unit``:

1. an in-process lock per key, acquired in sorted key order with a bounded
   wait (``Busy`` when the wait runs out),
2. one database transaction,
3. on PostgreSQL, a transaction-scoped advisory lock per key so that several
   service processes serialize on the same keys.

Operations on different keys never share a lock and run in parallel.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from reservation_engine.config import LOCK_TIMEOUT_SECONDS
from reservation_engine.errors import Busy, Conflict
from reservation_engine.metrics import lock_timeouts, lock_wait

logger = structlog.get_logger(__name__)

LockKey = tuple[str, date]

ADVISORY_POLL_SECONDS = 0.05


def _key_label(key: LockKey) -> str:
    resource_id, day = key
    return f"{resource_id}:{day.isoformat()}"


class KeyLockRegistry:
    """
    Registry of in-process locks keyed by (resource_id, date).

    Example:
        >>> locks = KeyLockRegistry()
        >>> with locks.hold([("venue-1", date(2025, 6, 1))], timeout=1.0):
        ...     ...  # no other thread holds venue-1 on 2025-06-01 here
    """

    def __init__(self) -> None:
        # key -> [lock, number of holders and waiters]
        self._locks: dict[LockKey, list] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: LockKey) -> threading.Lock:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[LockKey], timeout: float) -> Iterator[None]:
        """
        Acquire the locks for all keys, or raise Busy.

        Keys are deduplicated and acquired in sorted order so two operations
        touching the same pair of dates cannot deadlock.

        Raises:
            Busy: if any lock is not acquired within ``timeout`` seconds overall
        """
        ordered = sorted(set(keys))
        acquired: list[tuple[LockKey, threading.Lock]] = []
        started = time.monotonic()
        deadline = started + timeout
        try:
            for key in ordered:
                lock = self._checkout(key)
                if not lock.acquire(timeout=max(deadline - time.monotonic(), 0)):
                    self._checkin(key)
                    lock_timeouts.inc()
                    logger.warning("lock_timeout", key=_key_label(key), timeout=timeout)
                    raise Busy(
                        f"Another operation is in progress for {_key_label(key)}; retry",
                        resource_id=key[0],
                        date=key[1].isoformat(),
                    )
                acquired.append((key, lock))
            lock_wait.observe(time.monotonic() - started)
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


# Shared by every service in the process
key_locks = KeyLockRegistry()


def acquire_advisory_locks(conn: Connection, keys: Iterable[LockKey], deadline: float) -> None:
    """
    Take PostgreSQL transaction-scoped advisory locks for the keys.

    No-op on other dialects. Locks are released automatically at commit or
    rollback.

    Raises:
        Busy: if a lock is still held elsewhere when ``deadline`` passes
    """
    if conn.dialect.name != "postgresql":
        return

    for key in sorted(set(keys)):
        label = _key_label(key)
        while True:
            got = conn.execute(
                text("SELECT pg_try_advisory_xact_lock(hashtext(:key))"), {"key": label}
            ).scalar()
            if got:
                break
            if time.monotonic() >= deadline:
                lock_timeouts.inc()
                logger.warning("advisory_lock_timeout", key=label)
                raise Busy(f"Another process holds {label}; retry", resource_id=key[0])
            time.sleep(ADVISORY_POLL_SECONDS)


@contextmanager
def atomic_unit(
    engine: Engine,
    keys: Iterable[LockKey],
    locks: KeyLockRegistry | None = None,
    timeout: float = LOCK_TIMEOUT_SECONDS,
) -> Iterator[Connection]:
    """
    Run a block as a single serialized transaction over the given keys.

    Either everything written on the yielded connection commits, or nothing
    does. A unique-index violation at commit time surfaces as ``Conflict``.

    Example:
        >>> with atomic_unit(engine, [(resource_id, day)]) as conn:
        ...     update_reservation_status(conn, ...)
        ...     upsert_availability(conn, ...)
    """
    keys = list(keys)
    registry = locks or key_locks
    deadline = time.monotonic() + timeout

    with registry.hold(keys, timeout):
        try:
            with engine.begin() as conn:
                acquire_advisory_locks(conn, keys, deadline)
                yield conn
        except IntegrityError as e:
            logger.warning("atomic_unit_integrity_error", keys=[_key_label(k) for k in keys])
            raise Conflict(
                "Another reservation already occupies this resource on that date"
            ) from e
