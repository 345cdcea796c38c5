"""
Keyed row locks for circulation units of work.

Each unit of work names the rows it touches as ``(kind, id)`` keys and holds
them for its whole transaction. Keys are always taken in one global order
(loan, then member, then item; ids ascending within a kind), so two units of
work can never wait on each other in a cycle. All keys share one deadline:
a caller waits at most ``timeout`` seconds in total before getting a
``LockTimeoutError``.

These locks serialize work inside one process. Across processes the
database guards (conditional updates, ``SELECT ... FOR UPDATE``) apply.
"""

import logging
import threading
import time
from collections.abc import Generator
from contextlib import contextmanager

from .errors import LockTimeoutError

logger = logging.getLogger(__name__)

LOAN = "loan"
MEMBER = "member"
ITEM = "item"

_KIND_ORDER = {LOAN: 0, MEMBER: 1, ITEM: 2}

LockKey = tuple[str, int]


def _order(key: LockKey) -> tuple[int, int]:
    return (_KIND_ORDER[key[0]], key[1])


class RowLockManager:
    """Hands out one re-usable lock per row key."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: dict[LockKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: LockKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: LockKey, timeout: float | None = None) -> Generator[None, None, None]:
        """
        Hold every key for the duration of the block.

        Raises:
            LockTimeoutError: If any key is still busy when the deadline passes.
                Keys acquired so far are released first.
        """
        wait = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys), key=_order):
                lock = self._lock_for(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    logger.warning("Lock wait on %s %s exceeded %.2fs", key[0], key[1], wait)
                    raise LockTimeoutError(key, wait)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, key: LockKey) -> bool:
        """Whether some unit of work currently holds ``key``."""
        with self._registry_lock:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()
