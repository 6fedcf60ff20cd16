"""
KeyLockRegistry -- in-process mutual exclusion per inventory row key.

Responsibility:
    Serializes ledger operations that touch the same
    ``(component_id, location_id)`` key inside one process, while letting
    operations on disjoint keys run fully in parallel.

Architecture position:
    Ledger > Services.  Used by TransferEngine around every unit of work.

Invariants enforced:
    - Keys are always acquired in sorted order, so two operations touching
      overlapping key sets can never deadlock on each other.
    - Acquisition is bounded by a timeout; on expiry every lock taken so far
      is released before LockTimeoutError is raised.

Failure modes:
    - LockTimeoutError when a key is not obtained within the timeout.

Non-goals:
    - Cross-process exclusion.  Between processes the database row locks
      and the conditional UPDATE in LedgerStore are authoritative.
"""

import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from inventory_ledger.exceptions import LockTimeoutError
from inventory_ledger.logging_config import get_logger

logger = get_logger("services.key_locks")

RowKey = tuple[int, int]


class KeyLockRegistry:
    """
    One mutex per row key, created on first use.

    Usage:
        locks = KeyLockRegistry()
        with locks.acquire([(component_id, main_id), (component_id, line_id)], 5):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[RowKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: RowKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def is_locked(self, key: RowKey) -> bool:
        with self._registry_lock:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @contextmanager
    def acquire(self, keys: Iterable[RowKey], timeout: float) -> Iterator[tuple[RowKey, ...]]:
        """
        Hold every key in ``keys`` for the duration of the block.

        Args:
            keys: Row keys to lock (duplicates are ignored).
            timeout: Total seconds to wait across all keys.

        Yields:
            The sorted keys actually held.

        Raises:
            LockTimeoutError: if any key is not obtained in time.
        """
        ordered = tuple(sorted(set(keys)))
        deadline = time.monotonic() + timeout
        held: list[threading.Lock] = []
        try:
            for key in ordered:
                remaining = max(0.0, deadline - time.monotonic())
                lock = self._lock_for(key)
                if not lock.acquire(timeout=remaining):
                    logger.warning(
                        "row_lock_timeout",
                        extra={"key": list(key), "timeout_seconds": timeout},
                    )
                    raise LockTimeoutError(list(ordered), timeout)
                held.append(lock)
            yield ordered
        finally:
            for lock in reversed(held):
                lock.release()
