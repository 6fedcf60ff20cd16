"""
Unit tests for the in-process key lock registry.

Verifies:
- Keys are held for the duration of the block and released afterwards
- Sorted, deduplicated acquisition order
- Timeout raises LockTimeoutError and releases partially acquired keys
- Disjoint keys do not block each other
"""

import threading

import pytest

from inventory_ledger.exceptions import LockTimeoutError
from inventory_ledger.services.key_locks import KeyLockRegistry


class TestKeyLockRegistry:
    def test_holds_and_releases(self):
        locks = KeyLockRegistry()
        with locks.acquire([(1, 2)], timeout=1) as held:
            assert held == ((1, 2),)
            assert locks.is_locked((1, 2))
        assert not locks.is_locked((1, 2))

    def test_sorted_and_deduplicated(self):
        locks = KeyLockRegistry()
        with locks.acquire([(5, 9), (5, 1), (5, 9)], timeout=1) as held:
            assert held == ((5, 1), (5, 9))
        assert len(locks) == 2

    def test_released_on_exception(self):
        locks = KeyLockRegistry()
        with pytest.raises(RuntimeError):
            with locks.acquire([(1, 1), (1, 2)], timeout=1):
                raise RuntimeError("boom")
        assert not locks.is_locked((1, 1))
        assert not locks.is_locked((1, 2))

    def test_timeout_raises_and_releases_partial(self, captured_logs):
        locks = KeyLockRegistry()
        holder_ready = threading.Event()
        release_holder = threading.Event()

        def hold():
            with locks.acquire([(1, 2)], timeout=1):
                holder_ready.set()
                release_holder.wait(5)

        thread = threading.Thread(target=hold)
        thread.start()
        try:
            assert holder_ready.wait(5)
            with pytest.raises(LockTimeoutError) as exc_info:
                with locks.acquire([(1, 1), (1, 2)], timeout=0.1):
                    pass
            assert exc_info.value.keys == [(1, 1), (1, 2)]
            assert exc_info.value.code == "LOCK_TIMEOUT"
            # (1, 1) was taken first and must have been let go
            assert not locks.is_locked((1, 1))
        finally:
            release_holder.set()
            thread.join(5)

        assert any(r["message"] == "row_lock_timeout" for r in captured_logs())

    def test_disjoint_keys_do_not_block(self):
        locks = KeyLockRegistry()
        with locks.acquire([(1, 1)], timeout=1):
            with locks.acquire([(2, 1)], timeout=0.1) as held:
                assert held == ((2, 1),)
