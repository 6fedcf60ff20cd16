"""
Concurrency tests for the TransferEngine.

Run against SQLite by default; set DATABASE_URL to a PostgreSQL database to
exercise real row locks across pooled connections.

Verifies:
- N concurrent withdrawals of Q from stock S: exactly floor(S / Q) succeed,
  the rest fail with InsufficientQuantityError, and the final quantity is
  S - Q * succeeded
- Opposing transfers on the same component never deadlock and conserve
  the total
- Replay still reproduces the snapshot after the storm
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Barrier

import pytest

from inventory_ledger.exceptions import InsufficientQuantityError

pytestmark = [pytest.mark.slow_locks]

THREADS = 10


def _run_concurrently(fn, n):
    """Start ``n`` calls of ``fn(i)`` behind a barrier and collect outcomes."""
    barrier = Barrier(n)

    def worker(i):
        barrier.wait(timeout=10)
        try:
            return ("ok", fn(i))
        except InsufficientQuantityError as exc:
            return ("insufficient", exc)

    with ThreadPoolExecutor(max_workers=n) as pool:
        futures = [pool.submit(worker, i) for i in range(n)]
        return [f.result(timeout=60) for f in as_completed(futures)]


class TestConcurrentWithdrawals:
    @pytest.mark.parametrize("stock,quantity", [(50, 7), (30, 10), (9, 10)])
    def test_exactly_floor_s_over_q_succeed(
        self, ledger, component, main_location, line_location, stock, quantity
    ):
        ledger.add_stock(component.id, main_location.id, stock)

        outcomes = _run_concurrently(
            lambda i: ledger.transfer(component.id, main_location.id, line_location.id, quantity),
            THREADS,
        )

        succeeded = sum(1 for kind, _ in outcomes if kind == "ok")
        failed = sum(1 for kind, _ in outcomes if kind == "insufficient")
        assert succeeded == stock // quantity
        assert failed == THREADS - succeeded
        assert ledger.get_quantity(component.id, main_location.id) == stock - quantity * succeeded
        assert ledger.get_quantity(component.id, line_location.id) == quantity * succeeded
        assert len(ledger.recent_transactions(limit=100)) == 1 + succeeded

    def test_mixed_remove_and_consume(self, ledger, component, main_location):
        ledger.add_stock(component.id, main_location.id, 25)

        def withdraw(i):
            if i % 2:
                return ledger.consume(component.id, main_location.id, 5)
            return ledger.remove_stock(component.id, main_location.id, 5)

        outcomes = _run_concurrently(withdraw, THREADS)

        assert sum(1 for kind, _ in outcomes if kind == "ok") == 5
        assert ledger.get_quantity(component.id, main_location.id) == 0


class TestOpposingTransfers:
    def test_no_deadlock_and_conservation(self, ledger, component, main_location, line_location):
        ledger.add_stock(component.id, main_location.id, 100)
        ledger.add_stock(component.id, line_location.id, 100)

        def shuffle(i):
            if i % 2:
                return ledger.transfer(component.id, main_location.id, line_location.id, 3)
            return ledger.transfer(component.id, line_location.id, main_location.id, 2)

        outcomes = _run_concurrently(shuffle, THREADS)

        assert all(kind == "ok" for kind, _ in outcomes)
        main_qty = ledger.get_quantity(component.id, main_location.id)
        line_qty = ledger.get_quantity(component.id, line_location.id)
        assert main_qty + line_qty == 200
        assert main_qty == 100 - 5 * 3 + 5 * 2

    def test_replay_consistent_after_storm(self, ledger, create_component, main_location,
                                           line_location):
        parts = [create_component() for _ in range(3)]
        for part in parts:
            ledger.add_stock(part.id, main_location.id, 20)

        def move(i):
            part = parts[i % len(parts)]
            return ledger.transfer(part.id, main_location.id, line_location.id, 3)

        _run_concurrently(move, THREADS)

        result = ledger.verify()
        assert result.is_consistent
        assert result.stored_hash == result.replayed_hash
