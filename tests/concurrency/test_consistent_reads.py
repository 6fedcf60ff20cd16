"""
Read consistency while mutations are committing.

Verifies:
- dashboard_stats() never sees a transfer's decrement without its
  increment: main + line stays constant on every read
- A read scope keeps its snapshot while another thread commits
- verify() reads the snapshot and the log from one committed state, so it
  never reports a mismatch while writers are running
"""

import threading
from concurrent.futures import ThreadPoolExecutor, wait

import pytest

from inventory_ledger.services.ledger_store import LedgerStore

pytestmark = [pytest.mark.slow_locks]

WRITERS = 4
READS = 60
MAX_WRITES_PER_WRITER = 500


def _write_until(stop: threading.Event, started: threading.Event, fn) -> int:
    done = 0
    while not stop.is_set() and done < MAX_WRITES_PER_WRITER:
        fn(done)
        done += 1
        started.set()
    return done


def _read_while_writing(writer_fn, reader_fn, writers=WRITERS):
    """Run ``writers`` copies of ``writer_fn`` while calling ``reader_fn`` READS times."""
    stop = threading.Event()
    started = threading.Event()
    with ThreadPoolExecutor(max_workers=writers) as pool:
        futures = [
            pool.submit(_write_until, stop, started, writer_fn(i)) for i in range(writers)
        ]
        try:
            assert started.wait(timeout=30)
            observed = [reader_fn() for _ in range(READS)]
        finally:
            stop.set()
        written = sum(f.result(timeout=60) for f in futures)
    return observed, written


class TestDashboardDuringTransfers:
    def test_main_plus_line_is_constant(self, ledger, component, main_location, line_location):
        ledger.add_stock(component.id, main_location.id, 500)
        ledger.add_stock(component.id, line_location.id, 500)

        def writer(i):
            def step(n):
                # Alternate direction so no row runs dry
                if (n + i) % 2:
                    ledger.transfer(component.id, main_location.id, line_location.id, 3)
                else:
                    ledger.transfer(component.id, line_location.id, main_location.id, 3)

            return step

        def read_total():
            stats = ledger.dashboard_stats()
            return stats.main_inventory_total + stats.line_inventory_total

        observed, written = _read_while_writing(writer, read_total)

        assert written > 0
        assert set(observed) == {1000}
        final = ledger.dashboard_stats()
        assert final.main_inventory_total + final.line_inventory_total == 1000


class TestVerifyDuringWrites:
    def test_no_false_mismatches(self, ledger, create_component, main_location, line_location):
        parts = [create_component() for _ in range(WRITERS)]

        def writer(i):
            part = parts[i]

            def step(n):
                ledger.add_stock(part.id, main_location.id, 2)
                ledger.transfer(part.id, main_location.id, line_location.id, 1)

            return step

        def read_verification():
            result = ledger.verify()
            return result.is_consistent, result.mismatches

        observed, written = _read_while_writing(writer, read_verification)

        assert written > 0
        assert [m for ok, m in observed if not ok] == []
        assert ledger.verify().is_consistent


class TestReadScopeSnapshot:
    def test_scope_does_not_see_later_commit(
        self, ledger, database, clock, stocked_component, main_location
    ):
        key = (stocked_component.id, main_location.id)
        with ThreadPoolExecutor(max_workers=1) as pool:
            with database.read_scope() as session:
                store = LedgerStore(session, clock)
                assert store.get_quantity(*key) == 50

                future = pool.submit(ledger.add_stock, *key, 5)
                wait([future], timeout=0.5)

                assert store.get_quantity(*key) == 50
                assert store.snapshot()[key] == 50

            future.result(timeout=30)

        assert ledger.get_quantity(*key) == 55
