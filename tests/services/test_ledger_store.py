"""
Tests for LedgerStore row access.

Verifies:
- Absent rows read as zero
- Positive deltas create rows lazily; negative deltas never do
- Conditional decrement refuses to go below zero without clamping
- ensure_row() is idempotent
- Threshold updates never touch quantity
"""

import pytest

from inventory_ledger.exceptions import InsufficientQuantityError, InvalidThresholdError
from inventory_ledger.services.ledger_store import LedgerStore


class TestReads:
    def test_absent_row_is_zero(self, database, clock, component, main_location):
        with database.read_scope() as session:
            store = LedgerStore(session, clock)
            assert store.get_quantity(component.id, main_location.id) == 0
            assert store.get_min_stock_level(component.id, main_location.id) is None
            assert store.snapshot() == {}


class TestApplyDelta:
    def test_positive_delta_creates_row(self, database, clock, component, main_location):
        with database.unit_of_work() as session:
            store = LedgerStore(session, clock)
            assert store.apply_delta(component.id, main_location.id, 8, min_stock_level=3) == 8

        with database.read_scope() as session:
            store = LedgerStore(session, clock)
            assert store.get_quantity(component.id, main_location.id) == 8
            assert store.get_min_stock_level(component.id, main_location.id) == 3

    def test_increments_accumulate(self, database, clock, component, main_location):
        with database.unit_of_work() as session:
            store = LedgerStore(session, clock)
            store.apply_delta(component.id, main_location.id, 5)
            assert store.apply_delta(component.id, main_location.id, 7) == 12

    def test_decrement_to_exactly_zero(self, database, clock, component, main_location):
        with database.unit_of_work() as session:
            store = LedgerStore(session, clock)
            store.apply_delta(component.id, main_location.id, 5)
            assert store.apply_delta(component.id, main_location.id, -5) == 0

    def test_decrement_below_zero_rejected(
        self, database, clock, component, main_location, captured_logs
    ):
        with pytest.raises(InsufficientQuantityError) as exc_info:
            with database.unit_of_work() as session:
                store = LedgerStore(session, clock)
                store.apply_delta(component.id, main_location.id, 5)
                store.apply_delta(component.id, main_location.id, -6)

        assert exc_info.value.requested == 6
        assert exc_info.value.available == 5
        # The whole unit rolled back, including the increment
        with database.read_scope() as session:
            assert LedgerStore(session, clock).snapshot() == {}
        assert any(
            r["message"] == "insufficient_quantity_rejected" for r in captured_logs()
        )

    def test_negative_delta_on_absent_row_creates_nothing(
        self, database, clock, component, main_location
    ):
        with pytest.raises(InsufficientQuantityError):
            with database.unit_of_work() as session:
                LedgerStore(session, clock).apply_delta(component.id, main_location.id, -1)
        with database.read_scope() as session:
            assert LedgerStore(session, clock).snapshot() == {}

    def test_zero_delta_is_a_read(self, database, clock, component, main_location):
        with database.unit_of_work() as session:
            store = LedgerStore(session, clock)
            assert store.apply_delta(component.id, main_location.id, 0) == 0
            assert store.snapshot() == {}

    def test_last_updated_from_clock(self, ledger, database, clock, component, main_location):
        clock.advance(3600)
        with database.unit_of_work() as session:
            LedgerStore(session, clock).apply_delta(component.id, main_location.id, 1)
        (row,) = ledger.inventory_items(main_location.id)
        assert row.last_updated == clock.now()


class TestEnsureRow:
    def test_idempotent(self, database, clock, component, main_location):
        with database.unit_of_work() as session:
            store = LedgerStore(session, clock)
            store.ensure_row(component.id, main_location.id, 4)
            store.apply_delta(component.id, main_location.id, 2)
            store.ensure_row(component.id, main_location.id, 9)

        with database.read_scope() as session:
            store = LedgerStore(session, clock)
            assert store.snapshot() == {(component.id, main_location.id): 2}
            assert store.get_min_stock_level(component.id, main_location.id) == 4


class TestThresholds:
    def test_set_min_stock_level_keeps_quantity(
        self, ledger, stocked_component, main_location, database, clock
    ):
        with database.unit_of_work() as session:
            LedgerStore(session, clock).set_min_stock_level(
                stocked_component.id, main_location.id, 60
            )
        (row,) = ledger.inventory_for_component(stocked_component.id)
        assert row.quantity == 50
        assert row.min_stock_level == 60
        assert row.is_low_stock

    @pytest.mark.parametrize("bad", [-1, 2.5, True])
    def test_invalid_threshold(self, database, clock, component, main_location, bad):
        with pytest.raises(InvalidThresholdError):
            with database.unit_of_work() as session:
                LedgerStore(session, clock).set_min_stock_level(
                    component.id, main_location.id, bad
                )
