"""
Tests for append-only enforcement on the transaction log.

Verifies:
- ORM updates and deletes of a transaction are blocked
- Bulk UPDATE / DELETE statements against the log are blocked
- Bulk statements against other tables are unaffected
- Blocked attempts are logged and leave the record unchanged
"""

import pytest
from sqlalchemy import delete, update

from inventory_ledger.exceptions import ImmutabilityViolationError
from inventory_ledger.models.inventory import InventoryItem, InventoryTransaction


@pytest.fixture
def record(ledger, stocked_component):
    (latest,) = ledger.recent_transactions(limit=1)
    return latest


class TestImmutability:
    def test_orm_update_blocked(self, database, record, captured_logs):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with database.unit_of_work("tamper") as session:
                model = session.get(InventoryTransaction, record.id)
                model.quantity = 999
                session.flush()

        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert exc_info.value.entity_id == str(record.id)
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"

    def test_orm_delete_blocked(self, database, record):
        with pytest.raises(ImmutabilityViolationError):
            with database.unit_of_work("tamper") as session:
                session.delete(session.get(InventoryTransaction, record.id))
                session.flush()

    def test_bulk_update_blocked(self, database, record):
        with pytest.raises(ImmutabilityViolationError):
            with database.unit_of_work("tamper") as session:
                session.execute(update(InventoryTransaction).values(notes="rewritten"))

    def test_bulk_delete_blocked(self, database, record):
        with pytest.raises(ImmutabilityViolationError):
            with database.unit_of_work("tamper") as session:
                session.execute(delete(InventoryTransaction))

    def test_record_unchanged_after_attempts(self, ledger, database, record):
        with pytest.raises(ImmutabilityViolationError):
            with database.unit_of_work("tamper") as session:
                session.execute(update(InventoryTransaction).values(quantity=1))

        (latest,) = ledger.recent_transactions(limit=1)
        assert latest.quantity == record.quantity
        assert latest.notes == record.notes

    def test_other_tables_still_updatable(self, ledger, database, record, stocked_component):
        with database.unit_of_work("adjust_thresholds") as session:
            session.execute(
                update(InventoryItem)
                .where(InventoryItem.component_id == stocked_component.id)
                .values(min_stock_level=1)
            )
        (row,) = ledger.inventory_for_component(stocked_component.id)
        assert row.min_stock_level == 1
