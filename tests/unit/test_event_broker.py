"""
Unit tests for change events and the in-process broker.

Verifies:
- Event JSON shape
- Fan-out to every subscriber
- Bounded queues drop the oldest event instead of blocking
- History and catch-up after a given transaction id
"""

import json
import queue
from datetime import UTC, datetime

from inventory_ledger.domain.dtos import TransactionRecord
from inventory_ledger.domain.operations import TransactionType
from inventory_ledger.services.notifications import (
    EVENT_TYPE,
    InventoryChangeEvent,
    InventoryEventBroker,
    NullNotifier,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def _event(txn_id: int) -> InventoryChangeEvent:
    return InventoryChangeEvent(
        transaction_id=txn_id,
        transaction_type=TransactionType.ADD,
        component_id=7,
        occurred_at=T0,
    )


class TestInventoryChangeEvent:
    def test_from_record(self):
        record = TransactionRecord(
            id=12,
            transaction_type=TransactionType.TRANSFER,
            component_id=3,
            from_location_id=1,
            to_location_id=2,
            quantity=4,
            notes=None,
            created_at=T0,
        )
        event = InventoryChangeEvent.from_record(record)
        assert event.transaction_id == 12
        assert event.transaction_type == TransactionType.TRANSFER
        assert event.component_id == 3
        assert event.occurred_at == T0

    def test_to_json(self):
        payload = json.loads(_event(5).to_json())
        assert payload == {
            "type": EVENT_TYPE,
            "data": {
                "transactionId": 5,
                "type": "add",
                "componentId": 7,
                "occurredAt": T0.isoformat(),
            },
        }


class TestInventoryEventBroker:
    def test_fan_out(self):
        broker = InventoryEventBroker()
        first, second = broker.subscribe(), broker.subscribe()
        broker.publish(_event(1))
        assert first.get_nowait().transaction_id == 1
        assert second.get_nowait().transaction_id == 1

    def test_unsubscribe(self):
        broker = InventoryEventBroker()
        q = broker.subscribe()
        assert broker.subscriber_count == 1
        broker.unsubscribe(q)
        assert broker.subscriber_count == 0
        broker.publish(_event(1))
        assert q.empty()

    def test_full_queue_drops_oldest(self):
        broker = InventoryEventBroker(queue_size=2)
        q = broker.subscribe()
        for txn_id in (1, 2, 3):
            broker.publish(_event(txn_id))
        assert broker.dropped == 1
        assert [q.get_nowait().transaction_id for _ in range(2)] == [2, 3]
        assert q.empty()

    def test_history_bounded(self):
        broker = InventoryEventBroker(history_size=3)
        for txn_id in range(1, 6):
            broker.publish(_event(txn_id))
        assert [e.transaction_id for e in broker.history()] == [3, 4, 5]

    def test_replay_since(self):
        broker = InventoryEventBroker()
        for txn_id in range(1, 5):
            broker.publish(_event(txn_id))
        assert [e.transaction_id for e in broker.replay_since(2)] == [3, 4]
        assert broker.replay_since(4) == []

    def test_publish_without_subscribers(self):
        broker = InventoryEventBroker()
        broker.publish(_event(1))
        assert len(broker.history()) == 1

    def test_subscriber_queue_is_a_queue(self):
        assert isinstance(InventoryEventBroker().subscribe(), queue.Queue)


def test_null_notifier_discards():
    assert NullNotifier().publish(_event(1)) is None
