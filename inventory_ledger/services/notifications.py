"""
Change notifications -- the boundary between the ledger and its listeners.

Responsibility:
    Carries one ``InventoryChangeEvent`` per committed mutation to whoever
    is interested (websocket fan-out, cache invalidation, tests) without the
    ledger core knowing about any transport.

Architecture position:
    Ledger > Services.  TransferEngine publishes strictly after commit and
    outside every lock.

Invariants enforced:
    - ``publish()`` never blocks on a slow subscriber: each subscriber has
      a bounded queue and the oldest event is dropped when it is full.
    - A bounded history supports catch-up after reconnects.

Non-goals:
    - Delivery guarantees.  Events are hints to refresh; the ledger itself
      stays the source of truth.
"""

from __future__ import annotations

import json
import queue
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Iterable, Protocol

from inventory_ledger.domain.dtos import TransactionRecord
from inventory_ledger.domain.operations import TransactionType
from inventory_ledger.logging_config import get_logger

logger = get_logger("services.notifications")

EVENT_TYPE = "INVENTORY_UPDATED"


@dataclass(frozen=True)
class InventoryChangeEvent:
    transaction_id: int
    transaction_type: TransactionType
    component_id: int
    occurred_at: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord) -> InventoryChangeEvent:
        return cls(
            transaction_id=record.id,
            transaction_type=record.transaction_type,
            component_id=record.component_id,
            occurred_at=record.created_at,
        )

    def to_json(self) -> str:
        payload = {
            "type": EVENT_TYPE,
            "data": {
                "transactionId": self.transaction_id,
                "type": self.transaction_type.value,
                "componentId": self.component_id,
                "occurredAt": self.occurred_at.isoformat(),
            },
        }
        return json.dumps(payload)


class ChangeNotifier(Protocol):
    def publish(self, event: InventoryChangeEvent) -> None: ...


class NullNotifier:
    """Discards every event."""

    def publish(self, event: InventoryChangeEvent) -> None:
        return None


class InventoryEventBroker:
    """
    In-process fan-out with bounded per-subscriber queues.

    Usage:
        broker = InventoryEventBroker()
        q = broker.subscribe()
        ...
        event = q.get(timeout=1)
    """

    def __init__(self, queue_size: int = 400, history_size: int = 2000) -> None:
        self._queue_size = queue_size
        self._subscribers: set[queue.Queue[InventoryChangeEvent]] = set()
        self._history: Deque[InventoryChangeEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self.dropped = 0

    def subscribe(self) -> queue.Queue[InventoryChangeEvent]:
        q: queue.Queue[InventoryChangeEvent] = queue.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.add(q)
        return q

    def unsubscribe(self, q: queue.Queue[InventoryChangeEvent]) -> None:
        with self._lock:
            self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def history(self) -> list[InventoryChangeEvent]:
        with self._lock:
            return list(self._history)

    def replay_since(self, transaction_id: int) -> list[InventoryChangeEvent]:
        """Events in history after ``transaction_id``, oldest first."""
        with self._lock:
            history = list(self._history)
        return [event for event in history if event.transaction_id > transaction_id]

    def publish(self, event: InventoryChangeEvent) -> None:
        with self._lock:
            self._history.append(event)
            subscribers: Iterable[queue.Queue[InventoryChangeEvent]] = list(self._subscribers)
        for q in subscribers:
            try:
                q.put_nowait(event)
            except queue.Full:
                try:
                    _ = q.get_nowait()
                    with self._lock:
                        self.dropped += 1
                    q.put_nowait(event)
                except (queue.Empty, queue.Full):
                    logger.debug(
                        "change_event_dropped",
                        extra={"transaction_id": event.transaction_id},
                    )
