"""
TransactionLog -- append-only fact store of committed stock mutations.

Responsibility:
    Appends exactly one ``InventoryTransaction`` per successful
    TransferEngine call and serves ordered, filtered reads of the log for
    the aggregator and for replay.

Architecture position:
    Ledger > Services -- imperative shell.  Runs inside the caller's unit
    of work and never commits.

Invariants enforced:
    - Append-only: this class has no update or delete path, and the ORM
      listeners in ``db/immutability.py`` reject any attempt elsewhere.
    - Replay order is ``(created_at, id)`` ascending.

Failure modes:
    - DBAPIError from the driver only (translated by the unit of work).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import func, or_, select

from inventory_ledger.domain.dtos import TransactionRecord
from inventory_ledger.domain.operations import Operation, TransactionType
from inventory_ledger.logging_config import get_logger
from inventory_ledger.models.inventory import InventoryTransaction
from inventory_ledger.services.base import BaseService

logger = get_logger("services.transaction_log")


class SortOrder(str, Enum):
    OLDEST_FIRST = "asc"
    NEWEST_FIRST = "desc"


@dataclass(frozen=True)
class TransactionFilter:
    """Filter for ``TransactionLog.query()``.  Unset fields match everything."""

    component_id: int | None = None
    # Matches either side of the record
    location_id: int | None = None
    transaction_types: tuple[TransactionType, ...] = ()
    since: datetime | None = None
    until: datetime | None = None
    created_by: int | None = None


class TransactionLog(BaseService):
    """
    Append and read transaction records.

    Guarantees:
        - ``append()`` never modifies an existing record.
        - ``query()`` is side-effect free.
    """

    def append(self, operation: Operation, created_at: datetime | None = None) -> int:
        """
        Record one committed-to-be operation and return its id.

        The record becomes durable when the caller's unit of work commits.
        """
        record = InventoryTransaction(
            component_id=operation.component_id,
            from_location_id=operation.from_location_id,
            to_location_id=operation.to_location_id,
            quantity=operation.quantity,
            transaction_type=operation.transaction_type.value,
            notes=operation.notes,
            created_at=created_at or self.clock.now(),
            created_by=operation.actor_id,
        )
        self.session.add(record)
        self.session.flush()
        logger.debug(
            "transaction_appended",
            extra={
                "transaction_id": record.id,
                "transaction_type": operation.transaction_type.value,
                "component_id": operation.component_id,
                "quantity": operation.quantity,
            },
        )
        return record.id

    def get(self, transaction_id: int) -> TransactionRecord | None:
        model = self.session.get(InventoryTransaction, transaction_id)
        return TransactionRecord.from_model(model) if model is not None else None

    def _filtered(self, stmt, flt: TransactionFilter):
        if flt.component_id is not None:
            stmt = stmt.where(InventoryTransaction.component_id == flt.component_id)
        if flt.location_id is not None:
            stmt = stmt.where(
                or_(
                    InventoryTransaction.from_location_id == flt.location_id,
                    InventoryTransaction.to_location_id == flt.location_id,
                )
            )
        if flt.transaction_types:
            stmt = stmt.where(
                InventoryTransaction.transaction_type.in_(
                    [TransactionType(t).value for t in flt.transaction_types]
                )
            )
        if flt.since is not None:
            stmt = stmt.where(InventoryTransaction.created_at >= flt.since)
        if flt.until is not None:
            stmt = stmt.where(InventoryTransaction.created_at < flt.until)
        if flt.created_by is not None:
            stmt = stmt.where(InventoryTransaction.created_by == flt.created_by)
        return stmt

    def query(
        self,
        flt: TransactionFilter | None = None,
        limit: int | None = None,
        order: SortOrder = SortOrder.NEWEST_FIRST,
    ) -> list[TransactionRecord]:
        """
        Read records matching ``flt`` in ``(created_at, id)`` order.

        Args:
            flt: Optional filter.
            limit: Maximum number of records (None for all).
            order: NEWEST_FIRST (reporting) or OLDEST_FIRST (replay).
        """
        stmt = self._filtered(select(InventoryTransaction), flt or TransactionFilter())
        if order == SortOrder.OLDEST_FIRST:
            stmt = stmt.order_by(InventoryTransaction.created_at, InventoryTransaction.id)
        else:
            stmt = stmt.order_by(
                InventoryTransaction.created_at.desc(),
                InventoryTransaction.id.desc(),
            )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            TransactionRecord.from_model(model)
            for model in self.session.execute(stmt).scalars()
        ]

    def count(self, flt: TransactionFilter | None = None) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(InventoryTransaction),
            flt or TransactionFilter(),
        )
        return self.session.execute(stmt).scalar_one()
