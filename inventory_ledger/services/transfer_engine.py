"""
TransferEngine -- the four atomic stock mutations.

Responsibility:
    Applies ``transfer``, ``add_stock``, ``remove_stock`` and ``consume`` as
    all-or-nothing steps over one or two LedgerStore rows plus exactly one
    TransactionLog append, then hands a change event to the notifier.

Architecture position:
    Ledger > Services -- the only writer of quantities and of the log.
    Owns its units of work (``LedgerDatabase.unit_of_work()``).

Invariants enforced:
    - quantity >= 0 for every row: decrements go through the conditional
      UPDATE in LedgerStore, inside the same transaction as the increment
      and the log append.
    - A transfer decrements the source and increments the destination by
      the same amount in one commit (conservation).
    - Exactly one transaction record per successful call, matching the
      change applied.
    - Operations touching the same (component, location) key are
      linearized: in-process by KeyLockRegistry, across processes by the
      database row locks.

Failure modes:
    - ValidationError subclasses before any state is touched.
    - InsufficientQuantityError from inside the unit of work; the whole unit
      rolls back.
    - LockTimeoutError / StoreUnavailableError surfaced as-is, never retried.

Audit relevance:
    Every mutation is logged as a structured event carrying the transaction
    id, the component and the locations involved.

Data flow:
    Operation -> validate -> lock keys -> unit of work
        [check refs -> decrement -> increment -> append] -> commit
        -> release locks -> publish InventoryChangeEvent
"""

from sqlalchemy.orm import Session

from inventory_ledger.db.engine import LedgerDatabase
from inventory_ledger.domain.clock import Clock, SystemClock
from inventory_ledger.domain.dtos import TransactionRecord
from inventory_ledger.domain.operations import (
    DEFAULT_CONSUME_NOTES,
    AddStock,
    ConsumeStock,
    Operation,
    RemoveStock,
    TransferStock,
)
from inventory_ledger.exceptions import (
    UnknownComponentError,
    UnknownLocationError,
    ValidationError,
)
from inventory_ledger.logging_config import LogContext, get_logger
from inventory_ledger.models.component import Component
from inventory_ledger.models.location import InventoryLocation
from inventory_ledger.services.key_locks import KeyLockRegistry
from inventory_ledger.services.ledger_store import LedgerStore
from inventory_ledger.services.notifications import (
    ChangeNotifier,
    InventoryChangeEvent,
    NullNotifier,
)
from inventory_ledger.services.transaction_log import TransactionLog

logger = get_logger("services.transfer_engine")

_COMPLETED_EVENTS = {
    "add": "stock_added",
    "remove": "stock_removed",
    "consume": "stock_consumed",
    "transfer": "stock_transferred",
}


class TransferEngine:
    """
    Applies ledger mutations atomically.

    Contract:
        Construct once per process with the shared LedgerDatabase and
        KeyLockRegistry; the engine itself holds no per-call state and is
        safe to call from many threads at once.

    Guarantees:
        - A failed call leaves every row and the log unchanged.
        - The notifier is called only after commit, outside all locks, and
          its failure never turns a committed mutation into an error.

    Non-goals:
        - No idempotency keys: a retried call is applied again.
        - No automatic retry on infrastructure errors.
    """

    def __init__(
        self,
        database: LedgerDatabase,
        clock: Clock | None = None,
        locks: KeyLockRegistry | None = None,
        notifier: ChangeNotifier | None = None,
        lock_timeout_seconds: float | None = None,
    ):
        self._database = database
        self._clock = clock or SystemClock()
        self._locks = locks or KeyLockRegistry()
        self._notifier = notifier or NullNotifier()
        self._lock_timeout = (
            lock_timeout_seconds
            if lock_timeout_seconds is not None
            else database.lock_timeout_seconds
        )

    @property
    def locks(self) -> KeyLockRegistry:
        return self._locks

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def transfer(
        self,
        component_id: int,
        from_location_id: int,
        to_location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        """Move ``quantity`` from one location to another."""
        return self.apply(
            TransferStock(
                component_id=component_id,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                quantity=quantity,
                notes=notes,
                actor_id=actor_id,
            )
        )

    def add_stock(
        self,
        component_id: int,
        location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        """Receive ``quantity`` into a location, creating the row if absent."""
        return self.apply(AddStock(component_id, location_id, quantity, notes, actor_id))

    def remove_stock(
        self,
        component_id: int,
        location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        """Take ``quantity`` out of a location."""
        return self.apply(RemoveStock(component_id, location_id, quantity, notes, actor_id))

    def consume(
        self,
        component_id: int,
        location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        """Use ``quantity`` up in production.  Recorded as ``consume``."""
        return self.apply(
            ConsumeStock(
                component_id,
                location_id,
                quantity,
                notes if notes is not None else DEFAULT_CONSUME_NOTES,
                actor_id,
            )
        )

    def apply(self, operation: Operation) -> TransactionRecord:
        """
        Apply one operation payload atomically.

        Preconditions:
            ``operation`` is one of AddStock, RemoveStock, ConsumeStock,
            TransferStock.

        Postconditions:
            On success the mutation and its transaction record are
            committed and a change event has been offered to the notifier.

        Raises:
            ValidationError, InsufficientQuantityError, InfrastructureError.
        """
        op_name = operation.transaction_type.value
        with LogContext.bind(operation=op_name, actor_id=operation.actor_id):
            try:
                operation.validate()
            except ValidationError as exc:
                logger.info(
                    "operation_rejected",
                    extra={"error_code": exc.code, "component_id": operation.component_id},
                )
                raise

            keys = operation.touched_keys()
            with self._locks.acquire(keys, self._lock_timeout):
                with self._database.unit_of_work(op_name) as session:
                    record = self._apply_in_session(session, operation)

            with LogContext.bind(transaction_id=record.id):
                logger.info(
                    _COMPLETED_EVENTS[op_name],
                    extra={
                        "component_id": record.component_id,
                        "from_location_id": record.from_location_id,
                        "to_location_id": record.to_location_id,
                        "quantity": record.quantity,
                    },
                )
                self._publish(record)
            return record

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_in_session(self, session: Session, operation: Operation) -> TransactionRecord:
        component = self._require_component(session, operation.component_id)
        source = operation.from_location_id
        destination = operation.to_location_id
        for location_id in (source, destination):
            if location_id is not None:
                self._require_location(session, location_id)

        store = LedgerStore(session, self._clock)
        log = TransactionLog(session, self._clock)

        if destination is not None:
            store.ensure_row(component.id, destination, component.min_stock_level)
        store.lock_rows(operation.touched_keys())

        if source is not None:
            store.apply_delta(component.id, source, -operation.quantity)
        if destination is not None:
            store.apply_delta(
                component.id,
                destination,
                operation.quantity,
                component.min_stock_level,
            )

        transaction_id = log.append(operation, created_at=self._clock.now())
        return log.get(transaction_id)

    @staticmethod
    def _require_component(session: Session, component_id: int) -> Component:
        component = session.get(Component, component_id)
        if component is None:
            logger.info("operation_rejected", extra={"error_code": UnknownComponentError.code})
            raise UnknownComponentError(component_id)
        return component

    @staticmethod
    def _require_location(session: Session, location_id: int) -> InventoryLocation:
        location = session.get(InventoryLocation, location_id)
        if location is None:
            logger.info("operation_rejected", extra={"error_code": UnknownLocationError.code})
            raise UnknownLocationError(location_id)
        return location

    def _publish(self, record: TransactionRecord) -> None:
        try:
            self._notifier.publish(InventoryChangeEvent.from_record(record))
        except Exception:
            logger.warning(
                "change_event_publish_failed",
                extra={"transaction_id": record.id},
                exc_info=True,
            )
