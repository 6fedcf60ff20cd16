"""
ORM-Level Append-Only Enforcement for the Transaction Log.

===============================================================================
WHY THIS EXISTS
===============================================================================

The transaction log is the ledger's audit trail: replaying it from an empty
ledger must reproduce the current inventory snapshot.  A single edited or
deleted record breaks that guarantee silently, so the ORM refuses to emit
UPDATE or DELETE for ``InventoryTransaction`` rows.

Two paths are covered:

    session.flush()                       session.execute(update(...))
         |                                     |
         v                                     v
    [before_update / before_delete]       [do_orm_execute]
         |                                     |
         +---------> ImmutabilityViolationError <---+

If a check fails the flush (or statement) is aborted and the enclosing unit
of work rolls back.  The database is never modified.

===============================================================================
USAGE
===============================================================================

Called by ``InventoryLedger.open()`` (and the test suite) once:

    from inventory_ledger.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session

from inventory_ledger.exceptions import ImmutabilityViolationError
from inventory_ledger.logging_config import get_logger

logger = get_logger("db.immutability")

_PROTECTED_TABLE = "inventory_transactions"


def _block(entity_id: str, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryTransaction",
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryTransaction",
        entity_id=entity_id,
        reason=reason,
    )


def _check_transaction_update(mapper, connection, target):
    """Prevent any updates to InventoryTransaction records."""
    _block(str(target.id), "UPDATE", "Inventory transactions are immutable")


def _check_transaction_delete(mapper, connection, target):
    """Prevent deletion of InventoryTransaction records."""
    _block(str(target.id), "DELETE", "Inventory transactions cannot be deleted")


def _check_bulk_statement(orm_execute_state: ORMExecuteState):
    """
    Reject bulk UPDATE/DELETE statements aimed at the transaction log.

    Mapper events do not fire for ``session.execute(update(...))``, so the
    statement itself is inspected.
    """
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    table = getattr(orm_execute_state.statement, "table", None)
    if getattr(table, "name", None) != _PROTECTED_TABLE:
        return
    operation = "UPDATE" if orm_execute_state.is_update else "DELETE"
    _block("*", operation, f"Bulk {operation} of inventory transactions is not allowed")


def register_immutability_listeners():
    """
    Register all append-only enforcement event listeners.

    Idempotent: listeners already registered are left alone.
    """
    from inventory_ledger.models.inventory import InventoryTransaction

    if not event.contains(InventoryTransaction, "before_update", _check_transaction_update):
        event.listen(InventoryTransaction, "before_update", _check_transaction_update)
    if not event.contains(InventoryTransaction, "before_delete", _check_transaction_delete):
        event.listen(InventoryTransaction, "before_delete", _check_transaction_delete)
    if not event.contains(Session, "do_orm_execute", _check_bulk_statement):
        event.listen(Session, "do_orm_execute", _check_bulk_statement)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove append-only enforcement event listeners.

    WARNING: Only use this in tests that need to tamper with the log to
    verify that replay detects it.
    """
    from inventory_ledger.models.inventory import InventoryTransaction

    _safe_remove_listener(InventoryTransaction, "before_update", _check_transaction_update)
    _safe_remove_listener(InventoryTransaction, "before_delete", _check_transaction_delete)
    _safe_remove_listener(Session, "do_orm_execute", _check_bulk_statement)
