"""
BaseService -- abstract base for session-scoped ledger services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    services that run inside a caller's unit of work (LedgerStore,
    TransactionLog).  They use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Ledger > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (TransferEngine, ReferenceDataService, or test harness) owns
      commit/rollback via ``LedgerDatabase.unit_of_work()``.

Failure modes:
    - If a subclass commits on its own, a transfer's decrement could become
      durable without its increment.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_ledger.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for session-scoped services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide report queries -- those belong in
          ``inventory_ledger/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for timestamps (defaults to system time).
        """
        self.session = session
        self.clock = clock or SystemClock()
