"""
Module: inventory_ledger.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    form the "Q" side of the ledger, providing structured read access to
    inventory state without mutation capability.
Architecture position: Ledger > Selectors.  May import from models/, domain/
    and services/ (read methods only).

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses, NOT raw ORM
      model instances.
    - Session ownership: Selectors do NOT create or manage their own sessions;
      the caller owns the session and its snapshot (``read_scope()``).
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
