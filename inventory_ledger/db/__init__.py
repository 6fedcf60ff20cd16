"""Database layer: declarative base, column types, engine lifecycle, immutability."""

from inventory_ledger.db.base import Base
from inventory_ledger.db.engine import LedgerDatabase
from inventory_ledger.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "LedgerDatabase",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
]
