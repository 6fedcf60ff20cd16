"""Ledger services: the imperative shell around the database."""

from inventory_ledger.services.key_locks import KeyLockRegistry
from inventory_ledger.services.ledger_store import LedgerStore
from inventory_ledger.services.notifications import (
    ChangeNotifier,
    InventoryChangeEvent,
    InventoryEventBroker,
    NullNotifier,
)
from inventory_ledger.services.reference_data_service import ReferenceDataService
from inventory_ledger.services.stock_count_service import StockCountService
from inventory_ledger.services.transaction_log import (
    SortOrder,
    TransactionFilter,
    TransactionLog,
)
from inventory_ledger.services.transfer_engine import TransferEngine

__all__ = [
    "ChangeNotifier",
    "InventoryChangeEvent",
    "InventoryEventBroker",
    "KeyLockRegistry",
    "LedgerStore",
    "NullNotifier",
    "ReferenceDataService",
    "SortOrder",
    "StockCountService",
    "TransactionFilter",
    "TransactionLog",
    "TransferEngine",
]
