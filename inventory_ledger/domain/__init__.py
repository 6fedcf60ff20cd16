"""
Pure domain layer: operation payloads, DTOs and the clock.

Nothing in this package touches the database.
"""

from inventory_ledger.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_ledger.domain.dtos import (
    ComponentInfo,
    ComponentStock,
    DashboardStats,
    FacilityInfo,
    InventoryRow,
    LocationInfo,
    ReplayMismatch,
    ReplayVerification,
    StockCountError,
    StockCountLine,
    StockCountResult,
    TransactionActivity,
    TransactionRecord,
)
from inventory_ledger.domain.operations import (
    DEFAULT_CONSUME_NOTES,
    AddStock,
    ConsumeStock,
    Operation,
    RemoveStock,
    TransactionType,
    TransferStock,
    validate_quantity,
)

__all__ = [
    "AddStock",
    "Clock",
    "ComponentInfo",
    "ComponentStock",
    "ConsumeStock",
    "DEFAULT_CONSUME_NOTES",
    "DashboardStats",
    "DeterministicClock",
    "FacilityInfo",
    "InventoryRow",
    "LocationInfo",
    "Operation",
    "RemoveStock",
    "ReplayMismatch",
    "ReplayVerification",
    "StockCountError",
    "StockCountLine",
    "StockCountResult",
    "SystemClock",
    "TransactionActivity",
    "TransactionRecord",
    "TransactionType",
    "TransferStock",
    "validate_quantity",
]
