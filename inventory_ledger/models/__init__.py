"""ORM models for the inventory ledger."""

from inventory_ledger.models.component import Component
from inventory_ledger.models.inventory import (
    InventoryItem,
    InventoryTransaction,
    TransactionType,
)
from inventory_ledger.models.location import Facility, InventoryLocation, LocationType

__all__ = [
    "Component",
    "Facility",
    "InventoryItem",
    "InventoryLocation",
    "InventoryTransaction",
    "LocationType",
    "TransactionType",
]
