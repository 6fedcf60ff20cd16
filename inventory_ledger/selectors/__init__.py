"""Read-only selectors over the ledger."""

from inventory_ledger.selectors.inventory_selector import InventoryAggregator, InventorySelector
from inventory_ledger.selectors.replay_selector import (
    ReplaySelector,
    canonical_hash,
    replay_transactions,
    verify_ledger,
)

__all__ = [
    "InventoryAggregator",
    "InventorySelector",
    "ReplaySelector",
    "canonical_hash",
    "replay_transactions",
    "verify_ledger",
]
