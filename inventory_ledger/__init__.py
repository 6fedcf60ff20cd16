"""
Inventory Ledger

Per-location component stock with:
- Atomic transfer / add / remove / consume operations
- Non-negative quantities under concurrent mutation
- Append-only, replayable transaction log
- Dashboard, low-stock and activity read models
"""

__version__ = "0.1.0"
