"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures returned across the ledger's
    boundary: the committed TransactionRecord, reference data snapshots,
    read models for reporting (InventoryRow, TransactionActivity,
    DashboardStats, ComponentStock), replay verification results and
    stock count results.

Architecture position:
    Ledger > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Callers never receive ORM entities, so nothing they hold can be
      flushed back into the ledger by accident.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from inventory_ledger.domain.operations import TransactionType

if TYPE_CHECKING:
    from inventory_ledger.models.component import Component as ComponentModel
    from inventory_ledger.models.inventory import (
        InventoryTransaction as InventoryTransactionModel,
    )
    from inventory_ledger.models.location import (
        Facility as FacilityModel,
        InventoryLocation as InventoryLocationModel,
    )


# ---------------------------------------------------------------------------
# Transaction log
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransactionRecord:
    """A committed, immutable transaction log entry."""

    id: int
    transaction_type: TransactionType
    component_id: int
    from_location_id: int | None
    to_location_id: int | None
    quantity: int
    notes: str | None
    created_at: datetime
    created_by: int | None = None

    @classmethod
    def from_model(cls, model: InventoryTransactionModel) -> TransactionRecord:
        return cls(
            id=model.id,
            transaction_type=TransactionType(model.transaction_type),
            component_id=model.component_id,
            from_location_id=model.from_location_id,
            to_location_id=model.to_location_id,
            quantity=model.quantity,
            notes=model.notes,
            created_at=model.created_at,
            created_by=model.created_by,
        )

    def deltas(self) -> tuple[tuple[tuple[int, int], int], ...]:
        """
        Quantity changes this record applied, as ((component, location), delta).

        Used by replay: folding the deltas of every record in log order over
        an empty ledger reproduces the inventory snapshot.
        """
        changes = []
        if self.from_location_id is not None:
            changes.append(((self.component_id, self.from_location_id), -self.quantity))
        if self.to_location_id is not None:
            changes.append(((self.component_id, self.to_location_id), self.quantity))
        return tuple(changes)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FacilityInfo:
    """Facility snapshot."""

    id: int
    name: str
    code: str
    is_active: bool

    @classmethod
    def from_model(cls, model: FacilityModel) -> FacilityInfo:
        return cls(
            id=model.id,
            name=model.name,
            code=model.code,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class LocationInfo:
    """Inventory location snapshot."""

    id: int
    name: str
    facility_id: int | None
    location_type: str
    is_active: bool
    description: str | None = None

    @classmethod
    def from_model(cls, model: InventoryLocationModel) -> LocationInfo:
        return cls(
            id=model.id,
            name=model.name,
            facility_id=model.facility_id,
            location_type=str(getattr(model.location_type, "value", model.location_type)),
            is_active=model.is_active,
            description=model.description,
        )


@dataclass(frozen=True)
class ComponentInfo:
    """Component snapshot."""

    id: int
    component_number: str
    description: str
    category: str | None
    supplier: str | None
    unit_price: Decimal | None
    min_stock_level: int
    max_stock_level: int | None
    is_active: bool

    @classmethod
    def from_model(cls, model: ComponentModel) -> ComponentInfo:
        return cls(
            id=model.id,
            component_number=model.component_number,
            description=model.description,
            category=model.category,
            supplier=model.supplier,
            unit_price=model.unit_price,
            min_stock_level=model.min_stock_level,
            max_stock_level=model.max_stock_level,
            is_active=model.is_active,
        )


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventoryRow:
    """One (component, location) row with display context."""

    component_id: int
    component_number: str
    component_description: str
    category: str | None
    location_id: int
    location_name: str
    quantity: int
    min_stock_level: int
    last_updated: datetime

    @property
    def key(self) -> tuple[int, int]:
        return (self.component_id, self.location_id)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level

    @property
    def deficit(self) -> int:
        """How far the row sits below its threshold (0 or negative when not low)."""
        return self.min_stock_level - self.quantity


@dataclass(frozen=True)
class TransactionActivity:
    """A transaction joined with component and location names."""

    id: int
    transaction_type: TransactionType
    component_id: int
    component_number: str
    component_description: str
    from_location_id: int | None
    from_location_name: str | None
    to_location_id: int | None
    to_location_name: str | None
    quantity: int
    notes: str | None
    created_at: datetime
    created_by: int | None


@dataclass(frozen=True)
class DashboardStats:
    """Headline numbers for the dashboard."""

    total_components: int
    main_inventory_total: int
    line_inventory_total: int
    low_stock_alerts: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalComponents": self.total_components,
            "mainInventoryTotal": self.main_inventory_total,
            "lineInventoryTotal": self.line_inventory_total,
            "lowStockAlerts": self.low_stock_alerts,
        }


@dataclass(frozen=True)
class ComponentStock:
    """A component with its quantity at every location that holds a row."""

    component: ComponentInfo
    quantities: tuple[tuple[str, int], ...] = ()

    @property
    def total_quantity(self) -> int:
        return sum(qty for _, qty in self.quantities)

    def quantity_at(self, location_name: str) -> int:
        for name, qty in self.quantities:
            if name == location_name:
                return qty
        return 0


# ---------------------------------------------------------------------------
# Replay verification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReplayMismatch:
    """A key whose stored quantity disagrees with the replayed log."""

    component_id: int
    location_id: int
    stored_quantity: int
    replayed_quantity: int


@dataclass(frozen=True)
class ReplayVerification:
    """Outcome of replaying the transaction log against the stored snapshot."""

    transaction_count: int
    stored_hash: str
    replayed_hash: str
    mismatches: tuple[ReplayMismatch, ...] = ()
    # Keys whose running quantity went below zero while folding the log
    negative_keys: tuple[tuple[int, int], ...] = ()

    @property
    def is_consistent(self) -> bool:
        return not self.mismatches and not self.negative_keys


# ---------------------------------------------------------------------------
# Stock counts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockCountLine:
    """One counted line from an already parsed count sheet."""

    component_number: str
    counted_quantity: int
    notes: str | None = None
    # Used only when the count may create missing components
    description: str | None = None
    category: str | None = None
    supplier: str | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class StockCountError:
    """A count line that could not be applied."""

    line_number: int
    component_number: str
    code: str
    message: str


@dataclass(frozen=True)
class StockCountResult:
    """Summary of applying a stock count to one location."""

    location_id: int
    lines_total: int
    created: int = 0
    added: int = 0
    removed: int = 0
    unchanged: int = 0
    skipped: int = 0
    transactions: tuple[TransactionRecord, ...] = field(default_factory=tuple)
    errors: tuple[StockCountError, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return not self.errors
