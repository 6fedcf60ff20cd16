"""
Module: inventory_ledger.models.inventory
Responsibility: ORM persistence for the ledger's two relations -- the
    mutable quantity per (component, location) and the append-only
    transaction log.
Architecture position: Ledger > Models.  May import from db/ and the pure
    domain enums.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - (component_id, location_id) is unique on inventory_items.
    - quantity >= 0 on every inventory row (CHECK constraint; the ledger
      store additionally writes through a conditional UPDATE).
    - Transaction quantity > 0 and the from/to columns match the type
      (CHECK constraint ck_transaction_shape).
    - Transactions are never updated or deleted (ORM listeners in
      db/immutability.py).

Failure modes:
    - IntegrityError if a write would violate one of the constraints above.
    - ImmutabilityViolationError on UPDATE/DELETE of a transaction.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_ledger.db.base import Base, BigIntegerKey
from inventory_ledger.domain.operations import TransactionType


class InventoryItem(Base):
    """
    Current quantity of one component at one location.

    Contract:
        Created lazily the first time the component gains stock at the
        location (or gets a threshold set there).  Never deleted by the
        ledger.  Only the TransferEngine changes ``quantity``.

    Guarantees:
        - quantity >= 0.
        - min_stock_level is per (component, location), defaulting from
          the component's configured default.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("component_id", "location_id", name="uq_inventory_item_key"),
        CheckConstraint("quantity >= 0", name="ck_inventory_item_quantity"),
        CheckConstraint("min_stock_level >= 0", name="ck_inventory_item_min_stock"),
        Index("idx_inventory_item_location", "location_id"),
    )

    component_id: Mapped[int] = mapped_column(
        BigIntegerKey,
        ForeignKey("components.id"),
        nullable=False,
    )

    location_id: Mapped[int] = mapped_column(
        BigIntegerKey,
        ForeignKey("inventory_locations.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    min_stock_level: Mapped[int] = mapped_column(nullable=False, default=5)

    last_updated: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def key(self) -> tuple[int, int]:
        return (self.component_id, self.location_id)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level

    def __repr__(self) -> str:
        return (
            f"<InventoryItem component={self.component_id} "
            f"location={self.location_id} qty={self.quantity}>"
        )


class InventoryTransaction(Base):
    """
    Immutable fact record of one committed stock mutation.

    Contract:
        Exactly one record per successful TransferEngine call.  The id is
        auto-incrementing; (created_at, id) is the replay order.

    Guarantees:
        - add:              to_location_id set, from_location_id NULL
        - remove / consume: from_location_id set, to_location_id NULL
        - transfer:         both set and different
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_transaction_quantity"),
        CheckConstraint(
            "(transaction_type = 'add' AND from_location_id IS NULL "
            "AND to_location_id IS NOT NULL) OR "
            "(transaction_type IN ('remove', 'consume') AND from_location_id IS NOT NULL "
            "AND to_location_id IS NULL) OR "
            "(transaction_type = 'transfer' AND from_location_id IS NOT NULL "
            "AND to_location_id IS NOT NULL AND from_location_id <> to_location_id)",
            name="ck_transaction_shape",
        ),
        Index("idx_transaction_created", "created_at", "id"),
        Index("idx_transaction_component", "component_id"),
        Index("idx_transaction_type", "transaction_type"),
    )

    component_id: Mapped[int] = mapped_column(
        BigIntegerKey,
        ForeignKey("components.id"),
        nullable=False,
    )

    from_location_id: Mapped[int | None] = mapped_column(
        BigIntegerKey,
        ForeignKey("inventory_locations.id"),
        nullable=True,
    )

    to_location_id: Mapped[int | None] = mapped_column(
        BigIntegerKey,
        ForeignKey("inventory_locations.id"),
        nullable=True,
    )

    quantity: Mapped[int] = mapped_column(nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    # Acting user id, owned by the authentication collaborator
    created_by: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.id} {self.transaction_type} "
            f"qty={self.quantity}>"
        )
