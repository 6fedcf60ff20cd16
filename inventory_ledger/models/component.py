"""
Module: inventory_ledger.models.component
Responsibility: ORM persistence for components, the trackable part types.
Architecture position: Ledger > Models.  May import from db/ only.

Invariants enforced:
    - component_number is unique (UNIQUE constraint).
    - Once referenced by an inventory row or transaction, a component is
      treated as an immutable foreign key by the ledger.  Descriptive fields
      belong to administrative collaborators.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_ledger.db.base import Base


class Component(Base):
    """
    A part type identified by a unique human-readable number.

    ``min_stock_level`` is the default threshold copied onto each
    (component, location) row when the row is first created.
    """

    __tablename__ = "components"

    __table_args__ = (
        CheckConstraint("min_stock_level >= 0", name="ck_component_min_stock"),
        Index("idx_component_active", "is_active"),
    )

    component_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    supplier: Mapped[str | None] = mapped_column(String(100), nullable=True)

    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    min_stock_level: Mapped[int] = mapped_column(nullable=False, default=5)

    max_stock_level: Mapped[int | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Component {self.component_number}>"
