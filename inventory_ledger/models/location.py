"""
Module: inventory_ledger.models.location
Responsibility: ORM persistence for facilities and the inventory locations
    they own.
Architecture position: Ledger > Models.  May import from db/ only.

Reference data maintained by administrative collaborators.  The ledger reads
locations to validate ids and to label read models; it never deletes them.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_ledger.db.base import Base, BigIntegerKey


class LocationType(str, Enum):
    """Where stock physically sits."""

    STORAGE = "storage"
    PRODUCTION = "production"


class Facility(Base):
    """A site owning one or more inventory locations."""

    __tablename__ = "facilities"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Facility {self.code}: {self.name}>"


class InventoryLocation(Base):
    """
    A named place where component stock is held.

    Two locations are distinguished by name for dashboard aggregation (the
    configured main and line location names).
    """

    __tablename__ = "inventory_locations"

    __table_args__ = (
        Index("idx_location_facility", "facility_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    facility_id: Mapped[int | None] = mapped_column(
        BigIntegerKey,
        ForeignKey("facilities.id"),
        nullable=True,
    )

    location_type: Mapped[LocationType] = mapped_column(
        String(20),
        nullable=False,
        default=LocationType.STORAGE,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<InventoryLocation {self.id}: {self.name}>"
