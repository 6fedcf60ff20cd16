"""
Module: inventory_ledger.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models.  Provides
    the integer surrogate key convention and the type annotation map for
    consistent column types.
Architecture position: Ledger > DB.  This is the lowest-level import target
    within the package.  ALL model files import from here.  This module MUST
    NOT import from models/, services/, selectors/, or domain/.

Invariants enforced:
    - Auto-incrementing integer primary keys on every table.  The
      transaction log relies on them as a tie-breaker for records sharing a
      created_at timestamp.
    - Timestamps are always timezone-aware.

Failure modes:
    - IntegrityError on unique / check constraint violations declared by the
      concrete models.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, Integer, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from inventory_ledger.db.types import UTCDateTime

# SQLite only auto-increments INTEGER PRIMARY KEY columns.
BigIntegerKey = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is an auto-incrementing integer surrogate key.
        - Decimal maps to Numeric(12, 2) (unit prices).
        - datetime maps to UTCDateTime (aware UTC on every backend).
        - int maps to Integer (quantities and thresholds).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(12, 2),
        datetime: UTCDateTime(),
        int: Integer,
    }

    id: Mapped[int] = mapped_column(
        BigIntegerKey,
        primary_key=True,
        autoincrement=True,
    )
