"""
Module: inventory_ledger.db.types
Responsibility: Column types shared by every model.  Centralizes timestamp
    handling so that models and services agree on them.
Architecture position: Ledger > DB.  May be imported by models/, services/
    and selectors/.  MUST NOT import from any of those layers.
"""

from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp, portable across PostgreSQL and SQLite.

    Contract:
        Accepts aware datetimes on the way in (naive values are rejected) and
        always returns aware UTC datetimes on the way out.  SQLite has no
        timezone support, so values are normalized to naive UTC before they
        reach the driver and re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

