"""
LedgerStore -- authoritative quantity per (component, location).

Responsibility:
    Holds and serves current quantities.  Accepts only whole-row reads and
    conditional writes; the only writer is the TransferEngine (and
    ReferenceDataService for thresholds, which never touches quantity).

Architecture position:
    Ledger > Services -- imperative shell.  Runs inside the caller's unit
    of work and never commits.

Invariants enforced:
    - quantity >= 0: every decrement is a conditional
      ``UPDATE ... SET quantity = quantity + :delta WHERE quantity >= :needed``.
      A zero rowcount means the row could not cover the request and
      InsufficientQuantityError is raised; nothing is clamped.
    - Rows are created lazily with ``INSERT ... ON CONFLICT DO NOTHING`` so
      concurrent first writers of the same key never collide.
    - On PostgreSQL, ``lock_rows()`` takes ``SELECT ... FOR UPDATE`` locks in
      sorted key order.

Failure modes:
    - InsufficientQuantityError on a decrement the row cannot cover.
    - InvalidThresholdError for a negative minimum stock level.
    - DBAPIError from the driver (translated by the unit of work).
"""

from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from inventory_ledger.exceptions import InsufficientQuantityError, InvalidThresholdError
from inventory_ledger.logging_config import get_logger
from inventory_ledger.models.inventory import InventoryItem
from inventory_ledger.services.base import BaseService

logger = get_logger("services.ledger_store")

_items = InventoryItem.__table__


class LedgerStore(BaseService):
    """
    Row-level access to ``inventory_items``.

    Contract:
        Callers hold a unit of work and, within one process, the
        KeyLockRegistry locks for every key they mutate.

    Guarantees:
        - ``get_quantity()`` returns 0 for an absent row.
        - ``apply_delta()`` either applies the full delta or raises; there is
          no partial application.
    """

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_quantity(self, component_id: int, location_id: int) -> int:
        """Current quantity, 0 when the row does not exist."""
        quantity = self.session.execute(
            select(_items.c.quantity).where(
                _items.c.component_id == component_id,
                _items.c.location_id == location_id,
            )
        ).scalar_one_or_none()
        return quantity if quantity is not None else 0

    def get_min_stock_level(self, component_id: int, location_id: int) -> int | None:
        return self.session.execute(
            select(_items.c.min_stock_level).where(
                _items.c.component_id == component_id,
                _items.c.location_id == location_id,
            )
        ).scalar_one_or_none()

    def snapshot(self) -> dict[tuple[int, int], int]:
        """Every stored row as ``{(component_id, location_id): quantity}``."""
        rows = self.session.execute(
            select(_items.c.component_id, _items.c.location_id, _items.c.quantity)
        ).all()
        return {(row.component_id, row.location_id): row.quantity for row in rows}

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_rows(self, keys: Iterable[tuple[int, int]]) -> None:
        """
        Take row locks on existing rows, in sorted key order.

        Only meaningful on PostgreSQL; other dialects compile
        ``FOR UPDATE`` away and rely on the database write lock.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        for component_id, location_id in sorted(set(keys)):
            self.session.execute(
                select(_items.c.id)
                .where(
                    _items.c.component_id == component_id,
                    _items.c.location_id == location_id,
                )
                .with_for_update()
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def ensure_row(self, component_id: int, location_id: int, min_stock_level: int) -> None:
        """
        Create the row with quantity 0 if it does not exist yet.

        Preconditions:
            component_id and location_id reference existing rows.
        """
        values = {
            "component_id": component_id,
            "location_id": location_id,
            "quantity": 0,
            "min_stock_level": min_stock_level,
            "last_updated": self.clock.now(),
        }
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(_items).values(**values).on_conflict_do_nothing(
                index_elements=["component_id", "location_id"]
            )
            self.session.execute(stmt)
        elif dialect == "sqlite":
            stmt = sqlite_insert(_items).values(**values).on_conflict_do_nothing(
                index_elements=["component_id", "location_id"]
            )
            self.session.execute(stmt)
        else:
            # No native upsert: insert under a savepoint and ignore the race
            savepoint = self.session.begin_nested()
            try:
                self.session.execute(_items.insert().values(**values))
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()

    def apply_delta(
        self,
        component_id: int,
        location_id: int,
        delta: int,
        min_stock_level: int = 5,
    ) -> int:
        """
        Add ``delta`` (positive or negative) to the row and return the new quantity.

        Positive deltas create the row when absent, using ``min_stock_level``
        as its threshold.  Negative deltas never create rows.

        Raises:
            InsufficientQuantityError: if the result would be negative.
        """
        if delta == 0:
            return self.get_quantity(component_id, location_id)

        key_clause = (
            _items.c.component_id == component_id,
            _items.c.location_id == location_id,
        )
        stmt = update(_items).where(*key_clause)

        if delta > 0:
            self.ensure_row(component_id, location_id, min_stock_level)
        else:
            stmt = stmt.where(_items.c.quantity >= -delta)

        result = self.session.execute(
            stmt.values(
                quantity=_items.c.quantity + delta,
                last_updated=self.clock.now(),
            )
        )
        if result.rowcount == 0:
            available = self.get_quantity(component_id, location_id)
            logger.info(
                "insufficient_quantity_rejected",
                extra={
                    "component_id": component_id,
                    "location_id": location_id,
                    "requested": -delta,
                    "available": available,
                },
            )
            raise InsufficientQuantityError(component_id, location_id, -delta, available)

        new_quantity = self.get_quantity(component_id, location_id)
        logger.debug(
            "inventory_row_updated",
            extra={
                "component_id": component_id,
                "location_id": location_id,
                "delta": delta,
                "quantity": new_quantity,
            },
        )
        return new_quantity

    def set_min_stock_level(
        self,
        component_id: int,
        location_id: int,
        min_stock_level: int,
    ) -> None:
        """
        Change the per-row low-stock threshold.  Never touches quantity.

        Creates the row with quantity 0 when it does not exist.
        """
        if (
            isinstance(min_stock_level, bool)
            or not isinstance(min_stock_level, int)
            or min_stock_level < 0
        ):
            raise InvalidThresholdError(min_stock_level)
        self.ensure_row(component_id, location_id, min_stock_level)
        self.session.execute(
            update(_items)
            .where(
                _items.c.component_id == component_id,
                _items.c.location_id == location_id,
            )
            .values(min_stock_level=min_stock_level, last_updated=self.clock.now())
        )
        logger.info(
            "min_stock_level_set",
            extra={
                "component_id": component_id,
                "location_id": location_id,
                "min_stock_level": min_stock_level,
            },
        )
