"""
Module: inventory_ledger.selectors.inventory_selector
Responsibility: Read-only derived views over the ledger -- dashboard totals,
    the low-stock list, the recent-activity feed, the consumption report,
    inventory listings and component search.  Everything is computed fresh
    from ``inventory_items`` and ``inventory_transactions``; nothing is
    cached.
Architecture position: Ledger > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT write.

Invariants enforced:
    - No torn reads: each aggregate that spans the two rows of a transfer is
      one SQL statement, and on PostgreSQL the whole scope runs at
      REPEATABLE READ (``LedgerDatabase.read_scope()``).
    - Deterministic ordering: low-stock rows are ordered by deficit
      (most depleted first), then component number, then location id; the
      activity feed by (created_at, id) descending.

Failure modes:
    - StoreUnavailableError when the database fails inside the read scope.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from inventory_ledger.db.engine import LedgerDatabase
from inventory_ledger.domain.dtos import (
    ComponentInfo,
    ComponentStock,
    DashboardStats,
    InventoryRow,
    TransactionActivity,
)
from inventory_ledger.domain.operations import TransactionType
from inventory_ledger.models.component import Component
from inventory_ledger.models.inventory import InventoryItem, InventoryTransaction
from inventory_ledger.models.location import InventoryLocation
from inventory_ledger.selectors.base import BaseSelector


class InventorySelector(BaseSelector):
    """
    Session-scoped read queries.

    Contract:
        The caller supplies a session (normally from ``read_scope()``) and
        every method returns frozen DTOs.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard_stats(self, main_location_name: str, line_location_name: str) -> DashboardStats:
        """
        Headline totals.

        - total_components: active components.
        - main/line totals: summed quantity at the two well-known locations
          (0 when a location does not exist).
        - low_stock_alerts: rows whose quantity <= their own threshold.
        """
        total_components = self.session.execute(
            select(func.count()).select_from(Component).where(Component.is_active.is_(True))
        ).scalar_one()

        totals = dict(
            self.session.execute(
                select(
                    InventoryLocation.name,
                    func.coalesce(func.sum(InventoryItem.quantity), 0),
                )
                .join(InventoryItem, InventoryItem.location_id == InventoryLocation.id)
                .where(InventoryLocation.name.in_([main_location_name, line_location_name]))
                .group_by(InventoryLocation.name)
            ).all()
        )

        low_stock_alerts = self.session.execute(
            select(func.count())
            .select_from(InventoryItem)
            .where(InventoryItem.quantity <= InventoryItem.min_stock_level)
        ).scalar_one()

        return DashboardStats(
            total_components=total_components,
            main_inventory_total=int(totals.get(main_location_name, 0)),
            line_inventory_total=int(totals.get(line_location_name, 0)),
            low_stock_alerts=low_stock_alerts,
        )

    # ------------------------------------------------------------------
    # Inventory rows
    # ------------------------------------------------------------------

    def _row_query(self):
        return (
            select(
                InventoryItem.component_id,
                Component.component_number,
                Component.description,
                Component.category,
                InventoryItem.location_id,
                InventoryLocation.name,
                InventoryItem.quantity,
                InventoryItem.min_stock_level,
                InventoryItem.last_updated,
            )
            .join(Component, Component.id == InventoryItem.component_id)
            .join(InventoryLocation, InventoryLocation.id == InventoryItem.location_id)
        )

    @staticmethod
    def _to_row(row) -> InventoryRow:
        return InventoryRow(
            component_id=row[0],
            component_number=row[1],
            component_description=row[2],
            category=row[3],
            location_id=row[4],
            location_name=row[5],
            quantity=row[6],
            min_stock_level=row[7],
            last_updated=row[8],
        )

    def low_stock_items(self) -> list[InventoryRow]:
        """Rows with quantity <= min_stock_level, most depleted first."""
        stmt = (
            self._row_query()
            .where(InventoryItem.quantity <= InventoryItem.min_stock_level)
            .order_by(
                (InventoryItem.min_stock_level - InventoryItem.quantity).desc(),
                Component.component_number,
                InventoryItem.location_id,
            )
        )
        return [self._to_row(row) for row in self.session.execute(stmt).all()]

    def inventory_items(self, location_id: int | None = None) -> list[InventoryRow]:
        """All rows (or one location's), ordered by component number then location."""
        stmt = self._row_query()
        if location_id is not None:
            stmt = stmt.where(InventoryItem.location_id == location_id)
        stmt = stmt.order_by(Component.component_number, InventoryItem.location_id)
        return [self._to_row(row) for row in self.session.execute(stmt).all()]

    def inventory_for_component(self, component_id: int) -> list[InventoryRow]:
        stmt = (
            self._row_query()
            .where(InventoryItem.component_id == component_id)
            .order_by(InventoryItem.location_id)
        )
        return [self._to_row(row) for row in self.session.execute(stmt).all()]

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    def _activity_query(self):
        from_location = aliased(InventoryLocation)
        to_location = aliased(InventoryLocation)
        return (
            select(
                InventoryTransaction,
                Component.component_number,
                Component.description,
                from_location.name,
                to_location.name,
            )
            .join(Component, Component.id == InventoryTransaction.component_id)
            .outerjoin(from_location, from_location.id == InventoryTransaction.from_location_id)
            .outerjoin(to_location, to_location.id == InventoryTransaction.to_location_id)
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        )

    @staticmethod
    def _to_activity(row) -> TransactionActivity:
        txn, number, description, from_name, to_name = row
        return TransactionActivity(
            id=txn.id,
            transaction_type=TransactionType(txn.transaction_type),
            component_id=txn.component_id,
            component_number=number,
            component_description=description,
            from_location_id=txn.from_location_id,
            from_location_name=from_name,
            to_location_id=txn.to_location_id,
            to_location_name=to_name,
            quantity=txn.quantity,
            notes=txn.notes,
            created_at=txn.created_at,
            created_by=txn.created_by,
        )

    def recent_transactions(self, limit: int = 10) -> list[TransactionActivity]:
        """Most recent transactions first, with component and location names."""
        stmt = self._activity_query().limit(limit)
        return [self._to_activity(row) for row in self.session.execute(stmt).all()]

    def consumed_transactions(self, limit: int | None = None) -> list[TransactionActivity]:
        """Consumption records only, most recent first."""
        stmt = self._activity_query().where(
            InventoryTransaction.transaction_type == TransactionType.CONSUME.value
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_activity(row) for row in self.session.execute(stmt).all()]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_components(self, query: str) -> list[ComponentStock]:
        """Components whose number or description contains ``query`` (case-insensitive)."""
        pattern = f"%{query}%"
        components = self.session.execute(
            select(Component)
            .where(
                Component.component_number.ilike(pattern)
                | Component.description.ilike(pattern)
            )
            .order_by(Component.component_number)
        ).scalars().all()
        if not components:
            return []

        quantities: dict[int, list[tuple[str, int]]] = {c.id: [] for c in components}
        rows = self.session.execute(
            select(InventoryItem.component_id, InventoryLocation.name, InventoryItem.quantity)
            .join(InventoryLocation, InventoryLocation.id == InventoryItem.location_id)
            .where(InventoryItem.component_id.in_(list(quantities)))
            .order_by(InventoryItem.component_id, InventoryItem.location_id)
        ).all()
        for component_id, location_name, quantity in rows:
            quantities[component_id].append((location_name, quantity))

        return [
            ComponentStock(
                component=ComponentInfo.from_model(c),
                quantities=tuple(quantities[c.id]),
            )
            for c in components
        ]


class InventoryAggregator:
    """
    Read models computed fresh on every call.

    Contract:
        Holds the LedgerDatabase and the names of the two well-known
        locations; each call opens its own read scope.

    Guarantees:
        - Never observes a transfer's decrement without its increment.
        - Identical ledger state always yields identically ordered results.
    """

    def __init__(
        self,
        database: LedgerDatabase,
        main_location_name: str = "Main Inventory",
        line_location_name: str = "Line Inventory",
        default_activity_limit: int = 10,
    ):
        self._database = database
        self.main_location_name = main_location_name
        self.line_location_name = line_location_name
        self.default_activity_limit = default_activity_limit

    def dashboard_stats(self) -> DashboardStats:
        with self._database.read_scope() as session:
            return InventorySelector(session).dashboard_stats(
                self.main_location_name, self.line_location_name
            )

    def low_stock_items(self) -> list[InventoryRow]:
        with self._database.read_scope() as session:
            return InventorySelector(session).low_stock_items()

    def recent_transactions(self, limit: int | None = None) -> list[TransactionActivity]:
        with self._database.read_scope() as session:
            return InventorySelector(session).recent_transactions(
                limit if limit is not None else self.default_activity_limit
            )

    def consumed_transactions(self, limit: int | None = None) -> list[TransactionActivity]:
        with self._database.read_scope() as session:
            return InventorySelector(session).consumed_transactions(limit)

    def inventory_items(self, location_id: int | None = None) -> list[InventoryRow]:
        with self._database.read_scope() as session:
            return InventorySelector(session).inventory_items(location_id)

    def inventory_for_component(self, component_id: int) -> list[InventoryRow]:
        with self._database.read_scope() as session:
            return InventorySelector(session).inventory_for_component(component_id)

    def search_components(self, query: str) -> list[ComponentStock]:
        with self._database.read_scope() as session:
            return InventorySelector(session).search_components(query)
