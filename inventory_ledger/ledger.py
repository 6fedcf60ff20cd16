"""
InventoryLedger -- composition root.

Responsibility:
    Wires settings, the LedgerDatabase, the key-lock registry, the
    TransferEngine, the aggregator, the stock-count service and the event
    broker together behind one object with an explicit open/close
    lifecycle.  API handlers, the CLI and the tests use this instead of
    assembling the pieces themselves.

Architecture position:
    Outermost layer of the package.  Nothing inside the package imports it.

Usage:
    settings = load_settings()
    with InventoryLedger(settings) as ledger:
        ledger.initialize()
        main, line = ledger.main_location(), ledger.line_location()
        component = ledger.create_component("C-100", "M3 bolt")
        ledger.add_stock(component.id, main.id, 50, "initial load")
        ledger.transfer(component.id, main.id, line.id, 20)
        print(ledger.dashboard_stats())
"""

from decimal import Decimal

from inventory_ledger.config import LedgerSettings
from inventory_ledger.db.engine import LedgerDatabase
from inventory_ledger.db.immutability import register_immutability_listeners
from inventory_ledger.domain.clock import Clock, SystemClock
from inventory_ledger.domain.dtos import (
    ComponentInfo,
    ComponentStock,
    DashboardStats,
    FacilityInfo,
    InventoryRow,
    LocationInfo,
    ReplayVerification,
    StockCountLine,
    StockCountResult,
    TransactionActivity,
    TransactionRecord,
)
from inventory_ledger.domain.operations import Operation
from inventory_ledger.logging_config import get_logger
from inventory_ledger.models.location import LocationType
from inventory_ledger.selectors.inventory_selector import InventoryAggregator
from inventory_ledger.selectors.replay_selector import verify_ledger
from inventory_ledger.services.key_locks import KeyLockRegistry
from inventory_ledger.services.ledger_store import LedgerStore
from inventory_ledger.services.notifications import ChangeNotifier, InventoryEventBroker
from inventory_ledger.services.reference_data_service import ReferenceDataService
from inventory_ledger.services.stock_count_service import StockCountService
from inventory_ledger.services.transfer_engine import TransferEngine

logger = get_logger("ledger")


class InventoryLedger:
    """
    The inventory ledger as one injectable object.

    Contract:
        Call ``open()`` (or use as a context manager) before any operation
        and ``close()`` at shutdown.  One instance per process is expected;
        it is safe to share between threads.
    """

    def __init__(
        self,
        settings: LedgerSettings,
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
        database: LedgerDatabase | None = None,
    ):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.database = database or LedgerDatabase.from_settings(settings)
        self.events = InventoryEventBroker(
            queue_size=settings.event_queue_size,
            history_size=settings.event_history_size,
        )
        self.locks = KeyLockRegistry()
        self.engine = TransferEngine(
            self.database,
            clock=self.clock,
            locks=self.locks,
            notifier=notifier or self.events,
            lock_timeout_seconds=settings.lock_timeout_seconds,
        )
        self.aggregator = InventoryAggregator(
            self.database,
            main_location_name=settings.main_location_name,
            line_location_name=settings.line_location_name,
            default_activity_limit=settings.recent_activity_limit,
        )
        self.stock_counts = StockCountService(
            self.database,
            self.engine,
            clock=self.clock,
            default_min_stock_level=settings.default_min_stock_level,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "InventoryLedger":
        self.database.open()
        register_immutability_listeners()
        return self

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> "InventoryLedger":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def initialize(self) -> tuple[LocationInfo, LocationInfo]:
        """Create tables and the default facility layout.  Idempotent."""
        self.database.create_tables()
        return self.ensure_default_layout()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def transfer(
        self,
        component_id: int,
        from_location_id: int,
        to_location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        return self.engine.transfer(
            component_id, from_location_id, to_location_id, quantity, notes, actor_id
        )

    def add_stock(
        self,
        component_id: int,
        location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        return self.engine.add_stock(component_id, location_id, quantity, notes, actor_id)

    def remove_stock(
        self,
        component_id: int,
        location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        return self.engine.remove_stock(component_id, location_id, quantity, notes, actor_id)

    def consume(
        self,
        component_id: int,
        location_id: int,
        quantity: int,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> TransactionRecord:
        return self.engine.consume(component_id, location_id, quantity, notes, actor_id)

    def apply(self, operation: Operation) -> TransactionRecord:
        return self.engine.apply(operation)

    def apply_stock_count(
        self,
        location_id: int,
        lines: list[StockCountLine],
        skip_zero: bool = False,
        create_missing: bool = False,
        actor_id: int | None = None,
    ) -> StockCountResult:
        return self.stock_counts.apply_count(
            location_id, lines, skip_zero=skip_zero, create_missing=create_missing, actor_id=actor_id
        )

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def create_facility(self, name: str, code: str, description: str | None = None,
                        address: str | None = None) -> FacilityInfo:
        with self.database.unit_of_work("create_facility") as session:
            return ReferenceDataService(session, self.clock).create_facility(
                name, code, description, address
            )

    def create_location(
        self,
        name: str,
        facility_id: int | None = None,
        location_type: LocationType = LocationType.STORAGE,
        description: str | None = None,
    ) -> LocationInfo:
        with self.database.unit_of_work("create_location") as session:
            return ReferenceDataService(session, self.clock).create_location(
                name, facility_id, location_type, description
            )

    def create_component(
        self,
        component_number: str,
        description: str,
        category: str | None = None,
        supplier: str | None = None,
        unit_price: Decimal | None = None,
        min_stock_level: int | None = None,
        max_stock_level: int | None = None,
        is_active: bool = True,
    ) -> ComponentInfo:
        if min_stock_level is None:
            min_stock_level = self.settings.default_min_stock_level
        with self.database.unit_of_work("create_component") as session:
            return ReferenceDataService(session, self.clock).create_component(
                component_number,
                description,
                category=category,
                supplier=supplier,
                unit_price=unit_price,
                min_stock_level=min_stock_level,
                max_stock_level=max_stock_level,
                is_active=is_active,
            )

    def get_component_by_number(self, component_number: str) -> ComponentInfo:
        with self.database.read_scope() as session:
            return ReferenceDataService(session, self.clock).get_component_by_number(
                component_number
            )

    def get_location_by_name(self, name: str) -> LocationInfo:
        with self.database.read_scope() as session:
            return ReferenceDataService(session, self.clock).get_location_by_name(name)

    def list_locations(self) -> list[LocationInfo]:
        with self.database.read_scope() as session:
            return ReferenceDataService(session, self.clock).list_locations()

    def main_location(self) -> LocationInfo:
        return self.get_location_by_name(self.settings.main_location_name)

    def line_location(self) -> LocationInfo:
        return self.get_location_by_name(self.settings.line_location_name)

    def ensure_default_layout(self) -> tuple[LocationInfo, LocationInfo]:
        with self.database.unit_of_work("ensure_default_layout") as session:
            main, line = ReferenceDataService(session, self.clock).ensure_default_layout(
                self.settings.facility_name,
                self.settings.facility_code,
                self.settings.main_location_name,
                self.settings.line_location_name,
            )
        logger.info(
            "default_layout_ready",
            extra={"main_location_id": main.id, "line_location_id": line.id},
        )
        return main, line

    def set_min_stock_level(self, component_id: int, location_id: int, min_stock_level: int) -> None:
        with self.database.unit_of_work("set_min_stock_level") as session:
            ReferenceDataService(session, self.clock).set_min_stock_level(
                component_id, location_id, min_stock_level
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_quantity(self, component_id: int, location_id: int) -> int:
        with self.database.read_scope() as session:
            return LedgerStore(session, self.clock).get_quantity(component_id, location_id)

    def dashboard_stats(self) -> DashboardStats:
        return self.aggregator.dashboard_stats()

    def low_stock_items(self) -> list[InventoryRow]:
        return self.aggregator.low_stock_items()

    def recent_transactions(self, limit: int | None = None) -> list[TransactionActivity]:
        return self.aggregator.recent_transactions(limit)

    def consumed_transactions(self, limit: int | None = None) -> list[TransactionActivity]:
        return self.aggregator.consumed_transactions(limit)

    def inventory_items(self, location_id: int | None = None) -> list[InventoryRow]:
        return self.aggregator.inventory_items(location_id)

    def inventory_for_component(self, component_id: int) -> list[InventoryRow]:
        return self.aggregator.inventory_for_component(component_id)

    def search_components(self, query: str) -> list[ComponentStock]:
        return self.aggregator.search_components(query)

    def verify(self) -> ReplayVerification:
        return verify_ledger(self.database)
