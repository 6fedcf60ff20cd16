"""
StockCountService -- apply a physical count to one location.

Responsibility:
    The ledger-facing half of bulk ingestion.  Takes already parsed count
    lines (component number, counted quantity) and brings the location in
    line with them by issuing ``add_stock`` / ``remove_stock`` for the
    difference between counted and current quantity.  File parsing belongs
    to the ingestion collaborator, not here.

Architecture position:
    Ledger > Services.  Built on TransferEngine; never writes quantities
    itself, so every change is backed by a transaction record.

Invariants enforced:
    - Counts never overwrite a quantity directly.  Replaying the log after a
      count still reproduces the snapshot.
    - Each line is its own unit of work: one bad line does not undo the
      lines before it.

Failure modes:
    - UnknownLocationError for the target location (nothing is applied).
    - Per-line ValidationError / InsufficientQuantityError are collected in
      the result.
    - InfrastructureError propagates immediately; lines already applied stay
      applied.

Non-goals:
    - Reading the current quantity and applying the difference are two
      steps.  A concurrent mutation between them is counted against the
      sheet rather than detected.
"""

from collections.abc import Iterable

from inventory_ledger.db.engine import LedgerDatabase
from inventory_ledger.domain.clock import Clock, SystemClock
from inventory_ledger.domain.dtos import (
    ComponentInfo,
    StockCountError,
    StockCountLine,
    StockCountResult,
    TransactionRecord,
)
from inventory_ledger.exceptions import (
    InsufficientQuantityError,
    UnknownComponentError,
    ValidationError,
)
from inventory_ledger.logging_config import get_logger
from inventory_ledger.services.ledger_store import LedgerStore
from inventory_ledger.services.reference_data_service import ReferenceDataService
from inventory_ledger.services.transfer_engine import TransferEngine

logger = get_logger("services.stock_count")

DEFAULT_NEW_COMPONENT_CATEGORY = "General"
DEFAULT_NEW_COMPONENT_MAX_STOCK = 100


class StockCountService:
    """
    Reconciles counted quantities against the ledger.

    Usage:
        service = StockCountService(database, engine)
        result = service.apply_count(main_id, [StockCountLine("C-100", 42)])
    """

    def __init__(
        self,
        database: LedgerDatabase,
        engine: TransferEngine,
        clock: Clock | None = None,
        default_min_stock_level: int = 5,
    ):
        self._database = database
        self._engine = engine
        self._clock = clock or SystemClock()
        self._default_min_stock_level = default_min_stock_level

    def apply_count(
        self,
        location_id: int,
        lines: Iterable[StockCountLine],
        skip_zero: bool = False,
        create_missing: bool = False,
        actor_id: int | None = None,
    ) -> StockCountResult:
        """
        Apply every count line to ``location_id``.

        Args:
            location_id: Location that was counted.
            lines: Parsed count lines.
            skip_zero: Ignore lines whose counted quantity is zero.
            create_missing: Create components that do not exist yet
                (description defaults to the component number).
            actor_id: Acting user recorded on every transaction.

        Returns:
            StockCountResult with per-line errors collected.
        """
        lines = list(lines)
        with self._database.read_scope() as session:
            ReferenceDataService(session, self._clock).get_location(location_id)

        counts = {"created": 0, "added": 0, "removed": 0, "unchanged": 0, "skipped": 0}
        transactions: list[TransactionRecord] = []
        errors: list[StockCountError] = []

        logger.info(
            "stock_count_started",
            extra={"location_id": location_id, "lines_total": len(lines)},
        )

        for line_number, line in enumerate(lines, start=1):
            number = (line.component_number or "").strip()
            try:
                counted = line.counted_quantity
                if isinstance(counted, bool) or not isinstance(counted, int) or counted < 0:
                    raise ValidationError(
                        f"Counted quantity must be a non-negative integer, got {counted!r}"
                    )
                if skip_zero and counted == 0:
                    counts["skipped"] += 1
                    continue
                if not number:
                    raise ValidationError("Invalid or empty component number")

                component, created = self._resolve_component(number, line, create_missing)
                if created:
                    counts["created"] += 1

                record = self._reconcile(component, location_id, counted, line, actor_id)
                if record is None:
                    counts["unchanged"] += 1
                else:
                    transactions.append(record)
                    counts["added" if record.to_location_id is not None else "removed"] += 1
            except (ValidationError, InsufficientQuantityError) as exc:
                errors.append(
                    StockCountError(
                        line_number=line_number,
                        component_number=number,
                        code=exc.code,
                        message=str(exc),
                    )
                )
                logger.info(
                    "stock_count_line_rejected",
                    extra={"line_number": line_number, "error_code": exc.code},
                )

        result = StockCountResult(
            location_id=location_id,
            lines_total=len(lines),
            transactions=tuple(transactions),
            errors=tuple(errors),
            **counts,
        )
        logger.info(
            "stock_count_completed",
            extra={
                "location_id": location_id,
                "components_created": result.created,
                "added": result.added,
                "removed": result.removed,
                "unchanged": result.unchanged,
                "skipped": result.skipped,
                "errors": len(result.errors),
            },
        )
        return result

    def _resolve_component(
        self,
        number: str,
        line: StockCountLine,
        create_missing: bool,
    ) -> tuple[ComponentInfo, bool]:
        with self._database.read_scope() as session:
            service = ReferenceDataService(session, self._clock)
            try:
                return service.get_component_by_number(number), False
            except UnknownComponentError:
                if not create_missing:
                    raise

        with self._database.unit_of_work("create_component") as session:
            component = ReferenceDataService(session, self._clock).create_component(
                component_number=number,
                description=line.description or number,
                category=line.category or DEFAULT_NEW_COMPONENT_CATEGORY,
                supplier=line.supplier,
                unit_price=line.unit_price,
                min_stock_level=self._default_min_stock_level,
                max_stock_level=DEFAULT_NEW_COMPONENT_MAX_STOCK,
            )
        return component, True

    def _reconcile(
        self,
        component: ComponentInfo,
        location_id: int,
        counted: int,
        line: StockCountLine,
        actor_id: int | None,
    ) -> TransactionRecord | None:
        with self._database.read_scope() as session:
            current = LedgerStore(session, self._clock).get_quantity(component.id, location_id)

        difference = counted - current
        if difference > 0:
            return self._engine.add_stock(
                component.id,
                location_id,
                difference,
                line.notes or f"Stock count - added {difference} units",
                actor_id,
            )
        if difference < 0:
            return self._engine.remove_stock(
                component.id,
                location_id,
                -difference,
                line.notes or f"Stock count - removed {-difference} units",
                actor_id,
            )
        return None
