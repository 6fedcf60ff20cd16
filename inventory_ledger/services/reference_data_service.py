"""
ReferenceDataService -- facilities, locations and components.

Responsibility:
    Creates and looks up the reference rows the ledger keys on, sets
    per-(component, location) low-stock thresholds and seeds the default
    facility layout (one facility with the well-known main and line
    locations).

Architecture position:
    Ledger > Services -- imperative shell.  Session-scoped; the caller owns
    the unit of work.

Invariants enforced:
    - Component numbers and location names are unique.
    - Threshold changes never touch quantity, so they need no transaction
      record.

Failure modes:
    - ValidationError for duplicates, InvalidThresholdError for negative
      thresholds, UnknownComponentError / UnknownLocationError for lookups.
"""

from decimal import Decimal

from sqlalchemy import select

from inventory_ledger.domain.dtos import ComponentInfo, FacilityInfo, LocationInfo
from inventory_ledger.exceptions import (
    InvalidThresholdError,
    UnknownComponentError,
    UnknownLocationError,
    ValidationError,
)
from inventory_ledger.logging_config import get_logger
from inventory_ledger.models.component import Component
from inventory_ledger.models.location import Facility, InventoryLocation, LocationType
from inventory_ledger.services.base import BaseService
from inventory_ledger.services.ledger_store import LedgerStore

logger = get_logger("services.reference_data")


def _check_threshold(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidThresholdError(value)
    return value


class ReferenceDataService(BaseService):
    """Administrative reference data used by the ledger."""

    # ------------------------------------------------------------------
    # Facilities and locations
    # ------------------------------------------------------------------

    def create_facility(
        self,
        name: str,
        code: str,
        description: str | None = None,
        address: str | None = None,
    ) -> FacilityInfo:
        existing = self.session.execute(
            select(Facility).where(Facility.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationError(f"Facility code already exists: {code}")
        facility = Facility(
            name=name,
            code=code,
            description=description,
            address=address,
            is_active=True,
            created_at=self.clock.now(),
        )
        self.session.add(facility)
        self.session.flush()
        logger.info("facility_created", extra={"facility_id": facility.id, "code": code})
        return FacilityInfo.from_model(facility)

    def create_location(
        self,
        name: str,
        facility_id: int | None = None,
        location_type: LocationType = LocationType.STORAGE,
        description: str | None = None,
    ) -> LocationInfo:
        if self._location_by_name(name) is not None:
            raise ValidationError(f"Location name already exists: {name}")
        location = InventoryLocation(
            name=name,
            facility_id=facility_id,
            location_type=LocationType(location_type).value,
            description=description,
            is_active=True,
        )
        self.session.add(location)
        self.session.flush()
        logger.info(
            "location_created",
            extra={"location_id": location.id, "location_name": name},
        )
        return LocationInfo.from_model(location)

    def get_location(self, location_id: int) -> LocationInfo:
        location = self.session.get(InventoryLocation, location_id)
        if location is None:
            raise UnknownLocationError(location_id)
        return LocationInfo.from_model(location)

    def get_location_by_name(self, name: str) -> LocationInfo:
        location = self._location_by_name(name)
        if location is None:
            raise UnknownLocationError(name)
        return LocationInfo.from_model(location)

    def list_locations(self, active_only: bool = True) -> list[LocationInfo]:
        stmt = select(InventoryLocation).order_by(InventoryLocation.id)
        if active_only:
            stmt = stmt.where(InventoryLocation.is_active.is_(True))
        return [LocationInfo.from_model(m) for m in self.session.execute(stmt).scalars()]

    def _location_by_name(self, name: str) -> InventoryLocation | None:
        return self.session.execute(
            select(InventoryLocation).where(InventoryLocation.name == name)
        ).scalar_one_or_none()

    def ensure_default_layout(
        self,
        facility_name: str,
        facility_code: str,
        main_location_name: str,
        line_location_name: str,
    ) -> tuple[LocationInfo, LocationInfo]:
        """
        Create the default facility and the main/line locations if absent.

        Idempotent: existing rows are returned unchanged.

        Returns:
            (main location, line location)
        """
        facility = self.session.execute(
            select(Facility).where(Facility.code == facility_code)
        ).scalar_one_or_none()
        facility_id = (
            facility.id
            if facility is not None
            else self.create_facility(facility_name, facility_code).id
        )

        layout = []
        for name, location_type, description in (
            (main_location_name, LocationType.STORAGE, "Central warehouse stock"),
            (line_location_name, LocationType.PRODUCTION, "Production line stock"),
        ):
            existing = self._location_by_name(name)
            if existing is not None:
                layout.append(LocationInfo.from_model(existing))
            else:
                layout.append(
                    self.create_location(name, facility_id, location_type, description)
                )
        return layout[0], layout[1]

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def create_component(
        self,
        component_number: str,
        description: str,
        category: str | None = None,
        supplier: str | None = None,
        unit_price: Decimal | None = None,
        min_stock_level: int = 5,
        max_stock_level: int | None = None,
        is_active: bool = True,
    ) -> ComponentInfo:
        _check_threshold(min_stock_level)
        if not component_number:
            raise ValidationError("Component number is required")
        if self._component_by_number(component_number) is not None:
            raise ValidationError(f"Component number already exists: {component_number}")
        component = Component(
            component_number=component_number,
            description=description,
            category=category,
            supplier=supplier,
            unit_price=unit_price,
            min_stock_level=min_stock_level,
            max_stock_level=max_stock_level,
            is_active=is_active,
            created_at=self.clock.now(),
        )
        self.session.add(component)
        self.session.flush()
        logger.info(
            "component_created",
            extra={"component_id": component.id, "component_number": component_number},
        )
        return ComponentInfo.from_model(component)

    def get_component(self, component_id: int) -> ComponentInfo:
        component = self.session.get(Component, component_id)
        if component is None:
            raise UnknownComponentError(component_id)
        return ComponentInfo.from_model(component)

    def get_component_by_number(self, component_number: str) -> ComponentInfo:
        component = self._component_by_number(component_number)
        if component is None:
            raise UnknownComponentError(component_number)
        return ComponentInfo.from_model(component)

    def list_components(self, active_only: bool = False) -> list[ComponentInfo]:
        stmt = select(Component).order_by(Component.component_number)
        if active_only:
            stmt = stmt.where(Component.is_active.is_(True))
        return [ComponentInfo.from_model(m) for m in self.session.execute(stmt).scalars()]

    def _component_by_number(self, component_number: str) -> Component | None:
        return self.session.execute(
            select(Component).where(Component.component_number == component_number)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def set_min_stock_level(
        self,
        component_id: int,
        location_id: int,
        min_stock_level: int,
    ) -> None:
        """Set the low-stock threshold of one (component, location) row."""
        _check_threshold(min_stock_level)
        self.get_component(component_id)
        self.get_location(location_id)
        LedgerStore(self.session, self.clock).set_min_stock_level(
            component_id, location_id, min_stock_level
        )
