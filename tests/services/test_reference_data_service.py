"""
Tests for reference data: facilities, locations, components, thresholds.
"""

from decimal import Decimal

import pytest

from inventory_ledger.exceptions import (
    InvalidThresholdError,
    UnknownComponentError,
    UnknownLocationError,
    ValidationError,
)
from inventory_ledger.models.location import LocationType
from inventory_ledger.services.reference_data_service import ReferenceDataService


class TestDefaultLayout:
    def test_initialize_creates_main_and_line(self, ledger, settings):
        main = ledger.main_location()
        line = ledger.line_location()
        assert main.name == settings.main_location_name
        assert main.location_type == LocationType.STORAGE.value
        assert line.name == settings.line_location_name
        assert line.location_type == LocationType.PRODUCTION.value
        assert main.facility_id == line.facility_id is not None

    def test_idempotent(self, ledger):
        first = ledger.ensure_default_layout()
        second = ledger.initialize()
        assert first == second
        assert len(ledger.list_locations()) == 2


class TestLocations:
    def test_create_and_lookup(self, ledger):
        location = ledger.create_location("Quarantine", description="Held for inspection")
        assert ledger.get_location_by_name("Quarantine") == location
        assert location.location_type == "storage"

    def test_duplicate_name_rejected(self, ledger, main_location):
        with pytest.raises(ValidationError):
            ledger.create_location(main_location.name)

    def test_unknown_name(self, ledger):
        with pytest.raises(UnknownLocationError) as exc_info:
            ledger.get_location_by_name("Nowhere")
        assert exc_info.value.location_id == "Nowhere"

    def test_duplicate_facility_code_rejected(self, ledger, settings):
        with pytest.raises(ValidationError):
            ledger.create_facility("Second site", settings.facility_code)


class TestComponents:
    def test_create_with_settings_default_threshold(self, ledger, settings):
        part = ledger.create_component(
            "PN-1", "Bracket", category="Sheet metal", supplier="Acme",
            unit_price=Decimal("1.25"),
        )
        assert part.min_stock_level == settings.default_min_stock_level
        assert part.unit_price == Decimal("1.25")
        assert ledger.get_component_by_number("PN-1") == part

    def test_duplicate_number_rejected(self, ledger, component):
        with pytest.raises(ValidationError):
            ledger.create_component(component.component_number, "Duplicate")

    def test_empty_number_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.create_component("", "Nameless")

    def test_negative_threshold_rejected(self, ledger):
        with pytest.raises(InvalidThresholdError):
            ledger.create_component("PN-2", "Bracket", min_stock_level=-1)

    def test_unknown_number(self, ledger):
        with pytest.raises(UnknownComponentError):
            ledger.get_component_by_number("missing")

    def test_list_components_sorted(self, ledger, database, clock, create_component):
        create_component("B-2")
        create_component("A-1", is_active=False)
        with database.read_scope() as session:
            service = ReferenceDataService(session, clock)
            assert [c.component_number for c in service.list_components()] == ["A-1", "B-2"]
            assert [c.component_number for c in service.list_components(active_only=True)] == [
                "B-2"
            ]


class TestThresholds:
    def test_set_on_row_without_stock(self, ledger, component, line_location):
        ledger.set_min_stock_level(component.id, line_location.id, 3)
        (row,) = ledger.inventory_for_component(component.id)
        assert row.quantity == 0
        assert row.min_stock_level == 3
        # An empty row at or below its threshold is low stock
        assert row.key in [r.key for r in ledger.low_stock_items()]

    def test_threshold_change_writes_no_transaction(self, ledger, stocked_component, main_location):
        ledger.set_min_stock_level(stocked_component.id, main_location.id, 1)
        assert len(ledger.recent_transactions()) == 1

    def test_unknown_refs(self, ledger, component, main_location):
        with pytest.raises(UnknownComponentError):
            ledger.set_min_stock_level(999_999, main_location.id, 1)
        with pytest.raises(UnknownLocationError):
            ledger.set_min_stock_level(component.id, 999_999, 1)
