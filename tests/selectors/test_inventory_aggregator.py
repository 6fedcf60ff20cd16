"""
Tests for the read models.

Verifies:
- Dashboard totals per well-known location and active component count
- Low-stock ordering (most depleted first, then component number, location)
- Recent activity: newest first, joined with display names, bounded by limit
- Consumption report and component search
- Results are computed fresh from committed state
"""

from inventory_ledger.domain.operations import TransactionType
from inventory_ledger.selectors.inventory_selector import InventoryAggregator


class TestDashboardStats:
    def test_empty_ledger(self, aggregator):
        stats = aggregator.dashboard_stats()
        assert stats.to_dict() == {
            "totalComponents": 0,
            "mainInventoryTotal": 0,
            "lineInventoryTotal": 0,
            "lowStockAlerts": 0,
        }

    def test_totals(self, ledger, aggregator, create_component, main_location, line_location):
        first = create_component(min_stock_level=0)
        second = create_component(min_stock_level=0)
        create_component(is_active=False)
        ledger.add_stock(first.id, main_location.id, 40)
        ledger.add_stock(second.id, main_location.id, 10)
        ledger.transfer(first.id, main_location.id, line_location.id, 15)

        stats = aggregator.dashboard_stats()
        assert stats.total_components == 2
        assert stats.main_inventory_total == 35
        assert stats.line_inventory_total == 15
        assert stats.low_stock_alerts == 0

    def test_other_locations_not_in_totals(self, ledger, aggregator, component):
        quarantine = ledger.create_location("Quarantine")
        ledger.add_stock(component.id, quarantine.id, 100)
        stats = aggregator.dashboard_stats()
        assert stats.main_inventory_total == 0
        assert stats.line_inventory_total == 0

    def test_reflects_committed_state_immediately(self, ledger, aggregator, stocked_component,
                                                  main_location):
        assert aggregator.dashboard_stats().main_inventory_total == 50
        ledger.remove_stock(stocked_component.id, main_location.id, 45)
        stats = aggregator.dashboard_stats()
        assert stats.main_inventory_total == 5
        assert stats.low_stock_alerts == 1


class TestLowStockItems:
    def test_ordering(self, ledger, aggregator, create_component, main_location, line_location):
        b = create_component("B-100", min_stock_level=10)
        a = create_component("A-100", min_stock_level=10)
        c = create_component("C-100", min_stock_level=10)
        ledger.add_stock(b.id, main_location.id, 5)    # deficit 5
        ledger.add_stock(a.id, main_location.id, 5)    # deficit 5
        ledger.add_stock(a.id, line_location.id, 5)    # deficit 5
        ledger.add_stock(c.id, main_location.id, 1)    # deficit 9
        ledger.add_stock(c.id, line_location.id, 50)   # not low

        rows = aggregator.low_stock_items()

        assert [(r.component_number, r.location_id) for r in rows] == [
            ("C-100", main_location.id),
            ("A-100", main_location.id),
            ("A-100", line_location.id),
            ("B-100", main_location.id),
        ]
        assert rows[0].deficit == 9
        assert rows[0].location_name == main_location.name

    def test_stable_across_calls(self, ledger, aggregator, create_component, main_location):
        for _ in range(4):
            ledger.add_stock(create_component(min_stock_level=3).id, main_location.id, 3)
        assert aggregator.low_stock_items() == aggregator.low_stock_items()


class TestRecentTransactions:
    def test_newest_first_with_names(self, ledger, aggregator, clock, stocked_component,
                                     main_location, line_location):
        clock.advance(5)
        transfer = ledger.transfer(stocked_component.id, main_location.id, line_location.id, 3)

        latest, first = aggregator.recent_transactions()
        assert latest.id == transfer.id
        assert latest.component_number == stocked_component.component_number
        assert latest.component_description == stocked_component.description
        assert latest.from_location_name == main_location.name
        assert latest.to_location_name == line_location.name
        assert first.transaction_type == TransactionType.ADD
        assert first.from_location_name is None
        assert first.to_location_name == main_location.name

    def test_limit(self, ledger, aggregator, component, main_location):
        for _ in range(15):
            ledger.add_stock(component.id, main_location.id, 1)
        assert len(aggregator.recent_transactions()) == aggregator.default_activity_limit
        assert len(aggregator.recent_transactions(3)) == 3

    def test_consumed_only(self, ledger, aggregator, stocked_component, main_location):
        ledger.remove_stock(stocked_component.id, main_location.id, 2)
        consumed = ledger.consume(stocked_component.id, main_location.id, 3)
        items = aggregator.consumed_transactions()
        assert [i.id for i in items] == [consumed.id]
        assert items[0].notes == consumed.notes


class TestInventoryViews:
    def test_inventory_items_by_location(self, ledger, aggregator, stocked_component,
                                         main_location, line_location):
        ledger.transfer(stocked_component.id, main_location.id, line_location.id, 10)
        assert [r.quantity for r in aggregator.inventory_items(line_location.id)] == [10]
        assert len(aggregator.inventory_items()) == 2

    def test_search_components(self, ledger, aggregator, create_component, main_location,
                               line_location):
        bolt = create_component("BOLT-M3", "Socket head bolt")
        create_component("NUT-M3", "Hex nut")
        ledger.add_stock(bolt.id, main_location.id, 8)
        ledger.transfer(bolt.id, main_location.id, line_location.id, 3)

        results = aggregator.search_components("bolt")
        assert [r.component.component_number for r in results] == ["BOLT-M3"]
        assert results[0].quantity_at(main_location.name) == 5
        assert results[0].quantity_at(line_location.name) == 3
        assert results[0].total_quantity == 8

        assert len(aggregator.search_components("m3")) == 2
        assert aggregator.search_components("washer") == []


def test_custom_location_names(ledger, database, stocked_component):
    renamed = InventoryAggregator(database, main_location_name="Nowhere")
    assert renamed.dashboard_stats().main_inventory_total == 0
