"""
Tests for the Threshold Monitor
Low-stock alerts, expiry alerts and inventory status
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from stockledger.core.exceptions import InvalidArgumentError, NotFoundError

NOW = datetime(2024, 6, 1, 12, 0, 0)


class TestExpiryAlerts:
    """Test suite for derived expiry alerts"""

    def test_expired_and_expiring_items(self, ledger, make_item):
        expired = make_item(name="Old Pen", expiration_date=date(2024, 5, 1))
        soon = make_item(name="Soon Pen", expiration_date=date(2024, 6, 20))
        make_item(name="Fresh Pen", expiration_date=date(2025, 1, 1))

        alerts = {a.id: a for a in ledger.monitor.active_alerts(NOW)}

        assert set(alerts) == {f"expired:{expired.id}", f"expiring_soon:{soon.id}"}
        assert alerts[f"expired:{expired.id}"].severity == "critical"
        assert alerts[f"expiring_soon:{soon.id}"].severity == "warning"
        assert "19 days" in alerts[f"expiring_soon:{soon.id}"].message
        assert [i.id for i in ledger.monitor.expired_items(NOW)] == [expired.id]
        assert [i.id for i in ledger.monitor.expiring_soon_items(NOW)] == [soon.id]

    def test_empty_items_raise_no_expiry_alert(self, ledger, make_item):
        make_item(quantity_on_hand=Decimal("0"), expiration_date=date(2024, 5, 1))

        assert ledger.monitor.active_alerts(NOW) == []

    def test_expiry_alert_clears_after_write_off(self, ledger, make_item):
        item = make_item(quantity_on_hand=Decimal("3"), expiration_date=date(2024, 5, 1))

        ledger.write_off(item.id, Decimal("3"), "Expired", "tester")

        assert ledger.monitor.active_alerts(NOW, item_id=item.id) == []

    def test_expiry_alerts_cannot_be_resolved_manually(self, ledger, make_item):
        item = make_item(expiration_date=date(2024, 5, 1))

        with pytest.raises(InvalidArgumentError):
            ledger.monitor.resolve_alert(f"expired:{item.id}", NOW)


class TestLowStockAlerts:
    """Test suite for persisted low-stock alerts"""

    def test_manual_resolve_does_not_reopen_until_restock(self, ledger, make_item):
        item = make_item(quantity_on_hand=Decimal("12"), reorder_point=Decimal("10"))
        ledger.deduct(item.id, Decimal("5"), "Use", "tester")
        alert = ledger.get_active_alerts(item.id)[0]

        resolved = ledger.resolve_alert(alert.id)
        ledger.deduct(item.id, Decimal("1"), "Use", "tester")

        assert resolved.resolved is True
        assert resolved.resolved_at is not None
        assert ledger.get_active_alerts(item.id) == []

        # Restock then fall again: a fresh alert
        ledger.add(item.id, Decimal("20"), "Purchase", "tester")
        ledger.deduct(item.id, Decimal("20"), "Use", "tester")
        assert len(ledger.get_active_alerts(item.id)) == 1

    def test_resolve_missing_alert(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.resolve_alert("missing")

    def test_sweep_repairs_alert_state(self, ledger, make_item):
        item = make_item(quantity_on_hand=Decimal("50"), reorder_point=Decimal("10"))
        # Reorder point raised without going through the record service
        ledger.store.update_item(item.id, item.version, {"reorder_point": Decimal("100")})

        changed = ledger.monitor.sweep(NOW)

        assert changed == 1
        assert ledger.get_item(item.id).low_stock_alert_sent is True
        assert len(ledger.monitor.active_alerts(NOW, item_id=item.id)) == 1
        assert ledger.monitor.sweep(NOW) == 0


class TestInventoryStatus:
    """Test suite for the status summary"""

    def test_status_summary(self, ledger, sample_drug_data, sample_feed_data, make_item):
        ledger.create_item(sample_drug_data)
        ledger.create_item(sample_feed_data)
        make_item(category="mineral-supplement", unit="lbs", quantity_on_hand=Decimal("5"),
                  cost_per_unit=Decimal("0.40"), reorder_point=Decimal("10"),
                  expiration_date=date(2024, 5, 1))

        status = ledger.monitor.status_summary(NOW)

        assert status.total_items == 3
        assert status.value_by_group == {
            "drug": Decimal("75.00"), "feed": Decimal("1250.00"), "supplement": Decimal("2.00"),
        }
        assert status.total_value == Decimal("1327.00")
        assert status.low_stock_count == 1
        assert status.expired_count == 1
        assert status.expiring_soon_count == 0
        assert len(status.alerts) == 2
