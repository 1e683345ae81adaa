"""
Tests for Stock Records
Item lifecycle, metadata updates and catalogue-based creation
"""
import pytest
from decimal import Decimal

from stockledger.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError


class TestCreateItem:
    """Test suite for item creation"""

    def test_create_item_success(self, ledger, sample_drug_data):
        """Test successful stock item creation"""
        item = ledger.create_item(sample_drug_data)

        assert item.id is not None
        assert item.name == "Penicillin"
        assert item.category == "antibiotic"
        assert item.category_group == "drug"
        assert item.unit == "ml"
        assert item.quantity_on_hand == Decimal("500")
        assert item.initial_quantity == Decimal("500")
        assert item.cost_per_unit == Decimal("0.15")
        assert item.low_stock_alert_sent is False
        assert item.version == 1

    def test_create_item_writes_no_transaction(self, ledger, sample_drug_data):
        """Opening balance is held as initial_quantity, not a ledger entry"""
        item = ledger.create_item(sample_drug_data)

        assert ledger.get_transactions(item_id=item.id) == []
        assert ledger.reconcile(item.id).balanced

    def test_create_item_below_reorder_point_opens_alert(self, ledger, sample_drug_data):
        sample_drug_data["quantity_on_hand"] = Decimal("20")
        item = ledger.create_item(sample_drug_data)

        assert item.low_stock_alert_sent is True
        alerts = [a for a in ledger.get_active_alerts(item.id) if a.alert_kind == "low_stock"]
        assert len(alerts) == 1

    @pytest.mark.parametrize("field,value", [
        ("category", "rocket-fuel"),
        ("unit", "gallons"),
        ("quantity_on_hand", Decimal("-1")),
        ("cost_per_unit", Decimal("-0.01")),
        ("name", "   "),
        ("withdrawal_period_days", -3),
    ])
    def test_create_item_invalid_fields(self, ledger, sample_drug_data, field, value):
        """Test invalid values are rejected before anything is stored"""
        sample_drug_data[field] = value

        with pytest.raises(InvalidArgumentError):
            ledger.create_item(sample_drug_data)
        assert ledger.list_items() == []

    def test_create_item_unknown_field(self, ledger, sample_drug_data):
        sample_drug_data["colour"] = "blue"

        with pytest.raises(InvalidArgumentError, match="colour"):
            ledger.create_item(sample_drug_data)

    def test_other_category_belongs_to_supplements(self, make_item):
        item = make_item(category="other", unit="lbs")

        assert item.category_group == "supplement"


class TestQueryItems:
    """Test suite for reading items"""

    def test_get_missing_item(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.get_item("missing")

    def test_list_items_by_category_and_group(self, ledger, sample_drug_data, sample_feed_data):
        drug = ledger.create_item(sample_drug_data)
        feed = ledger.create_item(sample_feed_data)

        assert [i.id for i in ledger.list_items(category="antibiotic")] == [drug.id]
        assert [i.id for i in ledger.list_items(group="feed")] == [feed.id]
        assert len(ledger.list_items()) == 2

    def test_list_low_stock_only(self, ledger, make_item):
        low = make_item(quantity_on_hand=Decimal("5"), reorder_point=Decimal("10"))
        at_point = make_item(quantity_on_hand=Decimal("10"), reorder_point=Decimal("10"))
        make_item(quantity_on_hand=Decimal("50"), reorder_point=Decimal("10"))

        items = ledger.list_items(low_stock_only=True)

        assert sorted(i.id for i in items) == sorted([low.id, at_point.id])

    def test_list_items_invalid_group(self, ledger):
        with pytest.raises(InvalidArgumentError):
            ledger.list_items(group="hardware")


class TestUpdateItem:
    """Test suite for metadata updates"""

    def test_update_metadata(self, ledger, sample_drug_data):
        item = ledger.create_item(sample_drug_data)

        updated = ledger.update_item(item.id, {"storage_location": "Barn fridge", "lot_number": "PEN-2"})

        assert updated.storage_location == "Barn fridge"
        assert updated.lot_number == "PEN-2"
        assert updated.version == item.version + 1

    def test_update_ignores_balance_fields(self, ledger, sample_drug_data):
        """Balance fields only change through the mutator"""
        item = ledger.create_item(sample_drug_data)

        updated = ledger.update_item(item.id, {
            "quantity_on_hand": Decimal("9999"),
            "cost_per_unit": Decimal("99"),
            "unit": "cc",
            "notes": "checked",
        })

        assert updated.quantity_on_hand == Decimal("500")
        assert updated.cost_per_unit == Decimal("0.15")
        assert updated.unit == "ml"
        assert updated.notes == "checked"
        assert ledger.get_transactions(item_id=item.id) == []

    def test_raising_reorder_point_opens_alert(self, ledger, sample_drug_data):
        item = ledger.create_item(sample_drug_data)

        updated = ledger.update_item(item.id, {"reorder_point": Decimal("600")})

        assert updated.low_stock_alert_sent is True
        assert any(a.alert_kind == "low_stock" for a in ledger.get_active_alerts(item.id))

    def test_update_unknown_field(self, ledger, sample_drug_data):
        item = ledger.create_item(sample_drug_data)

        with pytest.raises(InvalidArgumentError):
            ledger.update_item(item.id, {"flavour": "mint"})

    def test_update_missing_item(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.update_item("missing", {"notes": "x"})


class TestDeleteItem:
    """Test suite for deletion"""

    def test_delete_item_with_stock_fails(self, ledger, sample_drug_data):
        item = ledger.create_item(sample_drug_data)

        with pytest.raises(ConflictError):
            ledger.delete_item(item.id)
        assert ledger.get_item(item.id) is not None

    def test_delete_empty_item_keeps_history(self, ledger, sample_drug_data):
        item = ledger.create_item(sample_drug_data)
        txn = ledger.adjust(item.id, 0, "Count", "tester")

        ledger.delete_item(item.id)

        with pytest.raises(NotFoundError):
            ledger.get_item(item.id)
        assert ledger.get_transaction(txn.id).item_id == item.id

    def test_delete_missing_item(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.delete_item("missing")


class TestCatalogCreation:
    """Test suite for catalogue-based creation"""

    def test_create_from_catalog_uses_defaults(self, ledger):
        item = ledger.create_from_catalog("Draxxin", quantity=Decimal("250"))

        assert item.category == "antibiotic"
        assert item.unit == "ml"
        assert item.cost_per_unit == Decimal("2.00")
        assert item.reorder_point == Decimal("50")
        assert item.withdrawal_period_days == 18
        assert item.quantity_on_hand == Decimal("250")

    def test_create_from_catalog_overrides(self, ledger):
        item = ledger.create_from_catalog("shell corn", quantity=100, cost_per_unit=Decimal("4.10"),
                                          storage_location="Bin 2")

        assert item.name == "Shell Corn"
        assert item.unit == "bushels"
        assert item.cost_per_unit == Decimal("4.10")
        assert item.storage_location == "Bin 2"

    def test_create_from_unknown_catalog_entry(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.create_from_catalog("Unobtainium")
