"""
Stock Records Service
Create, read, update metadata and delete stock items
"""
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from stockledger.core.database import utcnow
from stockledger.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from stockledger.core.logging import get_logger
from stockledger.models.stock import StockItem
from stockledger.schemas.enums import InventoryCategory, InventoryUnit, categories_in_group
from .balance_mutator import require_quantity
from .catalog import find_entry
from .locks import ItemLockRegistry
from .store import LedgerStore
from .threshold_monitor import is_low_stock, low_stock_transition, transition_changes_state
from .valuation import quantize_cost, to_decimal

logger = get_logger("ledger")

EDITABLE_FIELDS = frozenset({
    "name", "category", "reorder_point", "reorder_quantity", "expiration_date",
    "lot_number", "withdrawal_period_days", "manufacturer", "active_ingredient",
    "concentration", "storage_location", "supplier", "notes",
})

# Owned by the balance mutator or the store; dropped from metadata updates
PROTECTED_FIELDS = frozenset({
    "id", "quantity_on_hand", "initial_quantity", "cost_per_unit", "low_stock_alert_sent",
    "version", "created_at", "updated_at", "unit", "total_value", "category_group",
})


def _enum_value(enum_cls, value, field: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidArgumentError(f"Invalid {field} {value!r}; expected one of: {allowed}", field=field)


def _non_negative_cost(value, field: str) -> Decimal:
    try:
        cost = to_decimal(value)
    except (ArithmeticError, ValueError):
        raise InvalidArgumentError(f"{field} must be a number", field=field)
    if not cost.is_finite() or cost < 0:
        raise InvalidArgumentError(f"{field} must be zero or more", field=field)
    return quantize_cost(cost)


def _withdrawal_days(value) -> Optional[int]:
    if value is None:
        return None
    try:
        days = int(value)
    except (TypeError, ValueError):
        days = None
    if isinstance(value, bool) or days is None or days != value or days < 0:
        raise InvalidArgumentError("withdrawal_period_days must be a whole number of days, zero or more",
                                   field="withdrawal_period_days")
    return days


def _clean_metadata(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate editable metadata values"""
    cleaned = {}
    for key, value in fields.items():
        if key == "name":
            if value is None or not str(value).strip():
                raise InvalidArgumentError("name is required", field="name")
            value = str(value).strip()
        elif key == "category":
            value = _enum_value(InventoryCategory, value, "category")
        elif key in ("reorder_point", "reorder_quantity"):
            value = require_quantity(value or 0, field=key, allow_zero=True)
        elif key == "withdrawal_period_days":
            value = _withdrawal_days(value)
        elif key == "expiration_date" and value is not None and not isinstance(value, date):
            raise InvalidArgumentError("expiration_date must be a date", field="expiration_date")
        cleaned[key] = value
    return cleaned


class StockRecordService:
    """Stock item lifecycle outside of balance changes"""

    def __init__(self, store: LedgerStore, locks: ItemLockRegistry, clock: Callable = utcnow):
        self.store = store
        self.locks = locks
        self.clock = clock

    def get_item(self, item_id: str) -> StockItem:
        item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundError("Stock item", item_id)
        return item

    def list_items(self, category: Optional[str] = None, group: Optional[str] = None,
                   low_stock_only: bool = False) -> List[StockItem]:
        categories = None
        if category is not None:
            categories = [_enum_value(InventoryCategory, category, "category")]
        elif group is not None:
            try:
                categories = [c.value for c in categories_in_group(group)]
            except ValueError:
                raise InvalidArgumentError(f"Invalid group {group!r}", field="group")
        items = self.store.list_items(categories)
        if low_stock_only:
            items = [item for item in items if is_low_stock(item.quantity_on_hand, item.reorder_point)]
        return items

    def create_item(self, data: Dict[str, Any]) -> StockItem:
        """
        Create a stock item with its opening balance

        The opening balance is recorded as initial_quantity; it is not a
        ledger transaction.
        """
        data = dict(data)
        unknown = set(data) - EDITABLE_FIELDS - {"unit", "quantity_on_hand", "cost_per_unit"}
        if unknown:
            raise InvalidArgumentError(f"Unknown stock item fields: {', '.join(sorted(unknown))}")
        if "category" not in data:
            raise InvalidArgumentError("category is required", field="category")

        quantity = require_quantity(data.pop("quantity_on_hand", 0) or 0, field="quantity_on_hand",
                                    allow_zero=True)
        cost = _non_negative_cost(data.pop("cost_per_unit", 0) or 0, "cost_per_unit")
        unit = _enum_value(InventoryUnit, data.pop("unit", None), "unit")
        data.setdefault("reorder_point", Decimal("0"))
        data.setdefault("reorder_quantity", Decimal("0"))
        if "name" not in data:
            raise InvalidArgumentError("name is required", field="name")
        metadata = _clean_metadata(data)

        now = self.clock()
        item = StockItem(
            id=str(uuid.uuid4()),
            unit=unit,
            quantity_on_hand=quantity,
            initial_quantity=quantity,
            cost_per_unit=cost,
            low_stock_alert_sent=False,
            created_at=now,
            updated_at=now,
            version=1,
            **metadata
        )
        transition = low_stock_transition(item, quantity, now)
        item.low_stock_alert_sent = transition.low_stock_alert_sent
        created = self.store.insert_item(item, transition)
        logger.info(f"Created stock item {created.name} [{created.id}] with {quantity} {unit}")
        return created

    def create_from_catalog(self, catalog_name: str, quantity=0, cost_per_unit=None,
                            **overrides) -> StockItem:
        """Create an item using a catalogue entry's unit, category, thresholds and cost"""
        entry = find_entry(catalog_name)
        if entry is None:
            raise NotFoundError("Catalog entry", catalog_name)
        data = {
            "name": entry.name,
            "category": entry.category.value,
            "unit": entry.unit.value,
            "reorder_point": entry.default_reorder_point,
            "reorder_quantity": entry.default_reorder_quantity,
            "cost_per_unit": entry.default_cost_per_unit if cost_per_unit is None else cost_per_unit,
            "quantity_on_hand": quantity,
            "withdrawal_period_days": entry.withdrawal_period_days,
            "concentration": entry.concentration,
            "active_ingredient": entry.active_ingredient,
        }
        data.update({key: value for key, value in overrides.items() if value is not None})
        return self.create_item(data)

    def update_metadata(self, item_id: str, fields: Dict[str, Any]) -> StockItem:
        """
        Change non-balance fields

        Balance and bookkeeping fields are ignored; a new reorder point
        re-evaluates the low-stock alert.
        """
        stripped = sorted(set(fields) & PROTECTED_FIELDS)
        if stripped:
            logger.warning(f"Ignoring protected fields on {item_id}: {', '.join(stripped)}")
        requested = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
        unknown = set(requested) - EDITABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Unknown stock item fields: {', '.join(sorted(unknown))}")
        metadata = _clean_metadata(requested)

        with self.locks.hold(item_id):
            item = self.get_item(item_id)
            now = self.clock()
            metadata["updated_at"] = now
            transition = None
            if "reorder_point" in metadata:
                candidate = low_stock_transition(
                    item, item.quantity_on_hand, now, reorder_point=metadata["reorder_point"]
                )
                if transition_changes_state(candidate):
                    transition = candidate
            updated = self.store.update_item(item_id, item.version, metadata, transition)
        logger.info(f"Updated stock item {updated.name} [{item_id}]: {', '.join(sorted(requested)) or 'no fields'}")
        return updated

    def delete_item(self, item_id: str) -> None:
        """Delete an item whose balance is zero; its ledger history is kept"""
        with self.locks.hold(item_id):
            item = self.get_item(item_id)
            if item.quantity_on_hand > 0:
                raise ConflictError(
                    f"Cannot delete {item.name}: {item.quantity_on_hand} {item.unit} still on hand. "
                    "Adjust the balance to zero first."
                )
            self.store.delete_item(item_id, item.version)
        self.locks.discard(item_id)
        logger.info(f"Deleted stock item {item.name} [{item_id}]")
