"""
Stock Valuation
Weighted average costing, cost impact and inventory value roll-ups
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional

from stockledger.core.config import settings
from stockledger.schemas.enums import CategoryGroup, InventoryCategory, InventoryUnit

ZERO = Decimal("0")

# Pounds per unit for feed weight totals; units without an entry are not weighed
LBS_PER_UNIT = {
    InventoryUnit.LBS.value: Decimal("1"),
    InventoryUnit.KG.value: Decimal("2.20462"),
    InventoryUnit.TONS.value: Decimal("2000"),
    InventoryUnit.BAGS.value: Decimal("50"),
    InventoryUnit.BALES.value: Decimal("50"),
}

# Standard test weights
LBS_PER_BUSHEL = {
    InventoryCategory.SHELL_CORN.value: Decimal("56"),
    InventoryCategory.BARLEY.value: Decimal("48"),
    InventoryCategory.OATS.value: Decimal("32"),
}


def _places(n: int) -> Decimal:
    return Decimal(1).scaleb(-n)


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


def quantize_quantity(value) -> Decimal:
    return to_decimal(value).quantize(_places(settings.QUANTITY_DECIMAL_PLACES), rounding=ROUND_HALF_UP)


def quantize_cost(value) -> Decimal:
    return to_decimal(value).quantize(_places(settings.COST_DECIMAL_PLACES), rounding=ROUND_HALF_UP)


def quantize_currency(value) -> Decimal:
    return to_decimal(value).quantize(_places(settings.CURRENCY_DECIMAL_PLACES), rounding=ROUND_HALF_UP)


def weighted_average_cost(quantity_before, cost_before, quantity_added,
                          supplied_cost: Optional[Decimal]) -> Decimal:
    """
    New cost per unit after receiving stock

    (before x old + added x supplied) / (before + added). Without a supplied
    cost the existing cost is retained.
    """
    cost_before = to_decimal(cost_before)
    if supplied_cost is None:
        return quantize_cost(cost_before)

    quantity_before = to_decimal(quantity_before)
    quantity_added = to_decimal(quantity_added)
    new_quantity = quantity_before + quantity_added
    if new_quantity <= 0:
        return quantize_cost(supplied_cost)

    total_value = quantity_before * cost_before + quantity_added * to_decimal(supplied_cost)
    return quantize_cost(total_value / new_quantity)


def cost_impact(quantity_change, cost_per_unit) -> Decimal:
    """Absolute value moved by a balance change"""
    return quantize_cost(abs(to_decimal(quantity_change)) * to_decimal(cost_per_unit))


def total_value(items: Iterable) -> Decimal:
    return quantize_currency(sum((item.total_value for item in items), ZERO))


def value_by_group(items: Iterable) -> Dict[str, Decimal]:
    """Inventory value per category group"""
    totals = {group.value: ZERO for group in CategoryGroup}
    for item in items:
        totals[item.category_group] += item.total_value
    return {group: quantize_currency(value) for group, value in totals.items()}


def weight_in_lbs(quantity, unit: str, category: Optional[str] = None) -> Decimal:
    """Feed weight in pounds, zero for units that cannot be weighed"""
    factor = LBS_PER_UNIT.get(unit)
    if factor is None and unit == InventoryUnit.BUSHELS.value:
        factor = LBS_PER_BUSHEL.get(category)
    if factor is None:
        return ZERO
    return quantize_quantity(to_decimal(quantity) * factor)
