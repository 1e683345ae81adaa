"""
Availability Prechecker
Read-only check of whether items can cover requested quantities
"""
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from stockledger.core.exceptions import NotFoundError
from stockledger.models.stock import StockItem
from .store import LedgerStore


@dataclass
class AvailabilityResult:
    item_id: str
    item_name: str
    available: bool
    current: Decimal
    required: Decimal
    unit: str
    shortfall: Optional[Decimal] = None

    @classmethod
    def for_item(cls, item, required) -> "AvailabilityResult":
        current = Decimal(item.quantity_on_hand)
        required = Decimal(required)
        available = current >= required
        return cls(
            item_id=item.id,
            item_name=item.name,
            available=available,
            current=current,
            required=required,
            unit=item.unit,
            shortfall=None if available else required - current,
        )


def merge_lines(lines: Iterable[Tuple[str, Decimal]]) -> "OrderedDict[str, Decimal]":
    """Sum quantities of lines that name the same item, keeping first-seen order"""
    merged = OrderedDict()
    for item_id, quantity in lines:
        merged[item_id] = merged.get(item_id, Decimal("0")) + Decimal(quantity)
    return merged


class AvailabilityPrechecker:
    """Every check reads the store; nothing is cached between calls"""

    def __init__(self, store: LedgerStore):
        self.store = store

    def check(self, item_id: str, required) -> AvailabilityResult:
        item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundError("Stock item", item_id)
        return AvailabilityResult.for_item(item, required)

    def check_many(self, lines: Iterable[Tuple[str, Decimal]]) -> List[AvailabilityResult]:
        """One result per distinct item, duplicate lines summed"""
        return [self.check(item_id, quantity) for item_id, quantity in merge_lines(lines).items()]

    def snapshot(self, lines: Iterable[Tuple[str, Decimal]]) -> List[Tuple[StockItem, AvailabilityResult]]:
        """Like check_many, also returning the item each result was computed from"""
        results = []
        for item_id, quantity in merge_lines(lines).items():
            item = self.store.get_item(item_id)
            if item is None:
                raise NotFoundError("Stock item", item_id)
            results.append((item, AvailabilityResult.for_item(item, quantity)))
        return results

    @staticmethod
    def shortfalls(results: Iterable[AvailabilityResult]) -> List[AvailabilityResult]:
        return [result for result in results if not result.available]
