"""
Feeding Service
Pen feed deliveries recorded as allocation events
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from stockledger.core.exceptions import InvalidArgumentError, NotFoundError
from stockledger.models.allocation import AllocationEvent
from stockledger.schemas.allocation import AllocationRequest, FeedingRequest
from stockledger.schemas.enums import AllocationEventKind
from stockledger.services.stock.store import LedgerStore
from stockledger.services.stock.valuation import quantize_cost, quantize_quantity, weight_in_lbs
from .coordinator import AllocationCoordinator, AllocationResult, CancellationToken


class FeedingService:
    """Every feed delivery to a pen deducts the delivered feed from stock"""

    def __init__(self, store: LedgerStore, coordinator: AllocationCoordinator):
        self.store = store
        self.coordinator = coordinator

    def record_feeding(self, request: FeedingRequest, operator: str,
                       cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        """
        Deliver feed to a pen

        Total weight is reported in pounds; cost per head is the event's
        total cost over head_count.
        """
        if request.head_count < 1:
            raise InvalidArgumentError("head_count must be at least 1", field="head_count")
        if not request.feed_items:
            raise InvalidArgumentError("A feeding needs at least one feed item", field="feed_items")

        total_weight = Decimal("0")
        for line in request.feed_items:
            item = self.store.get_item(line.item_id)
            if item is None:
                raise NotFoundError("Stock item", line.item_id)
            total_weight += weight_in_lbs(line.quantity, item.unit, item.category)

        allocation = AllocationRequest(
            event_kind=AllocationEventKind.FEEDING,
            lines=request.feed_items,
            subject_count=request.head_count,
            operator=operator,
            event_date=request.event_date,
            subject_group_id=request.pen_id,
            subject_group_name=request.pen_name,
            reason=f"Feed allocation to {request.pen_name}",
            notes=request.notes,
            total_weight_lbs=quantize_quantity(total_weight),
        )
        return self.coordinator.record_allocation_event(allocation, cancel_token)

    def list_feedings(self, pen_id: Optional[str] = None, start: Optional[date] = None,
                      end: Optional[date] = None, skip: int = 0,
                      limit: Optional[int] = None) -> List[AllocationEvent]:
        return self.store.list_events(
            event_kind=AllocationEventKind.FEEDING.value, subject_group_id=pen_id,
            start=start, end=end, skip=skip, limit=limit,
        )

    def pen_feed_cost(self, pen_id: str, start: Optional[date] = None,
                      end: Optional[date] = None) -> Decimal:
        """Total feed cost delivered to a pen over a date range"""
        feedings = self.list_feedings(pen_id=pen_id, start=start, end=end)
        return quantize_cost(sum((Decimal(event.total_cost) for event in feedings), Decimal("0")))
