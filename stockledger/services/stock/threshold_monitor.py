"""
Threshold Monitor
Low-stock and expiry conditions derived from current item state
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from stockledger.core.config import settings
from stockledger.core.database import utcnow
from stockledger.core.exceptions import InvalidArgumentError, NotFoundError, VersionConflict
from stockledger.core.logging import get_logger
from stockledger.models.stock import StockAlert, StockItem
from stockledger.schemas.enums import AlertKind, AlertSeverity
from .store import AlertTransition, LedgerStore
from .valuation import total_value, value_by_group

logger = get_logger("ledger")


def is_low_stock(quantity, reorder_point) -> bool:
    return Decimal(quantity) <= Decimal(reorder_point or 0)


def low_stock_severity(quantity) -> str:
    return (AlertSeverity.CRITICAL if Decimal(quantity) == 0 else AlertSeverity.WARNING).value


def build_low_stock_alert(item: StockItem, quantity, now: datetime,
                          reorder_point=None) -> StockAlert:
    reorder_point = item.reorder_point if reorder_point is None else reorder_point
    return StockAlert(
        id=str(uuid.uuid4()),
        item_id=item.id,
        item_name=item.name,
        alert_kind=AlertKind.LOW_STOCK.value,
        severity=low_stock_severity(quantity),
        message=f"{item.name} is at {quantity} {item.unit}, at or below its reorder point of {reorder_point}",
        current_quantity=quantity,
        reorder_point=reorder_point,
        created_at=now,
        resolved=False,
    )


def low_stock_transition(item: StockItem, quantity, now: datetime,
                         reorder_point=None) -> AlertTransition:
    """
    Alert state after the item's balance becomes `quantity`

    Opens one alert when the balance first falls to the reorder point and
    resolves it once the balance rises above it again.
    """
    reorder_point = item.reorder_point if reorder_point is None else reorder_point
    low = is_low_stock(quantity, reorder_point)
    if low and not item.low_stock_alert_sent:
        return AlertTransition(
            low_stock_alert_sent=True,
            open_alert=build_low_stock_alert(item, quantity, now, reorder_point),
        )
    if not low and item.low_stock_alert_sent:
        return AlertTransition(low_stock_alert_sent=False, resolve_low_stock=True)
    return AlertTransition(low_stock_alert_sent=bool(item.low_stock_alert_sent))


def transition_changes_state(transition: AlertTransition) -> bool:
    return transition.open_alert is not None or transition.resolve_low_stock


def is_expired(item: StockItem, today: date) -> bool:
    return item.expiration_date is not None and item.expiration_date < today


def is_expiring_soon(item: StockItem, today: date, horizon_days: int) -> bool:
    if item.expiration_date is None:
        return False
    return today <= item.expiration_date <= today + timedelta(days=horizon_days)


def expiry_alert(item: StockItem, today: date, horizon_days: int, now: datetime) -> Optional[StockAlert]:
    """Derived expiry alert for an item holding stock, or None"""
    if item.quantity_on_hand <= 0:
        return None
    if is_expired(item, today):
        kind, severity = AlertKind.EXPIRED, AlertSeverity.CRITICAL
        message = f"{item.name} expired on {item.expiration_date.isoformat()}"
    elif is_expiring_soon(item, today, horizon_days):
        kind, severity = AlertKind.EXPIRING_SOON, AlertSeverity.WARNING
        days = (item.expiration_date - today).days
        message = f"{item.name} expires in {days} days ({item.expiration_date.isoformat()})"
    else:
        return None
    return StockAlert(
        id=f"{kind.value}:{item.id}",
        item_id=item.id,
        item_name=item.name,
        alert_kind=kind.value,
        severity=severity.value,
        message=message,
        current_quantity=item.quantity_on_hand,
        reorder_point=item.reorder_point,
        expiration_date=item.expiration_date,
        created_at=now,
        resolved=False,
    )


@dataclass
class InventoryStatus:
    total_items: int
    total_value: Decimal
    value_by_group: Dict[str, Decimal]
    low_stock_count: int
    expired_count: int
    expiring_soon_count: int
    alerts: List[StockAlert] = field(default_factory=list)


class ThresholdMonitor:
    """
    Alert views over the store

    Low-stock alerts are persisted by balance mutations; expiry alerts are
    recomputed on every read from the supplied clock.
    """

    def __init__(self, store: LedgerStore, horizon_days: Optional[int] = None):
        self.store = store
        self.horizon_days = settings.EXPIRY_HORIZON_DAYS if horizon_days is None else horizon_days

    def low_stock_items(self) -> List[StockItem]:
        return [
            item for item in self.store.list_items()
            if is_low_stock(item.quantity_on_hand, item.reorder_point)
        ]

    def expired_items(self, now: Optional[datetime] = None) -> List[StockItem]:
        today = (now or utcnow()).date()
        return [item for item in self.store.list_items() if is_expired(item, today)]

    def expiring_soon_items(self, now: Optional[datetime] = None) -> List[StockItem]:
        today = (now or utcnow()).date()
        return [
            item for item in self.store.list_items()
            if is_expiring_soon(item, today, self.horizon_days)
        ]

    def active_alerts(self, now: Optional[datetime] = None, item_id: Optional[str] = None) -> List[StockAlert]:
        """Open low-stock alerts followed by current expiry alerts"""
        now = now or utcnow()
        today = now.date()
        alerts = list(self.store.list_alerts(item_id=item_id))
        items = self.store.list_items()
        for item in items:
            if item_id is not None and item.id != item_id:
                continue
            alert = expiry_alert(item, today, self.horizon_days, now)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def resolve_alert(self, alert_id: str, now: Optional[datetime] = None) -> StockAlert:
        """Acknowledge a low-stock alert; expiry alerts clear with the stock"""
        if ":" in alert_id:
            raise InvalidArgumentError(
                "Expiry alerts clear when the stock is written off or the expiration date changes",
                field="alert_id",
            )
        alert = self.store.resolve_alert(alert_id, now or utcnow())
        logger.info(f"Alert {alert_id} for {alert.item_name} resolved manually")
        return alert

    def status_summary(self, now: Optional[datetime] = None) -> InventoryStatus:
        now = now or utcnow()
        today = now.date()
        items = self.store.list_items()
        return InventoryStatus(
            total_items=len(items),
            total_value=total_value(items),
            value_by_group=value_by_group(items),
            low_stock_count=sum(1 for i in items if is_low_stock(i.quantity_on_hand, i.reorder_point)),
            expired_count=sum(1 for i in items if is_expired(i, today)),
            expiring_soon_count=sum(1 for i in items if is_expiring_soon(i, today, self.horizon_days)),
            alerts=self.active_alerts(now),
        )

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Bring persisted low-stock state in line with current balances

        Returns the number of items whose alert state changed. Items that
        change concurrently are skipped; their mutation evaluates them.
        """
        now = now or utcnow()
        changed = 0
        for item in self.store.list_items():
            transition = low_stock_transition(item, item.quantity_on_hand, now)
            if not transition_changes_state(transition):
                continue
            try:
                self.store.update_item(item.id, item.version, {"updated_at": now}, transition)
            except (VersionConflict, NotFoundError):
                logger.debug(f"Skipped alert sweep for {item.id}: changed concurrently")
                continue
            changed += 1
        if changed:
            logger.info(f"Alert sweep updated {changed} items")
        return changed
