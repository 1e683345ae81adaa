"""
Stock Record Store
Persistence contract for items, the transaction ledger, alerts and
allocation events, plus a thread-safe in-memory implementation
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from stockledger.core.exceptions import ConflictError, NotFoundError, VersionConflict
from stockledger.models.stock import StockItem, LedgerTransaction, StockAlert
from stockledger.models.allocation import AllocationEvent, AllocationJournal
from stockledger.schemas.enums import AlertKind


@dataclass
class AlertTransition:
    """Low-stock state change written together with an item update"""
    low_stock_alert_sent: bool
    open_alert: Optional[StockAlert] = None
    resolve_low_stock: bool = False


@dataclass
class BalanceMutation:
    """
    Everything one balance change writes

    Applied atomically: the item update (guarded by expected_version), the
    ledger transaction insert and the alert transition.
    """
    item_id: str
    expected_version: int
    quantity_on_hand: Decimal
    cost_per_unit: Decimal
    transaction: LedgerTransaction
    alert: AlertTransition
    updated_at: datetime = field(default=None)


def clone_record(record):
    """Detached copy of a mapped row's column values"""
    if record is None:
        return None
    columns = record.__table__.columns
    return type(record)(**{column.key: getattr(record, column.key) for column in columns})


def clone_event(event):
    """Detached copy of an allocation event with its lines and subject shares"""
    if event is None:
        return None
    copy = clone_record(event)
    copy.lines = [clone_record(line) for line in event.lines]
    copy.subjects = [clone_record(subject) for subject in event.subjects]
    return copy


class LedgerStore(ABC):
    """
    Storage backend for the ledger

    Every write method is atomic. Item writes compare the stored version
    against expected_version and raise VersionConflict on mismatch.
    """

    # Items

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[StockItem]:
        pass

    @abstractmethod
    def list_items(self, categories: Optional[Iterable[str]] = None) -> List[StockItem]:
        pass

    @abstractmethod
    def insert_item(self, item: StockItem, alert: Optional[AlertTransition] = None) -> StockItem:
        pass

    @abstractmethod
    def update_item(self, item_id: str, expected_version: int, fields: Dict[str, Any],
                    alert: Optional[AlertTransition] = None) -> StockItem:
        """Write non-balance fields and an optional alert transition"""

    @abstractmethod
    def delete_item(self, item_id: str, expected_version: int) -> None:
        pass

    @abstractmethod
    def commit_mutation(self, mutation: BalanceMutation) -> StockItem:
        """Apply a balance change; returns the updated item"""

    # Transactions

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[LedgerTransaction]:
        pass

    @abstractmethod
    def list_transactions(self, item_id: Optional[str] = None,
                          start: Optional[datetime] = None,
                          end: Optional[datetime] = None,
                          kind: Optional[str] = None,
                          related_event_id: Optional[str] = None,
                          reverses_transaction_id: Optional[str] = None,
                          skip: int = 0,
                          limit: Optional[int] = None,
                          newest_first: bool = True) -> List[LedgerTransaction]:
        pass

    # Alerts

    @abstractmethod
    def get_alert(self, alert_id: str) -> Optional[StockAlert]:
        pass

    @abstractmethod
    def list_alerts(self, item_id: Optional[str] = None, include_resolved: bool = False) -> List[StockAlert]:
        pass

    @abstractmethod
    def resolve_alert(self, alert_id: str, resolved_at: datetime) -> StockAlert:
        pass

    # Allocation events and journal

    @abstractmethod
    def finalize_event(self, event: AllocationEvent, updated_at: datetime) -> AllocationEvent:
        """
        Persist an event with its lines and subjects and mark its journal
        entry completed, in one unit of work

        Raises ConflictError when the journal entry is no longer open.
        """

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[AllocationEvent]:
        pass

    @abstractmethod
    def list_events(self, event_kind: Optional[str] = None,
                    subject_group_id: Optional[str] = None,
                    start: Optional[date] = None,
                    end: Optional[date] = None,
                    skip: int = 0,
                    limit: Optional[int] = None) -> List[AllocationEvent]:
        pass

    @abstractmethod
    def insert_journal(self, entry: AllocationJournal) -> AllocationJournal:
        pass

    @abstractmethod
    def get_journal(self, event_id: str) -> Optional[AllocationJournal]:
        pass

    @abstractmethod
    def update_journal(self, event_id: str, status: str, updated_at: datetime,
                       last_error: Optional[str] = None,
                       expected_statuses: Optional[Iterable[str]] = None) -> AllocationJournal:
        pass

    @abstractmethod
    def list_journal(self, statuses: Iterable[str],
                     created_before: Optional[datetime] = None) -> List[AllocationJournal]:
        pass


OPEN_JOURNAL_STATUSES = ("pending", "compensation_failed")


def _in_range(value, start, end) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def _page(rows: List, skip: int, limit: Optional[int]) -> List:
    rows = rows[skip:]
    return rows if limit is None else rows[:limit]


class InMemoryLedgerStore(LedgerStore):
    """
    Process-local store guarded by a single re-entrant lock

    Items are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._items: Dict[str, StockItem] = {}
        self._transactions: List[LedgerTransaction] = []
        self._transactions_by_id: Dict[str, LedgerTransaction] = {}
        self._alerts: Dict[str, StockAlert] = {}
        self._events: Dict[str, AllocationEvent] = {}
        self._journal: Dict[str, AllocationJournal] = {}

    def _require_version(self, item_id: str, expected_version: int) -> StockItem:
        current = self._items.get(item_id)
        if current is None:
            raise NotFoundError("Stock item", item_id)
        if current.version != expected_version:
            raise VersionConflict(item_id, expected_version)
        return current

    def _apply_alert(self, item_id: str, alert: Optional[AlertTransition], timestamp: datetime):
        if alert is None:
            return
        self._items[item_id].low_stock_alert_sent = alert.low_stock_alert_sent
        if alert.resolve_low_stock:
            for existing in self._alerts.values():
                if (existing.item_id == item_id and not existing.resolved
                        and existing.alert_kind == AlertKind.LOW_STOCK.value):
                    existing.resolved = True
                    existing.resolved_at = timestamp
        if alert.open_alert is not None:
            self._alerts[alert.open_alert.id] = clone_record(alert.open_alert)

    # Items

    def get_item(self, item_id):
        with self._lock:
            return clone_record(self._items.get(item_id))

    def list_items(self, categories=None):
        with self._lock:
            wanted = set(categories) if categories is not None else None
            items = [
                clone_record(item) for item in self._items.values()
                if wanted is None or item.category in wanted
            ]
        return sorted(items, key=lambda item: item.name.lower())

    def insert_item(self, item, alert=None):
        with self._lock:
            if item.id in self._items:
                raise ConflictError(f"Stock item {item.id} already exists")
            stored = clone_record(item)
            stored.version = 1
            self._items[item.id] = stored
            self._apply_alert(item.id, alert, stored.created_at)
            return clone_record(stored)

    def update_item(self, item_id, expected_version, fields, alert=None):
        with self._lock:
            current = self._require_version(item_id, expected_version)
            for key, value in fields.items():
                setattr(current, key, value)
            current.version = expected_version + 1
            self._apply_alert(item_id, alert, current.updated_at)
            return clone_record(current)

    def delete_item(self, item_id, expected_version):
        with self._lock:
            self._require_version(item_id, expected_version)
            del self._items[item_id]

    def commit_mutation(self, mutation):
        with self._lock:
            current = self._require_version(mutation.item_id, mutation.expected_version)
            if mutation.quantity_on_hand < 0:
                raise ConflictError(f"Stock item {mutation.item_id} balance would become negative")
            current.quantity_on_hand = mutation.quantity_on_hand
            current.cost_per_unit = mutation.cost_per_unit
            current.updated_at = mutation.updated_at
            current.version = mutation.expected_version + 1
            stored = clone_record(mutation.transaction)
            self._transactions.append(stored)
            self._transactions_by_id[stored.id] = stored
            self._apply_alert(mutation.item_id, mutation.alert, mutation.updated_at)
            return clone_record(current)

    # Transactions

    def get_transaction(self, transaction_id):
        with self._lock:
            return clone_record(self._transactions_by_id.get(transaction_id))

    def list_transactions(self, item_id=None, start=None, end=None, kind=None,
                          related_event_id=None, reverses_transaction_id=None,
                          skip=0, limit=None, newest_first=True):
        with self._lock:
            rows = [
                clone_record(txn) for txn in self._transactions
                if (item_id is None or txn.item_id == item_id)
                and (kind is None or txn.kind == kind)
                and (related_event_id is None or txn.related_event_id == related_event_id)
                and (reverses_transaction_id is None or txn.reverses_transaction_id == reverses_transaction_id)
                and _in_range(txn.timestamp, start, end)
            ]
        if newest_first:
            rows.reverse()
        return _page(rows, skip, limit)

    # Alerts

    def get_alert(self, alert_id):
        with self._lock:
            return clone_record(self._alerts.get(alert_id))

    def list_alerts(self, item_id=None, include_resolved=False):
        with self._lock:
            alerts = [
                clone_record(alert) for alert in self._alerts.values()
                if (item_id is None or alert.item_id == item_id)
                and (include_resolved or not alert.resolved)
            ]
        return sorted(alerts, key=lambda alert: alert.created_at, reverse=True)

    def resolve_alert(self, alert_id, resolved_at):
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise NotFoundError("Alert", alert_id)
            if not alert.resolved:
                alert.resolved = True
                alert.resolved_at = resolved_at
            return clone_record(alert)

    # Allocation events and journal

    def finalize_event(self, event, updated_at):
        with self._lock:
            if event.id in self._events:
                raise ConflictError(f"Allocation event {event.id} already exists")
            entry = self._journal.get(event.id)
            if entry is not None:
                if entry.status not in OPEN_JOURNAL_STATUSES:
                    raise ConflictError(f"Allocation journal {event.id} is {entry.status}")
                entry.status = "completed"
                entry.updated_at = updated_at
            self._events[event.id] = clone_event(event)
            return clone_event(event)

    def get_event(self, event_id):
        with self._lock:
            return clone_event(self._events.get(event_id))

    def list_events(self, event_kind=None, subject_group_id=None, start=None, end=None,
                    skip=0, limit=None):
        with self._lock:
            rows = [
                clone_event(event) for event in self._events.values()
                if (event_kind is None or event.event_kind == event_kind)
                and (subject_group_id is None or event.subject_group_id == subject_group_id)
                and _in_range(event.event_date, start, end)
            ]
        rows.sort(key=lambda event: (event.event_date, event.created_at), reverse=True)
        return _page(rows, skip, limit)

    def insert_journal(self, entry):
        with self._lock:
            if entry.event_id in self._journal:
                raise ConflictError(f"Allocation journal {entry.event_id} already exists")
            self._journal[entry.event_id] = clone_record(entry)
            return clone_record(entry)

    def get_journal(self, event_id):
        with self._lock:
            return clone_record(self._journal.get(event_id))

    def update_journal(self, event_id, status, updated_at, last_error=None, expected_statuses=None):
        with self._lock:
            entry = self._journal.get(event_id)
            if entry is None:
                raise NotFoundError("Allocation journal", event_id)
            if expected_statuses is not None and entry.status not in tuple(expected_statuses):
                raise ConflictError(f"Allocation journal {event_id} is {entry.status}")
            entry.status = status
            entry.updated_at = updated_at
            if last_error is not None:
                entry.last_error = last_error
            return clone_record(entry)

    def list_journal(self, statuses, created_before=None):
        wanted = set(statuses)
        with self._lock:
            rows = [
                clone_record(entry) for entry in self._journal.values()
                if entry.status in wanted
                and (created_before is None or entry.created_at <= created_before)
            ]
        return sorted(rows, key=lambda entry: entry.created_at)
