"""
Inventory Ledger
Single entry point wiring the store, mutator, monitor and allocation services
"""
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from stockledger.core.config import settings
from stockledger.core.database import utcnow
from stockledger.core.exceptions import NotFoundError
from stockledger.models.allocation import AllocationEvent
from stockledger.models.stock import LedgerTransaction, StockAlert, StockItem
from stockledger.schemas.allocation import (
    AllocationRequest, BulkTreatmentRequest, FeedingRequest, TreatmentRequest, VaccinationRequest
)
from stockledger.schemas.enums import TransactionKind
from .allocation.coordinator import AllocationCoordinator, AllocationResult, CancellationToken
from .allocation.feeding import FeedingService
from .allocation.recovery import AllocationRecovery, RecoveryReport
from .allocation.treatment import TreatmentService
from .stock.availability import AvailabilityPrechecker, AvailabilityResult
from .stock.balance_mutator import BalanceMutator
from .stock.ledger import Reconciliation, TransactionLedger
from .stock.locks import ItemLockRegistry
from .stock.sql_store import SqlLedgerStore
from .stock.stock_records import StockRecordService
from .stock.store import InMemoryLedgerStore, LedgerStore
from .stock.threshold_monitor import InventoryStatus, ThresholdMonitor


class InventoryLedger:
    """
    Inventory ledger and allocation engine

    Holds one of each component over a shared store and lock registry.
    Usage deductions for events go through record_allocation_event or the
    feeding and treatment helpers.
    """

    def __init__(self, store: LedgerStore, clock: Callable = utcnow,
                 locks: Optional[ItemLockRegistry] = None,
                 max_attempts: Optional[int] = None,
                 horizon_days: Optional[int] = None,
                 grace_seconds: Optional[int] = None):
        self.store = store
        self.clock = clock
        self.locks = locks or ItemLockRegistry(settings.LOCK_TIMEOUT_SECONDS)
        self.mutator = BalanceMutator(store, self.locks, max_attempts=max_attempts, clock=clock)
        self.prechecker = AvailabilityPrechecker(store)
        self.monitor = ThresholdMonitor(store, horizon_days)
        self.records = StockRecordService(store, self.locks, clock)
        self.transactions = TransactionLedger(store)
        self.coordinator = AllocationCoordinator(store, self.mutator, self.prechecker, clock)
        self.feeding = FeedingService(store, self.coordinator)
        self.treatment = TreatmentService(store, self.coordinator)
        self.recovery = AllocationRecovery(store, self.coordinator, grace_seconds, clock)

    # Stock records

    def get_item(self, item_id: str) -> StockItem:
        return self.records.get_item(item_id)

    def list_items(self, category: Optional[str] = None, group: Optional[str] = None,
                   low_stock_only: bool = False) -> List[StockItem]:
        return self.records.list_items(category, group, low_stock_only)

    def create_item(self, data: Dict[str, Any]) -> StockItem:
        return self.records.create_item(data)

    def create_from_catalog(self, catalog_name: str, quantity=0, cost_per_unit=None, **overrides) -> StockItem:
        return self.records.create_from_catalog(catalog_name, quantity, cost_per_unit, **overrides)

    def update_item(self, item_id: str, fields: Dict[str, Any]) -> StockItem:
        return self.records.update_metadata(item_id, fields)

    def delete_item(self, item_id: str) -> None:
        self.records.delete_item(item_id)

    # Balances

    def check_availability(self, item_id: str, quantity) -> AvailabilityResult:
        return self.prechecker.check(item_id, quantity)

    def check_many(self, lines) -> List[AvailabilityResult]:
        return self.prechecker.check_many(lines)

    def deduct(self, item_id: str, quantity, reason: str, operator: str, **link) -> LedgerTransaction:
        return self.mutator.deduct(item_id, quantity, reason, operator, **link)

    def add(self, item_id: str, quantity, reason: str, operator: str, cost_per_unit=None,
            kind: TransactionKind = TransactionKind.PURCHASE, notes: Optional[str] = None) -> LedgerTransaction:
        return self.mutator.add(item_id, quantity, reason, operator, cost_per_unit=cost_per_unit,
                                kind=kind, notes=notes)

    def adjust(self, item_id: str, new_quantity, reason: str, operator: str,
               notes: Optional[str] = None) -> LedgerTransaction:
        return self.mutator.adjust(item_id, new_quantity, reason, operator, notes=notes)

    def write_off(self, item_id: str, quantity, reason: str, operator: str,
                  notes: Optional[str] = None) -> LedgerTransaction:
        return self.mutator.write_off(item_id, quantity, reason, operator, notes=notes)

    # Ledger

    def get_transaction(self, transaction_id: str) -> LedgerTransaction:
        return self.transactions.get_transaction(transaction_id)

    def get_transactions(self, item_id: Optional[str] = None, start: Optional[datetime] = None,
                         end: Optional[datetime] = None, kind: Optional[str] = None,
                         event_id: Optional[str] = None, skip: int = 0,
                         limit: Optional[int] = None) -> List[LedgerTransaction]:
        return self.transactions.get_transactions(item_id, start, end, kind, event_id, skip, limit)

    def reconcile(self, item_id: str) -> Reconciliation:
        return self.transactions.reconcile(item_id)

    # Alerts

    def get_active_alerts(self, item_id: Optional[str] = None) -> List[StockAlert]:
        return self.monitor.active_alerts(self.clock(), item_id=item_id)

    def resolve_alert(self, alert_id: str) -> StockAlert:
        return self.monitor.resolve_alert(alert_id, self.clock())

    def status_summary(self) -> InventoryStatus:
        return self.monitor.status_summary(self.clock())

    # Allocations

    def record_allocation_event(self, request: AllocationRequest,
                                cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        return self.coordinator.record_allocation_event(request, cancel_token)

    def record_feeding(self, request: FeedingRequest, operator: str,
                       cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        return self.feeding.record_feeding(request, operator, cancel_token)

    def record_treatment(self, request: TreatmentRequest, operator: str,
                         cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        return self.treatment.record_treatment(request, operator, cancel_token)

    def record_vaccination(self, request: VaccinationRequest, operator: str,
                           cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        return self.treatment.record_vaccination(request, operator, cancel_token)

    def bulk_treatment(self, request: BulkTreatmentRequest, operator: str,
                       cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        return self.treatment.bulk_treatment(request, operator, cancel_token)

    def get_event(self, event_id: str) -> AllocationEvent:
        event = self.store.get_event(event_id)
        if event is None:
            raise NotFoundError("Allocation event", event_id)
        return event

    def list_events(self, event_kind: Optional[str] = None, subject_group_id: Optional[str] = None,
                    start: Optional[date] = None, end: Optional[date] = None,
                    skip: int = 0, limit: Optional[int] = None) -> List[AllocationEvent]:
        return self.store.list_events(event_kind, subject_group_id, start, end, skip, limit)

    def recover(self, now: Optional[datetime] = None) -> RecoveryReport:
        return self.recovery.recover(now)


def build_sql_ledger(session_factory: sessionmaker, **kwargs) -> InventoryLedger:
    return InventoryLedger(SqlLedgerStore(session_factory), **kwargs)


def build_memory_ledger(**kwargs) -> InventoryLedger:
    return InventoryLedger(InMemoryLedgerStore(), **kwargs)
