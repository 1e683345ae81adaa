"""
Transaction Ledger
Read side of the append-only ledger: history queries and reconciliation
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from stockledger.core.exceptions import NotFoundError
from stockledger.models.stock import LedgerTransaction
from .store import LedgerStore


@dataclass
class Reconciliation:
    item_id: str
    initial_quantity: Decimal
    total_change: Decimal
    expected_quantity: Decimal
    actual_quantity: Decimal
    transaction_count: int

    @property
    def balanced(self) -> bool:
        return self.expected_quantity == self.actual_quantity


class TransactionLedger:
    """Queries over ledger transactions; there is no write path here"""

    def __init__(self, store: LedgerStore):
        self.store = store

    def get_transaction(self, transaction_id: str) -> LedgerTransaction:
        txn = self.store.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError("Transaction", transaction_id)
        return txn

    def get_transactions(self, item_id: Optional[str] = None,
                         start: Optional[datetime] = None,
                         end: Optional[datetime] = None,
                         kind: Optional[str] = None,
                         event_id: Optional[str] = None,
                         skip: int = 0,
                         limit: Optional[int] = None) -> List[LedgerTransaction]:
        """Newest first"""
        return self.store.list_transactions(
            item_id=item_id, start=start, end=end, kind=kind,
            related_event_id=event_id, skip=skip, limit=limit,
        )

    def event_transactions(self, event_id: str) -> List[LedgerTransaction]:
        """Usage and compensating entries written for one allocation, oldest first"""
        return self.store.list_transactions(related_event_id=event_id, newest_first=False)

    def compensation_for(self, transaction_id: str) -> Optional[LedgerTransaction]:
        rows = self.store.list_transactions(reverses_transaction_id=transaction_id, limit=1)
        return rows[0] if rows else None

    def reconcile(self, item_id: str) -> Reconciliation:
        """Check quantity on hand against initial quantity plus every recorded change"""
        item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundError("Stock item", item_id)
        transactions = self.store.list_transactions(item_id=item_id, newest_first=False)
        total_change = sum((Decimal(txn.quantity_change) for txn in transactions), Decimal("0"))
        return Reconciliation(
            item_id=item_id,
            initial_quantity=Decimal(item.initial_quantity),
            total_change=total_change,
            expected_quantity=Decimal(item.initial_quantity) + total_change,
            actual_quantity=Decimal(item.quantity_on_hand),
            transaction_count=len(transactions),
        )
