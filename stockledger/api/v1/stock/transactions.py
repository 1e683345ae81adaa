"""
Ledger Transactions API endpoints
"""
from datetime import datetime
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends

from stockledger.api import deps
from stockledger.api.deps import Operator
from stockledger.schemas.enums import TransactionKind
from stockledger.schemas.stock import TransactionRead
from stockledger.services.ledger_engine import InventoryLedger

router = APIRouter()


@router.get("/", response_model=List[TransactionRead])
def list_transactions(
    item_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    kind: Optional[TransactionKind] = None,
    event_id: Optional[str] = None,
    pagination: Dict[str, int] = Depends(deps.get_pagination_params),
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Ledger transactions, newest first, filtered by item, date range, kind
    or allocation event.
    """
    return ledger.get_transactions(
        item_id=item_id, start=start, end=end,
        kind=kind.value if kind else None, event_id=event_id,
        skip=pagination["skip"], limit=pagination["limit"],
    )


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: str,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    return ledger.get_transaction(transaction_id)
