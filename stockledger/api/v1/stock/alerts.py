"""
Stock Alerts and Status API endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends

from stockledger.api import deps
from stockledger.api.deps import Operator
from stockledger.schemas.enums import CategoryGroup
from stockledger.schemas.stock import AlertRead, CatalogEntryRead, InventoryStatusRead
from stockledger.services.ledger_engine import InventoryLedger
from stockledger.services.stock.catalog import search_catalog

router = APIRouter()


@router.get("/alerts", response_model=List[AlertRead])
def list_active_alerts(
    item_id: Optional[str] = None,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Open low-stock alerts and current expiry alerts.
    """
    return ledger.get_active_alerts(item_id=item_id)


@router.post("/alerts/{alert_id}/resolve", response_model=AlertRead)
def resolve_alert(
    alert_id: str,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Acknowledge a low-stock alert.
    """
    return ledger.resolve_alert(alert_id)


@router.get("/status", response_model=InventoryStatusRead)
def inventory_status(
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Item counts, inventory value and alert counts.
    """
    return ledger.status_summary()


@router.get("/catalog", response_model=List[CatalogEntryRead])
def search_stock_catalog(
    query: str = "",
    group: Optional[CategoryGroup] = None,
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Search the reference catalogue by name, common name, description or
    active ingredient.
    """
    return search_catalog(query, group)
