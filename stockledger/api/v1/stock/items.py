"""
Stock Items API endpoints
"""
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from stockledger.api import deps
from stockledger.api.deps import Operator
from stockledger.schemas.enums import CategoryGroup, InventoryCategory
from stockledger.schemas.stock import (
    AdjustmentRequest, AvailabilityRead, CatalogItemCreate, PurchaseRequest, ReconciliationRead,
    StockItemCreate, StockItemRead, StockItemUpdate, TransactionRead, WriteOffRequest
)
from stockledger.schemas.common import SuccessResponse
from stockledger.services.ledger_engine import InventoryLedger

router = APIRouter()


@router.get("/", response_model=List[StockItemRead])
def list_stock_items(
    category: Optional[InventoryCategory] = None,
    group: Optional[CategoryGroup] = None,
    low_stock_only: bool = False,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Retrieve stock items, optionally filtered by category or group.
    """
    return ledger.list_items(
        category=category.value if category else None,
        group=group.value if group else None,
        low_stock_only=low_stock_only,
    )


@router.post("/", response_model=StockItemRead, status_code=status.HTTP_201_CREATED)
def create_stock_item(
    item_data: StockItemCreate,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Create a new stock item with its opening balance.
    """
    return ledger.create_item(item_data.model_dump())


@router.post("/from-catalog", response_model=StockItemRead, status_code=status.HTTP_201_CREATED)
def create_stock_item_from_catalog(
    item_data: CatalogItemCreate,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Create a stock item using a catalogue entry's defaults.
    """
    overrides = item_data.model_dump(exclude={"catalog_name", "quantity", "cost_per_unit"})
    return ledger.create_from_catalog(
        item_data.catalog_name, item_data.quantity, item_data.cost_per_unit, **overrides
    )


@router.get("/{item_id}", response_model=StockItemRead)
def get_stock_item(
    item_id: str,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Get a specific stock item by ID.
    """
    return ledger.get_item(item_id)


@router.patch("/{item_id}", response_model=StockItemRead)
def update_stock_item(
    item_id: str,
    item_data: StockItemUpdate,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Update stock item metadata. Balances change only through purchases,
    adjustments, write-offs and allocations.
    """
    return ledger.update_item(item_id, item_data.model_dump(exclude_unset=True))


@router.delete("/{item_id}", response_model=SuccessResponse)
def delete_stock_item(
    item_id: str,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Delete a stock item. Only items with a zero balance can be deleted.
    """
    ledger.delete_item(item_id)
    return {"success": True, "message": f"Stock item {item_id} deleted"}


@router.get("/{item_id}/availability", response_model=AvailabilityRead)
def check_availability(
    item_id: str,
    quantity: Decimal = Query(..., gt=0),
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Check whether the item can cover a quantity.
    """
    return ledger.check_availability(item_id, quantity)


@router.post("/{item_id}/purchases", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def record_purchase(
    item_id: str,
    purchase: PurchaseRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Receive stock; a supplied cost updates the weighted average cost.
    """
    return ledger.add(
        item_id, purchase.quantity, purchase.reason, operator.label,
        cost_per_unit=purchase.cost_per_unit, kind=purchase.kind, notes=purchase.notes,
    )


@router.post("/{item_id}/adjustments", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def record_adjustment(
    item_id: str,
    adjustment: AdjustmentRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Set the balance to a physical count.
    """
    return ledger.adjust(item_id, adjustment.new_quantity, adjustment.reason, operator.label,
                         notes=adjustment.notes)


@router.post("/{item_id}/write-offs", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def record_write_off(
    item_id: str,
    write_off: WriteOffRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Remove expired or damaged stock.
    """
    return ledger.write_off(item_id, write_off.quantity, write_off.reason, operator.label,
                            notes=write_off.notes)


@router.get("/{item_id}/reconciliation", response_model=ReconciliationRead)
def reconcile_item(
    item_id: str,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Compare the balance with initial quantity plus recorded changes.
    """
    return ledger.reconcile(item_id)
