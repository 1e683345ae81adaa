"""
Stock Ledger Pydantic Schemas
Request/response models for stock items, transactions and alerts
"""
from typing import Dict, List, Optional
from decimal import Decimal
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    AlertKind, AlertSeverity, InventoryCategory, InventoryUnit, TransactionKind
)


class StockItemBase(BaseModel):
    """Metadata shared by create and read models"""
    name: str = Field(..., min_length=1, max_length=100)
    category: InventoryCategory
    unit: InventoryUnit
    reorder_point: Decimal = Decimal("0")
    reorder_quantity: Decimal = Decimal("0")
    expiration_date: Optional[date] = None
    lot_number: Optional[str] = Field(None, max_length=40)
    withdrawal_period_days: Optional[int] = None
    manufacturer: Optional[str] = None
    active_ingredient: Optional[str] = None
    concentration: Optional[str] = None
    storage_location: Optional[str] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class StockItemCreate(StockItemBase):
    """Create a stock item with its opening balance"""
    quantity_on_hand: Decimal = Decimal("0")
    cost_per_unit: Decimal = Decimal("0")


class StockItemUpdate(BaseModel):
    """Metadata-only update; balance fields are not accepted"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[InventoryCategory] = None
    reorder_point: Optional[Decimal] = None
    reorder_quantity: Optional[Decimal] = None
    expiration_date: Optional[date] = None
    lot_number: Optional[str] = None
    withdrawal_period_days: Optional[int] = None
    manufacturer: Optional[str] = None
    active_ingredient: Optional[str] = None
    concentration: Optional[str] = None
    storage_location: Optional[str] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None


class StockItemRead(StockItemBase):
    """Stock item as stored, with derived values"""
    id: str
    category_group: str
    quantity_on_hand: Decimal
    initial_quantity: Decimal
    cost_per_unit: Decimal
    total_value: Decimal
    low_stock_alert_sent: bool
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CatalogItemCreate(BaseModel):
    """Create a stock item from a catalogue entry's defaults"""
    catalog_name: str
    quantity: Decimal = Decimal("0")
    cost_per_unit: Optional[Decimal] = None
    expiration_date: Optional[date] = None
    lot_number: Optional[str] = None
    storage_location: Optional[str] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None


class PurchaseRequest(BaseModel):
    """Stock received into an item"""
    quantity: Decimal
    cost_per_unit: Optional[Decimal] = None
    kind: TransactionKind = TransactionKind.PURCHASE
    reason: str = "Purchase"
    notes: Optional[str] = None


class AdjustmentRequest(BaseModel):
    """Physical count correction"""
    new_quantity: Decimal
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


class WriteOffRequest(BaseModel):
    """Expired or damaged stock removed from the balance"""
    quantity: Decimal
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


class TransactionRead(BaseModel):
    id: str
    item_id: str
    item_name: str
    kind: TransactionKind
    quantity_before: Decimal
    quantity_change: Decimal
    quantity_after: Decimal
    unit: str
    cost_per_unit: Decimal
    cost_impact: Decimal
    related_event_kind: Optional[str] = None
    related_event_id: Optional[str] = None
    reverses_transaction_id: Optional[str] = None
    reason: str
    operator: str
    notes: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class AvailabilityRead(BaseModel):
    item_id: str
    item_name: str
    available: bool
    current: Decimal
    required: Decimal
    shortfall: Optional[Decimal] = None
    unit: str

    model_config = ConfigDict(from_attributes=True)


class AlertRead(BaseModel):
    id: str
    item_id: str
    item_name: str
    alert_kind: AlertKind
    severity: AlertSeverity
    message: str
    current_quantity: Optional[Decimal] = None
    reorder_point: Optional[Decimal] = None
    expiration_date: Optional[date] = None
    created_at: Optional[datetime] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InventoryStatusRead(BaseModel):
    total_items: int
    total_value: Decimal
    value_by_group: Dict[str, Decimal]
    low_stock_count: int
    expired_count: int
    expiring_soon_count: int
    alerts: List[AlertRead]

    model_config = ConfigDict(from_attributes=True)


class ReconciliationRead(BaseModel):
    item_id: str
    initial_quantity: Decimal
    total_change: Decimal
    expected_quantity: Decimal
    actual_quantity: Decimal
    transaction_count: int
    balanced: bool

    model_config = ConfigDict(from_attributes=True)


class CatalogEntryRead(BaseModel):
    name: str
    category: InventoryCategory
    unit: InventoryUnit
    description: str
    default_reorder_point: Decimal
    default_reorder_quantity: Decimal
    default_cost_per_unit: Decimal
    withdrawal_period_days: Optional[int] = None
    concentration: Optional[str] = None
    active_ingredient: Optional[str] = None
    common_names: List[str] = []

    model_config = ConfigDict(from_attributes=True)
