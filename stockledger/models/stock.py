"""
Stock Ledger Models
Stock items, the append-only transaction ledger and low-stock alerts
"""
from decimal import Decimal
from sqlalchemy import (
    Boolean, Column, String, Integer, Numeric, Date, DateTime, Text,
    CheckConstraint, Index
)

from stockledger.core.database import Base, utcnow
from stockledger.schemas.enums import category_group


class StockItem(Base):
    """
    Stock Item - a finite, consumable supply (drug, feed or supplement)

    quantity_on_hand is the only balance field; it changes solely through
    the balance mutator. version guards every write with compare-and-swap.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        CheckConstraint("quantity_on_hand >= 0", name="quantity_non_negative"),
        CheckConstraint("cost_per_unit >= 0", name="cost_non_negative"),
        Index("ix_stock_items_category", "category"),
    )

    id = Column(String(36), primary_key=True, doc="Stock item id")
    name = Column(String(100), nullable=False, doc="Item name")
    category = Column(String(30), nullable=False, doc="Category sub-kind")
    unit = Column(String(10), nullable=False, doc="Unit of measure")

    # Quantity Information
    quantity_on_hand = Column(Numeric(15, 3), nullable=False, default=Decimal("0"), doc="Quantity on hand")
    initial_quantity = Column(Numeric(15, 3), nullable=False, default=Decimal("0"), doc="Balance at creation")
    reorder_point = Column(Numeric(15, 3), nullable=False, default=Decimal("0"), doc="Reorder point")
    reorder_quantity = Column(Numeric(15, 3), nullable=False, default=Decimal("0"), doc="Reorder quantity")

    # Cost Information
    cost_per_unit = Column(Numeric(15, 4), nullable=False, default=Decimal("0"), doc="Weighted average cost")

    # Drug specific
    expiration_date = Column(Date, doc="Expiration date")
    lot_number = Column(String(40), doc="Lot number")
    withdrawal_period_days = Column(Integer, doc="Withdrawal period in days")
    manufacturer = Column(String(100))
    active_ingredient = Column(String(100))
    concentration = Column(String(40))

    storage_location = Column(String(100), doc="Storage location")
    supplier = Column(String(100))
    notes = Column(Text)

    low_stock_alert_sent = Column(Boolean, nullable=False, default=False, doc="Low-stock alert open")

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    version = Column(Integer, nullable=False, default=1, doc="Optimistic concurrency counter")

    __mapper_args__ = {"version_id_col": version}

    @property
    def category_group(self) -> str:
        return category_group(self.category).value

    @property
    def total_value(self) -> Decimal:
        return Decimal(self.quantity_on_hand or 0) * Decimal(self.cost_per_unit or 0)

    def __repr__(self):
        return f"<StockItem {self.id} {self.name!r} qty={self.quantity_on_hand} v{self.version}>"


class LedgerTransaction(Base):
    """
    Ledger Transaction - immutable record of one balance change

    Rows are inserted together with the balance update and never updated
    or deleted. item_id is not a foreign key so history survives item
    deletion.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        CheckConstraint("quantity_after >= 0", name="after_non_negative"),
        Index("ix_ledger_transactions_item_id", "item_id"),
        Index("ix_ledger_transactions_timestamp", "timestamp"),
        Index("ix_ledger_transactions_related_event_id", "related_event_id"),
        Index("ix_ledger_transactions_reverses", "reverses_transaction_id"),
    )

    id = Column(String(36), primary_key=True, doc="Transaction id")
    item_id = Column(String(36), nullable=False, doc="Stock item id")
    item_name = Column(String(100), nullable=False, doc="Item name at mutation time")
    kind = Column(String(20), nullable=False, doc="purchase, usage, adjustment, waste, return or transfer")

    quantity_before = Column(Numeric(15, 3), nullable=False)
    quantity_change = Column(Numeric(15, 3), nullable=False, doc="Signed change")
    quantity_after = Column(Numeric(15, 3), nullable=False)
    unit = Column(String(10), nullable=False)

    cost_per_unit = Column(Numeric(15, 4), nullable=False, doc="Cost per unit at mutation time")
    cost_impact = Column(Numeric(15, 4), nullable=False, doc="|change| x cost per unit")

    related_event_kind = Column(String(30), doc="Allocation event kind")
    related_event_id = Column(String(36), doc="Allocation event id")
    reverses_transaction_id = Column(String(36), doc="Usage transaction this entry compensates")

    reason = Column(Text, nullable=False, default="")
    operator = Column(String(100), nullable=False)
    notes = Column(Text)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<LedgerTransaction {self.id} {self.kind} {self.item_id} {self.quantity_change:+}>"


class StockAlert(Base):
    """Persisted low-stock alert; expiry alerts are derived on read"""
    __tablename__ = "stock_alerts"
    __table_args__ = (
        Index("ix_stock_alerts_item_id", "item_id"),
        Index("ix_stock_alerts_resolved", "resolved"),
    )

    id = Column(String(36), primary_key=True)
    item_id = Column(String(36), nullable=False)
    item_name = Column(String(100), nullable=False)
    alert_kind = Column(String(20), nullable=False)
    severity = Column(String(10), nullable=False)
    message = Column(Text, nullable=False)
    current_quantity = Column(Numeric(15, 3))
    reorder_point = Column(Numeric(15, 3))
    expiration_date = Column(Date)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime)
