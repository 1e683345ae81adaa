"""
Allocation Models
Allocation events, their lines, per-subject records and the recovery journal
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text, JSON,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship

from stockledger.core.database import Base, utcnow


class AllocationEvent(Base):
    """
    Allocation Event - a feeding or treatment that consumed stock

    Only written once every line's deduction has committed.
    """
    __tablename__ = "allocation_events"
    __table_args__ = (
        Index("ix_allocation_events_kind_date", "event_kind", "event_date"),
        Index("ix_allocation_events_group", "subject_group_id"),
    )

    id = Column(String(36), primary_key=True)
    event_kind = Column(String(30), nullable=False)
    event_date = Column(Date, nullable=False)
    subject_count = Column(Integer, nullable=False)
    subject_group_id = Column(String(50), doc="Pen id")
    subject_group_name = Column(String(100), doc="Pen name")
    total_cost = Column(Numeric(15, 4), nullable=False)
    cost_per_subject = Column(Numeric(15, 4), nullable=False)
    total_weight_lbs = Column(Numeric(15, 3), doc="Feedings only")
    operator = Column(String(100), nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    lines = relationship(
        "AllocationLine", back_populates="event", cascade="all, delete-orphan",
        order_by="AllocationLine.item_id", lazy="selectin"
    )
    subjects = relationship(
        "SubjectAllocation", back_populates="event", cascade="all, delete-orphan",
        order_by="SubjectAllocation.id", lazy="selectin"
    )


class AllocationLine(Base):
    """One consumed item of an allocation event"""
    __tablename__ = "allocation_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("allocation_events.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(String(36), nullable=False)
    item_name = Column(String(100), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False)
    unit = Column(String(10), nullable=False)
    cost_per_unit = Column(Numeric(15, 4), nullable=False)
    cost = Column(Numeric(15, 4), nullable=False)
    transaction_id = Column(String(36), nullable=False)

    event = relationship("AllocationEvent", back_populates="lines")


class SubjectAllocation(Base):
    """Per-subject share of an allocation (treatments)"""
    __tablename__ = "subject_allocations"
    __table_args__ = (
        Index("ix_subject_allocations_subject", "subject_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("allocation_events.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(String(50), nullable=False)
    subject_label = Column(String(50), doc="Tag number")
    item_id = Column(String(36), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False)
    cost = Column(Numeric(15, 4), nullable=False)
    transaction_id = Column(String(36), nullable=False)
    withdrawal_until = Column(Date, doc="Earliest date the subject clears withdrawal")

    event = relationship("AllocationEvent", back_populates="subjects")


class AllocationJournal(Base):
    """
    Allocation Journal - durability checkpoint for in-flight allocations

    Written before the first deduction; closed together with the event
    insert or after compensation.
    """
    __tablename__ = "allocation_journal"
    __table_args__ = (
        Index("ix_allocation_journal_status", "status"),
    )

    event_id = Column(String(36), primary_key=True)
    event_kind = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=False)
    last_error = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
