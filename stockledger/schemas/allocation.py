"""
Allocation Pydantic Schemas
Requests and results for feedings, treatments and generic allocation events
"""
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field

from .enums import AllocationEventKind, JournalStatus
from .stock import TransactionRead


class AllocationLineRequest(BaseModel):
    """One item and the quantity to consume"""
    item_id: str
    quantity: Decimal


class SubjectShare(BaseModel):
    """Portion of a line consumed by one subject"""
    subject_id: str
    subject_label: Optional[str] = None
    item_id: str
    quantity: Decimal


class AllocationRequest(BaseModel):
    """
    Multi-line consumption event

    Quantities are validated by the coordinator so that every caller,
    HTTP or in-process, receives the same InvalidArgument error.
    """
    event_kind: AllocationEventKind
    lines: List[AllocationLineRequest]
    subject_count: int = 1
    operator: Optional[str] = None
    event_date: Optional[date] = None
    subject_group_id: Optional[str] = None
    subject_group_name: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    subjects: List[SubjectShare] = []
    total_weight_lbs: Optional[Decimal] = None


class FeedingRequest(BaseModel):
    """Pen-wide feed delivery"""
    pen_id: str
    pen_name: str
    head_count: int
    feed_items: List[AllocationLineRequest]
    event_date: Optional[date] = None
    notes: Optional[str] = None


class TreatmentRequest(BaseModel):
    """Single-subject drug treatment"""
    subject_id: str
    subject_label: Optional[str] = None
    item_id: str
    dose: Decimal
    event_date: Optional[date] = None
    notes: Optional[str] = None


class VaccinationRequest(BaseModel):
    """Single-subject vaccination with a free-text dose such as '5cc'"""
    subject_id: str
    subject_label: Optional[str] = None
    item_id: str
    dose: str
    event_date: Optional[date] = None
    notes: Optional[str] = None


class BulkSubject(BaseModel):
    subject_id: str
    subject_label: Optional[str] = None
    dose: Optional[Decimal] = None


class BulkTreatmentRequest(BaseModel):
    """Treat many subjects from one drug; per-subject dose overrides dose_per_head"""
    item_id: str
    subjects: List[BulkSubject]
    dose_per_head: Optional[Decimal] = None
    subject_group_id: Optional[str] = None
    subject_group_name: Optional[str] = None
    event_date: Optional[date] = None
    notes: Optional[str] = None


class AvailabilityCheckRequest(BaseModel):
    lines: List[AllocationLineRequest] = Field(..., min_length=1)


class AllocationLineRead(BaseModel):
    item_id: str
    item_name: str
    quantity: Decimal
    unit: str
    cost_per_unit: Decimal
    cost: Decimal
    transaction_id: str

    model_config = ConfigDict(from_attributes=True)


class SubjectAllocationRead(BaseModel):
    subject_id: str
    subject_label: Optional[str] = None
    item_id: str
    quantity: Decimal
    cost: Decimal
    transaction_id: str
    withdrawal_until: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class AllocationEventRead(BaseModel):
    id: str
    event_kind: AllocationEventKind
    event_date: date
    subject_count: int
    subject_group_id: Optional[str] = None
    subject_group_name: Optional[str] = None
    total_cost: Decimal
    cost_per_subject: Decimal
    total_weight_lbs: Optional[Decimal] = None
    operator: str
    notes: Optional[str] = None
    created_at: datetime
    lines: List[AllocationLineRead]
    subjects: List[SubjectAllocationRead] = []

    model_config = ConfigDict(from_attributes=True)


class AllocationResultRead(BaseModel):
    event: AllocationEventRead
    transactions: List[TransactionRead]

    model_config = ConfigDict(from_attributes=True)


class RecoveryReportRead(BaseModel):
    completed: List[str]
    compensated: List[str]
    failed: List[str]

    model_config = ConfigDict(from_attributes=True)


class JournalEntryRead(BaseModel):
    event_id: str
    event_kind: AllocationEventKind
    status: JournalStatus
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
