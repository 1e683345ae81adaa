"""
Stock Ledger Pydantic Schemas
Request/Response models for the stock ledger API
"""

from .enums import (
    AlertKind, AlertSeverity, AllocationEventKind, CategoryGroup,
    InventoryCategory, InventoryUnit, JournalStatus, TransactionKind
)
from .stock import (
    StockItemBase, StockItemCreate, StockItemUpdate, StockItemRead,
    CatalogItemCreate, PurchaseRequest, AdjustmentRequest, WriteOffRequest,
    TransactionRead, AvailabilityRead, AlertRead, InventoryStatusRead,
    ReconciliationRead, CatalogEntryRead
)
from .allocation import (
    AllocationLineRequest, SubjectShare, AllocationRequest, FeedingRequest,
    TreatmentRequest, VaccinationRequest, BulkSubject, BulkTreatmentRequest,
    AvailabilityCheckRequest, AllocationLineRead, SubjectAllocationRead,
    AllocationEventRead, AllocationResultRead, RecoveryReportRead, JournalEntryRead
)
from .common import ErrorResponse, SuccessResponse
