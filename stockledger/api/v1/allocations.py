"""
Allocation API endpoints
Feedings, treatments and generic allocation events
"""
from datetime import date
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, status

from stockledger.api import deps
from stockledger.api.deps import Operator
from stockledger.schemas.allocation import (
    AllocationEventRead, AllocationRequest, AllocationResultRead, AvailabilityCheckRequest,
    BulkTreatmentRequest, FeedingRequest, RecoveryReportRead, TreatmentRequest, VaccinationRequest
)
from stockledger.schemas.enums import AllocationEventKind
from stockledger.schemas.stock import AvailabilityRead
from stockledger.services.ledger_engine import InventoryLedger

router = APIRouter()


@router.post("/", response_model=AllocationResultRead, status_code=status.HTTP_201_CREATED)
def record_allocation(
    request: AllocationRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Record a multi-line allocation event. Either every line is deducted
    and the event saved, or nothing is.
    """
    request = request.model_copy(update={"operator": operator.label})
    return ledger.record_allocation_event(request)


@router.post("/availability", response_model=List[AvailabilityRead])
def check_allocation_availability(
    request: AvailabilityCheckRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Check every line of a prospective allocation without reserving stock.
    """
    return ledger.check_many((line.item_id, line.quantity) for line in request.lines)


@router.post("/feedings", response_model=AllocationResultRead, status_code=status.HTTP_201_CREATED)
def record_feeding(
    request: FeedingRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Deliver feed to a pen.
    """
    return ledger.record_feeding(request, operator.label)


@router.post("/treatments", response_model=AllocationResultRead, status_code=status.HTTP_201_CREATED)
def record_treatment(
    request: TreatmentRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    return ledger.record_treatment(request, operator.label)


@router.post("/vaccinations", response_model=AllocationResultRead, status_code=status.HTTP_201_CREATED)
def record_vaccination(
    request: VaccinationRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    return ledger.record_vaccination(request, operator.label)


@router.post("/bulk-treatments", response_model=AllocationResultRead, status_code=status.HTTP_201_CREATED)
def record_bulk_treatment(
    request: BulkTreatmentRequest,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Treat a group of subjects from one drug; all subjects or none.
    """
    return ledger.bulk_treatment(request, operator.label)


@router.get("/", response_model=List[AllocationEventRead])
def list_allocations(
    event_kind: Optional[AllocationEventKind] = None,
    subject_group_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    pagination: Dict[str, int] = Depends(deps.get_pagination_params),
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    return ledger.list_events(
        event_kind=event_kind.value if event_kind else None,
        subject_group_id=subject_group_id, start=start, end=end,
        skip=pagination["skip"], limit=pagination["limit"],
    )


@router.post("/recover", response_model=RecoveryReportRead)
def recover_allocations(
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    """
    Complete or compensate allocations interrupted before they were saved.
    """
    return ledger.recover()


@router.get("/{event_id}", response_model=AllocationEventRead)
def get_allocation(
    event_id: str,
    ledger: InventoryLedger = Depends(deps.get_ledger),
    operator: Operator = Depends(deps.get_current_operator)
):
    return ledger.get_event(event_id)
