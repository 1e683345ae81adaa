"""
Treatment Service
Drug treatments and vaccinations for single subjects and whole groups
"""
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from stockledger.core.database import utcnow
from stockledger.core.exceptions import InvalidArgumentError, NotFoundError
from stockledger.schemas.allocation import (
    AllocationLineRequest, AllocationRequest, BulkTreatmentRequest, SubjectShare,
    TreatmentRequest, VaccinationRequest
)
from stockledger.schemas.enums import AllocationEventKind, InventoryUnit
from stockledger.services.stock.balance_mutator import require_quantity
from stockledger.services.stock.store import LedgerStore
from .coordinator import AllocationCoordinator, AllocationResult, CancellationToken

DOSE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(cc|ml|doses?)?\s*$", re.IGNORECASE)

# cc and ml measure the same volume
_VOLUME_UNITS = {InventoryUnit.CC.value, InventoryUnit.ML.value}

TREATMENT_KINDS = (
    AllocationEventKind.TREATMENT,
    AllocationEventKind.VACCINATION,
    AllocationEventKind.BULK_TREATMENT,
)


def parse_dose(text: str) -> Tuple[Decimal, Optional[str]]:
    """
    Split a dose such as '5cc', '2.5 ml' or '1 dose' into amount and unit

    The unit is None when the text gives only a number.
    """
    match = DOSE_PATTERN.match(text or "")
    if match is None:
        raise InvalidArgumentError(f"Invalid dose format: {text!r}. Use a format like '5cc' or '2ml'",
                                   field="dose")
    unit = match.group(2)
    if unit is not None:
        unit = unit.lower()
        if unit == "dose":
            unit = InventoryUnit.DOSES.value
    return Decimal(match.group(1)), unit


def dose_unit_matches(dose_unit: Optional[str], item_unit: str) -> bool:
    if dose_unit is None or dose_unit == item_unit:
        return True
    return dose_unit in _VOLUME_UNITS and item_unit in _VOLUME_UNITS


@dataclass
class WithdrawalStatus:
    subject_id: str
    subject_label: Optional[str]
    item_id: str
    event_id: str
    withdrawal_until: date


class TreatmentService:
    """
    Treatments consume one drug per event

    Bulk treatments reserve and deduct the combined dose once, then record
    one subject share per animal against that single transaction.
    """

    def __init__(self, store: LedgerStore, coordinator: AllocationCoordinator):
        self.store = store
        self.coordinator = coordinator

    def record_treatment(self, request: TreatmentRequest, operator: str,
                         cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        dose = require_quantity(request.dose, field="dose")
        return self._single(AllocationEventKind.TREATMENT, request.subject_id, request.subject_label,
                            request.item_id, dose, operator, request.event_date, request.notes,
                            "Treatment", cancel_token)

    def record_vaccination(self, request: VaccinationRequest, operator: str,
                           cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        amount, unit = parse_dose(request.dose)
        item = self.store.get_item(request.item_id)
        if item is None:
            raise NotFoundError("Stock item", request.item_id)
        if not dose_unit_matches(unit, item.unit):
            raise InvalidArgumentError(
                f"Dose unit {unit} does not match {item.name}, which is stocked in {item.unit}",
                field="dose",
            )
        dose = require_quantity(amount, field="dose")
        return self._single(AllocationEventKind.VACCINATION, request.subject_id, request.subject_label,
                            request.item_id, dose, operator, request.event_date, request.notes,
                            "Vaccination", cancel_token)

    def bulk_treatment(self, request: BulkTreatmentRequest, operator: str,
                       cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        """
        Treat every listed subject or none of them

        The combined dose is checked before anything is deducted.
        """
        if not request.subjects:
            raise InvalidArgumentError("A bulk treatment needs at least one subject", field="subjects")
        seen = set()
        shares = []
        for index, subject in enumerate(request.subjects):
            if subject.subject_id in seen:
                raise InvalidArgumentError(f"Subject {subject.subject_id} is listed twice",
                                           field=f"subjects[{index}].subject_id")
            seen.add(subject.subject_id)
            dose = subject.dose if subject.dose is not None else request.dose_per_head
            if dose is None:
                raise InvalidArgumentError(
                    f"No dose for subject {subject.subject_id} and no dose_per_head given",
                    field=f"subjects[{index}].dose",
                )
            shares.append(SubjectShare(
                subject_id=subject.subject_id,
                subject_label=subject.subject_label,
                item_id=request.item_id,
                quantity=require_quantity(dose, field=f"subjects[{index}].dose"),
            ))

        total = sum((share.quantity for share in shares), Decimal("0"))
        group = request.subject_group_name or f"{len(shares)} subjects"
        allocation = AllocationRequest(
            event_kind=AllocationEventKind.BULK_TREATMENT,
            lines=[AllocationLineRequest(item_id=request.item_id, quantity=total)],
            subject_count=len(shares),
            operator=operator,
            event_date=request.event_date,
            subject_group_id=request.subject_group_id,
            subject_group_name=request.subject_group_name,
            reason=f"Bulk treatment of {group}",
            notes=request.notes,
            subjects=shares,
        )
        return self.coordinator.record_allocation_event(allocation, cancel_token)

    def subjects_in_withdrawal(self, as_of: Optional[date] = None) -> List[WithdrawalStatus]:
        """Subjects whose latest withdrawal date is still ahead of as_of"""
        as_of = as_of or utcnow().date()
        latest = {}
        for kind in TREATMENT_KINDS:
            for event in self.store.list_events(event_kind=kind.value):
                for share in event.subjects:
                    if share.withdrawal_until is None or share.withdrawal_until <= as_of:
                        continue
                    current = latest.get(share.subject_id)
                    if current is None or share.withdrawal_until > current.withdrawal_until:
                        latest[share.subject_id] = WithdrawalStatus(
                            subject_id=share.subject_id,
                            subject_label=share.subject_label,
                            item_id=share.item_id,
                            event_id=event.id,
                            withdrawal_until=share.withdrawal_until,
                        )
        return sorted(latest.values(), key=lambda status: (status.withdrawal_until, status.subject_id))

    def _single(self, kind: AllocationEventKind, subject_id: str, subject_label: Optional[str],
                item_id: str, dose: Decimal, operator: str, event_date: Optional[date],
                notes: Optional[str], verb: str,
                cancel_token: Optional[CancellationToken]) -> AllocationResult:
        label = subject_label or subject_id
        allocation = AllocationRequest(
            event_kind=kind,
            lines=[AllocationLineRequest(item_id=item_id, quantity=dose)],
            subject_count=1,
            operator=operator,
            event_date=event_date,
            reason=f"{verb} for {label}",
            notes=notes,
            subjects=[SubjectShare(subject_id=subject_id, subject_label=subject_label,
                                   item_id=item_id, quantity=dose)],
        )
        return self.coordinator.record_allocation_event(allocation, cancel_token)
