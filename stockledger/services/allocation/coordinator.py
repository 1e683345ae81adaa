"""
Allocation Coordinator
Multi-line consumption with reserve, commit and compensate phases
"""
import threading
import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from stockledger.core.database import utcnow
from stockledger.core.exceptions import (
    AllocationCancelled, ConflictError, InsufficientStockError, InvalidArgumentError,
    PartialAllocationFailure
)
from stockledger.core.logging import get_logger
from stockledger.models.allocation import AllocationEvent, AllocationJournal, AllocationLine, SubjectAllocation
from stockledger.models.stock import LedgerTransaction
from stockledger.schemas.allocation import AllocationLineRequest, AllocationRequest, SubjectShare
from stockledger.schemas.enums import AllocationEventKind, JournalStatus, TransactionKind
from stockledger.services.stock.availability import AvailabilityPrechecker, merge_lines
from stockledger.services.stock.balance_mutator import BalanceMutator, require_operator, require_quantity
from stockledger.services.stock.ledger import TransactionLedger
from stockledger.services.stock.store import LedgerStore, OPEN_JOURNAL_STATUSES
from stockledger.services.stock.valuation import quantize_cost, to_decimal

logger = get_logger("allocation")


class CancellationToken:
    """Set by the caller to stop an allocation that has not finished"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class AllocationResult:
    event: AllocationEvent
    transactions: List[LedgerTransaction]


class AllocationCoordinator:
    """
    Records an allocation event so that either every line is deducted and
    the event is saved, or no net deduction remains.

    1. Validate the request and merge duplicate item lines.
    2. Reserve: check every line and report all shortfalls together.
    3. Journal the event id, then deduct lines in item id order with the
       event link on each transaction. A failed line is re-checked and
       retried once.
    4. On a second failure, cancellation or a failed save, reverse every
       committed deduction with a compensating adjustment.
    5. Save the event, its lines and subject shares and close the journal
       in one store call.
    """

    def __init__(self, store: LedgerStore, mutator: BalanceMutator,
                 prechecker: AvailabilityPrechecker, clock: Callable = utcnow):
        self.store = store
        self.mutator = mutator
        self.prechecker = prechecker
        self.ledger = TransactionLedger(store)
        self.clock = clock

    def record_allocation_event(self, request: AllocationRequest,
                                cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        request = self.normalize(request)
        self._check_cancelled(cancel_token)

        # Reserve
        snapshot = self.prechecker.snapshot((line.item_id, line.quantity) for line in request.lines)
        shortfalls = [result for _, result in snapshot if not result.available]
        if shortfalls:
            logger.info(
                f"{request.event_kind.value} rejected at reservation: "
                + ", ".join(f"{s.item_name} short {s.shortfall} {s.unit}" for s in shortfalls)
            )
            raise InsufficientStockError(shortfalls)
        withdrawal_days = {item.id: item.withdrawal_period_days for item, _ in snapshot}
        self._check_cancelled(cancel_token)

        event_id = str(uuid.uuid4())
        now = self.clock()
        self.store.insert_journal(AllocationJournal(
            event_id=event_id,
            event_kind=request.event_kind.value,
            status=JournalStatus.PENDING.value,
            payload=request.model_dump(mode="json"),
            created_at=now,
            updated_at=now,
        ))

        committed: List[LedgerTransaction] = []
        try:
            for line in sorted(request.lines, key=lambda l: l.item_id):
                if cancel_token is not None and cancel_token.cancelled:
                    raise AllocationCancelled(event_id)
                self._require_pending(event_id)
                committed.append(self._commit_line(event_id, request, line))

            event = self.build_event(event_id, request, committed, withdrawal_days)
            saved = self.store.finalize_event(event, self.clock())
        except Exception as e:
            journal = self.store.get_journal(event_id)
            if journal is not None and journal.status not in OPEN_JOURNAL_STATUSES:
                # Recovery closed this journal while we were running
                logger.warning(f"Allocation {event_id} was closed as {journal.status} by recovery")
                if journal.status == JournalStatus.COMPLETED.value:
                    return AllocationResult(self.store.get_event(event_id), committed)
                # Recovery only reversed the deductions it could see
                compensations, errors = self.compensate(event_id, request, committed, e)
                raise PartialAllocationFailure(event_id, e, compensations, errors) from e
            compensations, errors = self.compensate(event_id, request, committed, e)
            if isinstance(e, AllocationCancelled):
                raise AllocationCancelled(event_id, compensations) from e
            raise PartialAllocationFailure(event_id, e, compensations, errors) from e

        logger.info(
            f"Recorded {saved.event_kind} {event_id}: {len(saved.lines)} lines, "
            f"total cost {saved.total_cost}, {saved.subject_count} subjects"
        )
        return AllocationResult(saved, committed)

    def normalize(self, request: AllocationRequest) -> AllocationRequest:
        """
        Validate a request before anything is read or written

        Returns a copy with duplicate lines merged, quantities quantized,
        and the event date defaulted to today.
        """
        if not request.lines:
            raise InvalidArgumentError("An allocation needs at least one line", field="lines")
        operator = require_operator(request.operator)
        if isinstance(request.subject_count, bool) or request.subject_count < 1:
            raise InvalidArgumentError("subject_count must be at least 1", field="subject_count")

        raw_lines = []
        for index, line in enumerate(request.lines):
            if not line.item_id:
                raise InvalidArgumentError("item_id is required", field=f"lines[{index}].item_id")
            raw_lines.append((line.item_id, require_quantity(line.quantity, field=f"lines[{index}].quantity")))
        merged = merge_lines(raw_lines)

        shares: List[SubjectShare] = []
        share_totals: Dict[str, Decimal] = {}
        for index, share in enumerate(request.subjects):
            if share.item_id not in merged:
                raise InvalidArgumentError(
                    f"Subject {share.subject_id} draws on {share.item_id}, which is not an allocation line",
                    field=f"subjects[{index}].item_id",
                )
            quantity = require_quantity(share.quantity, field=f"subjects[{index}].quantity")
            share_totals[share.item_id] = share_totals.get(share.item_id, Decimal("0")) + quantity
            shares.append(share.model_copy(update={"quantity": quantity}))
        for item_id, total in share_totals.items():
            if total != merged[item_id]:
                raise InvalidArgumentError(
                    f"Subject quantities for {item_id} total {total}, line quantity is {merged[item_id]}",
                    field="subjects",
                )

        total_weight = request.total_weight_lbs
        if total_weight is not None:
            total_weight = require_quantity(total_weight, field="total_weight_lbs", allow_zero=True)

        return request.model_copy(update={
            "event_kind": AllocationEventKind(request.event_kind),
            "lines": [AllocationLineRequest(item_id=i, quantity=q) for i, q in merged.items()],
            "operator": operator,
            "event_date": request.event_date or self.clock().date(),
            "reason": request.reason or f"{AllocationEventKind(request.event_kind).value} allocation",
            "subjects": shares,
            "total_weight_lbs": total_weight,
        })

    def build_event(self, event_id: str, request: AllocationRequest,
                    transactions: List[LedgerTransaction],
                    withdrawal_days: Dict[str, Optional[int]]) -> AllocationEvent:
        """Event row with lines, subject shares and cost totals from committed deductions"""
        by_item = {txn.item_id: txn for txn in transactions}
        lines = []
        for txn in sorted(transactions, key=lambda t: t.item_id):
            lines.append(AllocationLine(
                event_id=event_id,
                item_id=txn.item_id,
                item_name=txn.item_name,
                quantity=-Decimal(txn.quantity_change),
                unit=txn.unit,
                cost_per_unit=txn.cost_per_unit,
                cost=txn.cost_impact,
                transaction_id=txn.id,
            ))

        subjects = []
        for share in request.subjects:
            txn = by_item[share.item_id]
            days = withdrawal_days.get(share.item_id)
            subjects.append(SubjectAllocation(
                event_id=event_id,
                subject_id=share.subject_id,
                subject_label=share.subject_label,
                item_id=share.item_id,
                quantity=share.quantity,
                cost=quantize_cost(to_decimal(share.quantity) * to_decimal(txn.cost_per_unit)),
                transaction_id=txn.id,
                withdrawal_until=request.event_date + timedelta(days=days) if days is not None else None,
            ))

        total_cost = quantize_cost(sum((to_decimal(line.cost) for line in lines), Decimal("0")))
        return AllocationEvent(
            id=event_id,
            event_kind=AllocationEventKind(request.event_kind).value,
            event_date=request.event_date,
            subject_count=request.subject_count,
            subject_group_id=request.subject_group_id,
            subject_group_name=request.subject_group_name,
            total_cost=total_cost,
            cost_per_subject=quantize_cost(total_cost / request.subject_count),
            total_weight_lbs=request.total_weight_lbs,
            operator=request.operator,
            notes=request.notes,
            created_at=self.clock(),
            lines=lines,
            subjects=subjects,
        )

    def compensate(self, event_id: str, request: AllocationRequest,
                   committed: List[LedgerTransaction], cause: Exception) -> Tuple[List[str], List[str]]:
        """
        Reverse committed deductions of an aborted allocation

        Each reversal is an adjustment that names the usage transaction it
        reverses and the aborted event. Returns the compensating transaction
        ids and any reversal errors. Deductions that already carry a
        reversal are skipped.
        """
        kind = AllocationEventKind(request.event_kind).value
        logger.warning(f"Compensating {len(committed)} deductions of {kind} {event_id}: {cause}")
        compensations, errors = [], []
        for txn in reversed(committed):
            if self.ledger.compensation_for(txn.id) is not None:
                logger.info(f"Deduction {txn.id} of {event_id} is already reversed")
                continue
            try:
                reversal = self.mutator.add(
                    txn.item_id,
                    -Decimal(txn.quantity_change),
                    reason=f"Reversal of {txn.id} for aborted {kind} {event_id}",
                    operator=request.operator,
                    cost_per_unit=txn.cost_per_unit,
                    kind=TransactionKind.ADJUSTMENT,
                    related_event_kind=kind,
                    related_event_id=event_id,
                    reverses_transaction_id=txn.id,
                )
            except Exception as e:
                logger.error(f"Could not reverse {txn.id} of {event_id}: {e}", exc_info=True)
                errors.append(f"{txn.id}: {e}")
                continue
            compensations.append(reversal.id)

        status = JournalStatus.COMPENSATION_FAILED if errors else JournalStatus.COMPENSATED
        try:
            self.store.update_journal(event_id, status.value, self.clock(), last_error=str(cause))
        except Exception as e:
            # The journal stays open and recovery picks the event up
            logger.error(f"Could not close journal for {event_id}: {e}")
        return compensations, errors

    def _commit_line(self, event_id: str, request: AllocationRequest,
                     line: AllocationLineRequest) -> LedgerTransaction:
        try:
            return self._deduct(event_id, request, line)
        except (InsufficientStockError, ConflictError) as first:
            logger.warning(f"Deduction of {line.item_id} for {event_id} failed ({first}); re-checking once")
            result = self.prechecker.check(line.item_id, line.quantity)
            if not result.available:
                raise InsufficientStockError([result]) from first
            return self._deduct(event_id, request, line)

    def _deduct(self, event_id: str, request: AllocationRequest,
                line: AllocationLineRequest) -> LedgerTransaction:
        return self.mutator.deduct(
            line.item_id,
            line.quantity,
            reason=request.reason,
            operator=request.operator,
            related_event_kind=AllocationEventKind(request.event_kind).value,
            related_event_id=event_id,
            notes=request.notes,
        )

    def _require_pending(self, event_id: str):
        journal = self.store.get_journal(event_id)
        if journal is None or journal.status != JournalStatus.PENDING.value:
            status = journal.status if journal is not None else "missing"
            raise ConflictError(f"Allocation {event_id} was closed as {status} before it finished")

    @staticmethod
    def _check_cancelled(cancel_token: Optional[CancellationToken]):
        if cancel_token is not None and cancel_token.cancelled:
            raise AllocationCancelled()
