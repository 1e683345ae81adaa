"""
Allocation Recovery
Completes or compensates allocations interrupted between commit and save
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from stockledger.core.config import settings
from stockledger.core.database import utcnow
from stockledger.core.exceptions import ConflictError
from stockledger.core.logging import get_logger
from stockledger.models.allocation import AllocationJournal
from stockledger.schemas.allocation import AllocationRequest
from stockledger.schemas.enums import JournalStatus, TransactionKind
from stockledger.services.stock.store import LedgerStore, OPEN_JOURNAL_STATUSES
from .coordinator import AllocationCoordinator

logger = get_logger("allocation")


@dataclass
class RecoveryReport:
    completed: List[str] = field(default_factory=list)
    compensated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class AllocationRecovery:
    """
    Scans open journal entries older than the grace period

    An entry whose every line was deducted and never reversed is finished
    by saving its event. Anything else has its remaining deductions
    reversed. Running it again changes nothing.
    """

    def __init__(self, store: LedgerStore, coordinator: AllocationCoordinator,
                 grace_seconds: Optional[int] = None, clock: Callable = utcnow):
        self.store = store
        self.coordinator = coordinator
        self.grace_seconds = settings.RECOVERY_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self.clock = clock

    def recover(self, now: Optional[datetime] = None) -> RecoveryReport:
        now = now or self.clock()
        cutoff = now - timedelta(seconds=self.grace_seconds)
        report = RecoveryReport()
        for entry in self.store.list_journal(OPEN_JOURNAL_STATUSES, created_before=cutoff):
            try:
                outcome = self._recover_entry(entry, now)
            except Exception as e:
                logger.error(f"Recovery of allocation {entry.event_id} failed: {e}", exc_info=True)
                report.failed.append(entry.event_id)
                continue
            getattr(report, outcome).append(entry.event_id)

        if report.completed or report.compensated or report.failed:
            logger.warning(
                f"Allocation recovery: {len(report.completed)} completed, "
                f"{len(report.compensated)} compensated, {len(report.failed)} failed"
            )
        return report

    def _recover_entry(self, entry: AllocationJournal, now: datetime) -> str:
        event_id = entry.event_id
        if self.store.get_event(event_id) is not None:
            self.store.update_journal(event_id, JournalStatus.COMPLETED.value, now,
                                      expected_statuses=OPEN_JOURNAL_STATUSES)
            return "completed"

        request = AllocationRequest.model_validate(entry.payload)
        transactions = self.coordinator.ledger.event_transactions(event_id)
        usages = [txn for txn in transactions if txn.kind == TransactionKind.USAGE.value]
        reversed_ids = {txn.reverses_transaction_id for txn in transactions if txn.reverses_transaction_id}
        outstanding = [txn for txn in usages if txn.id not in reversed_ids]

        line_items = sorted(line.item_id for line in request.lines)
        fully_committed = sorted(txn.item_id for txn in usages) == line_items
        if entry.status == JournalStatus.PENDING.value and not reversed_ids and fully_committed:
            withdrawal_days = {}
            for item_id in line_items:
                item = self.store.get_item(item_id)
                withdrawal_days[item_id] = item.withdrawal_period_days if item is not None else None
            event = self.coordinator.build_event(event_id, request, usages, withdrawal_days)
            self.store.finalize_event(event, now)
            logger.warning(f"Recovered allocation {event_id}: all {len(usages)} lines committed, event saved")
            return "completed"

        cause = ConflictError(f"Allocation {event_id} was interrupted before it was saved")
        _, errors = self.coordinator.compensate(event_id, request, outstanding, cause)
        return "failed" if errors else "compensated"
