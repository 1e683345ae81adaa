"""
Ledger Exceptions
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    return value


class LedgerError(Exception):
    """Base exception for the stock ledger"""

    error = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self) -> Any:
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Error body used by the API layer"""
        return {
            "error": self.error,
            "message": self.message,
            "detail": self.detail(),
        }


class NotFoundError(LedgerError):
    """Raised when a stock item, transaction, alert or event does not exist"""

    error = "not_found"

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key

    def detail(self):
        return {"entity": self.entity, "key": self.key}


class InvalidArgumentError(LedgerError):
    """Raised when input fails validation before any mutation"""

    error = "invalid_argument"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def detail(self):
        return {"field": self.field} if self.field else None


class InsufficientStockError(LedgerError):
    """
    Raised when one or more items cannot cover the requested quantity.

    Carries every short line, not just the first one found.
    """

    error = "insufficient_stock"

    def __init__(self, shortfalls: List[Any]):
        self.shortfalls = list(shortfalls)
        names = ", ".join(
            f"{s.item_name} (have {s.current} {s.unit}, need {s.required})"
            for s in self.shortfalls
        )
        super().__init__(f"Insufficient stock: {names}")

    @property
    def current(self) -> Decimal:
        return self.shortfalls[0].current

    @property
    def required(self) -> Decimal:
        return self.shortfalls[0].required

    @property
    def shortfall(self) -> Decimal:
        return self.shortfalls[0].shortfall

    def detail(self):
        return [
            {
                "item_id": s.item_id,
                "item_name": s.item_name,
                "current": _plain(s.current),
                "required": _plain(s.required),
                "shortfall": _plain(s.shortfall),
                "unit": s.unit,
            }
            for s in self.shortfalls
        ]


class ConflictError(LedgerError):
    """Raised when an operation conflicts with current state or retries are exhausted"""

    error = "conflict"


class VersionConflict(ConflictError):
    """Raised by a store when the item version changed under a compare-and-swap"""

    def __init__(self, item_id: str, expected_version: Optional[int]):
        super().__init__(f"Stock item {item_id} changed concurrently (expected version {expected_version})")
        self.item_id = item_id
        self.expected_version = expected_version


class PartialAllocationFailure(LedgerError):
    """
    Raised when an allocation failed after some deductions were committed.

    The committed deductions have been reversed by compensating entries;
    `compensations` lists their transaction ids.
    """

    error = "allocation_failed"

    def __init__(self, event_id: str, cause: Exception, compensations: List[str],
                 compensation_errors: Optional[List[str]] = None):
        super().__init__(f"Allocation {event_id} aborted: {cause}")
        self.event_id = event_id
        self.cause = cause
        self.compensations = list(compensations)
        self.compensation_errors = list(compensation_errors or [])

    def detail(self):
        detail = {
            "event_id": self.event_id,
            "cause": self.cause.to_dict() if isinstance(self.cause, LedgerError) else str(self.cause),
            "compensating_transactions": self.compensations,
        }
        if self.compensation_errors:
            detail["compensation_errors"] = self.compensation_errors
        return detail


class AllocationCancelled(LedgerError):
    """Raised when the caller cancelled an allocation before it completed"""

    error = "allocation_cancelled"

    def __init__(self, event_id: Optional[str] = None, compensations: Optional[List[str]] = None):
        super().__init__("Allocation cancelled" + (f" ({event_id})" if event_id else ""))
        self.event_id = event_id
        self.compensations = list(compensations or [])

    def detail(self):
        return {"event_id": self.event_id, "compensating_transactions": self.compensations}
