"""
Balance Mutator
The only code path that changes a stock item's quantity on hand
"""
import random
import time
import uuid
from decimal import Decimal
from typing import Callable, Optional

from stockledger.core.config import settings
from stockledger.core.database import utcnow
from stockledger.core.exceptions import (
    ConflictError, InsufficientStockError, InvalidArgumentError, NotFoundError, VersionConflict
)
from stockledger.core.logging import get_logger
from stockledger.models.stock import LedgerTransaction, StockItem
from stockledger.schemas.enums import TransactionKind
from .availability import AvailabilityResult
from .locks import ItemLockRegistry
from .store import BalanceMutation, LedgerStore
from .threshold_monitor import low_stock_transition
from .valuation import cost_impact, quantize_cost, quantize_quantity, to_decimal, weighted_average_cost

logger = get_logger("ledger")

ADD_KINDS = (TransactionKind.PURCHASE, TransactionKind.RETURN, TransactionKind.ADJUSTMENT, TransactionKind.TRANSFER)


def require_quantity(value, field: str = "quantity", allow_zero: bool = False) -> Decimal:
    """Validated, quantized quantity; raises InvalidArgumentError"""
    try:
        quantity = to_decimal(value)
    except (ArithmeticError, ValueError):
        raise InvalidArgumentError(f"{field} must be a number", field=field)
    if not quantity.is_finite():
        raise InvalidArgumentError(f"{field} must be a finite number", field=field)
    quantity = quantize_quantity(quantity)
    if quantity < 0 or (quantity == 0 and not allow_zero):
        bound = "zero or more" if allow_zero else "greater than zero"
        raise InvalidArgumentError(f"{field} must be {bound}, got {value}", field=field)
    return quantity


def require_operator(operator: Optional[str]) -> str:
    if not operator or not str(operator).strip():
        raise InvalidArgumentError("operator is required", field="operator")
    return str(operator).strip()


class BalanceMutator:
    """
    Deduct, add and adjust stock balances

    Each call reads the item, computes the new balance, and commits the
    balance, its ledger transaction and any low-stock alert change in one
    store call. A per-item lock serializes callers in this process; the
    store's version check catches writers outside it, and such conflicts
    are retried with capped exponential backoff.
    """

    def __init__(self, store: LedgerStore, locks: Optional[ItemLockRegistry] = None,
                 max_attempts: Optional[int] = None,
                 backoff_base: Optional[float] = None,
                 backoff_max: Optional[float] = None,
                 clock: Callable = utcnow):
        self.store = store
        self.locks = locks or ItemLockRegistry(settings.LOCK_TIMEOUT_SECONDS)
        self.max_attempts = max_attempts or settings.MUTATION_MAX_ATTEMPTS
        self.backoff_base = settings.MUTATION_BACKOFF_BASE_SECONDS if backoff_base is None else backoff_base
        self.backoff_max = settings.MUTATION_BACKOFF_MAX_SECONDS if backoff_max is None else backoff_max
        self.clock = clock

    # Public operations

    def deduct(self, item_id: str, quantity, reason: str, operator: str,
               related_event_kind: Optional[str] = None,
               related_event_id: Optional[str] = None,
               notes: Optional[str] = None) -> LedgerTransaction:
        """
        Remove stock for usage

        Raises NotFoundError, InvalidArgumentError for a quantity that is
        not positive, and InsufficientStockError when the balance is short.
        """
        quantity = require_quantity(quantity)
        operator = require_operator(operator)
        return self._remove(item_id, quantity, TransactionKind.USAGE, reason, operator,
                            related_event_kind, related_event_id, notes)

    def write_off(self, item_id: str, quantity, reason: str, operator: str,
                  notes: Optional[str] = None) -> LedgerTransaction:
        """Remove expired or damaged stock as waste"""
        quantity = require_quantity(quantity)
        operator = require_operator(operator)
        if not reason:
            raise InvalidArgumentError("reason is required for a write-off", field="reason")
        return self._remove(item_id, quantity, TransactionKind.WASTE, reason, operator, None, None, notes)

    def add(self, item_id: str, quantity, reason: str, operator: str,
            cost_per_unit=None,
            kind: TransactionKind = TransactionKind.PURCHASE,
            related_event_kind: Optional[str] = None,
            related_event_id: Optional[str] = None,
            reverses_transaction_id: Optional[str] = None,
            notes: Optional[str] = None) -> LedgerTransaction:
        """
        Receive stock

        With cost_per_unit the item's cost becomes the weighted average of
        old and new stock; without it the current cost is kept.
        """
        quantity = require_quantity(quantity)
        operator = require_operator(operator)
        kind = TransactionKind(kind)
        if kind not in ADD_KINDS:
            raise InvalidArgumentError(f"{kind.value} cannot increase a balance", field="kind")
        supplied_cost = None
        if cost_per_unit is not None:
            supplied_cost = to_decimal(cost_per_unit)
            if not supplied_cost.is_finite() or supplied_cost < 0:
                raise InvalidArgumentError("cost_per_unit must be zero or more", field="cost_per_unit")
            supplied_cost = quantize_cost(supplied_cost)

        def plan(item: StockItem, now) -> BalanceMutation:
            before = Decimal(item.quantity_on_hand)
            after = before + quantity
            new_cost = weighted_average_cost(before, item.cost_per_unit, quantity, supplied_cost)
            txn_cost = supplied_cost if supplied_cost is not None else quantize_cost(item.cost_per_unit)
            return self._mutation(
                item, now, kind, quantity, after, new_cost, txn_cost, reason, operator,
                related_event_kind, related_event_id, reverses_transaction_id, notes,
            )

        return self._mutate(item_id, plan)

    def adjust(self, item_id: str, new_quantity, reason: str, operator: str,
               notes: Optional[str] = None) -> LedgerTransaction:
        """Set the balance to a counted quantity; the signed difference is recorded"""
        new_quantity = require_quantity(new_quantity, field="new_quantity", allow_zero=True)
        operator = require_operator(operator)

        def plan(item: StockItem, now) -> BalanceMutation:
            before = Decimal(item.quantity_on_hand)
            cost = quantize_cost(item.cost_per_unit)
            return self._mutation(
                item, now, TransactionKind.ADJUSTMENT, new_quantity - before, new_quantity,
                cost, cost, reason, operator, None, None, None, notes,
            )

        return self._mutate(item_id, plan)

    # Internals

    def _remove(self, item_id, quantity, kind, reason, operator,
                related_event_kind, related_event_id, notes) -> LedgerTransaction:
        def plan(item: StockItem, now) -> BalanceMutation:
            before = Decimal(item.quantity_on_hand)
            if quantity > before:
                raise InsufficientStockError([AvailabilityResult.for_item(item, quantity)])
            cost = quantize_cost(item.cost_per_unit)
            return self._mutation(
                item, now, kind, -quantity, before - quantity, cost, cost, reason, operator,
                related_event_kind, related_event_id, None, notes,
            )

        return self._mutate(item_id, plan)

    def _mutation(self, item: StockItem, now, kind: TransactionKind, change: Decimal,
                  after: Decimal, new_cost: Decimal, txn_cost: Decimal, reason, operator,
                  related_event_kind, related_event_id, reverses_transaction_id,
                  notes) -> BalanceMutation:
        transaction = LedgerTransaction(
            id=str(uuid.uuid4()),
            item_id=item.id,
            item_name=item.name,
            kind=TransactionKind(kind).value,
            quantity_before=Decimal(item.quantity_on_hand),
            quantity_change=change,
            quantity_after=after,
            unit=item.unit,
            cost_per_unit=txn_cost,
            cost_impact=cost_impact(change, txn_cost),
            related_event_kind=related_event_kind,
            related_event_id=related_event_id,
            reverses_transaction_id=reverses_transaction_id,
            reason=reason or "",
            operator=operator,
            notes=notes,
            timestamp=now,
        )
        return BalanceMutation(
            item_id=item.id,
            expected_version=item.version,
            quantity_on_hand=after,
            cost_per_unit=new_cost,
            transaction=transaction,
            alert=low_stock_transition(item, after, now),
            updated_at=now,
        )

    def _backoff(self, attempt: int) -> float:
        delay = min(self.backoff_max, self.backoff_base * (2 ** (attempt - 1)))
        return random.uniform(delay / 2, delay)

    def _mutate(self, item_id: str, plan: Callable) -> LedgerTransaction:
        attempt = 0
        while True:
            attempt += 1
            with self.locks.hold(item_id):
                item = self.store.get_item(item_id)
                if item is None:
                    raise NotFoundError("Stock item", item_id)
                mutation = plan(item, self.clock())
                try:
                    self.store.commit_mutation(mutation)
                except VersionConflict:
                    if attempt >= self.max_attempts:
                        logger.warning(f"Giving up on {item_id} after {attempt} version conflicts")
                        raise ConflictError(
                            f"Stock item {item_id} is being changed concurrently; gave up after {attempt} attempts"
                        )
                    logger.debug(f"Version conflict on {item_id}, attempt {attempt}")
                else:
                    txn = mutation.transaction
                    logger.info(
                        f"{txn.kind} {item.name} [{item_id}]: {txn.quantity_before} -> {txn.quantity_after} "
                        f"{txn.unit} by {txn.operator}"
                        + (f" for {txn.related_event_kind} {txn.related_event_id}" if txn.related_event_id else "")
                    )
                    if mutation.alert.open_alert is not None:
                        logger.warning(mutation.alert.open_alert.message)
                    return txn
            time.sleep(self._backoff(attempt))
