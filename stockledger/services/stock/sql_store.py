"""
SQLAlchemy Ledger Store
Relational backend: one session and one transaction per store call
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from stockledger.core.exceptions import ConflictError, LedgerError, NotFoundError, VersionConflict
from stockledger.core.logging import get_logger
from stockledger.models.stock import StockItem, LedgerTransaction, StockAlert
from stockledger.models.allocation import AllocationEvent, AllocationJournal
from stockledger.schemas.enums import AlertKind, JournalStatus
from .store import LedgerStore, OPEN_JOURNAL_STATUSES

logger = get_logger("database")

items_table = StockItem.__table__
alerts_table = StockAlert.__table__
journal_table = AllocationJournal.__table__


class SqlLedgerStore(LedgerStore):
    """
    Ledger store over a SQLAlchemy session factory

    Item writes are compare-and-swap UPDATE statements on the version
    column; a zero row count means the item changed or disappeared.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _unit_of_work(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except Exception as e:
            logger.error(f"Store transaction failed: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _reader(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def _cas_item(self, session: Session, item_id: str, expected_version: int, values: dict):
        values = dict(values)
        values["version"] = expected_version + 1
        result = session.execute(
            update(items_table)
            .where(items_table.c.id == item_id, items_table.c.version == expected_version)
            .values(**values)
        )
        if result.rowcount != 1:
            exists = session.execute(
                select(items_table.c.id).where(items_table.c.id == item_id)
            ).first()
            if exists is None:
                raise NotFoundError("Stock item", item_id)
            raise VersionConflict(item_id, expected_version)

    def _apply_alert(self, session: Session, item_id: str, alert, timestamp):
        if alert is None:
            return
        session.execute(
            update(items_table)
            .where(items_table.c.id == item_id)
            .values(low_stock_alert_sent=alert.low_stock_alert_sent)
        )
        if alert.resolve_low_stock:
            session.execute(
                update(alerts_table)
                .where(
                    alerts_table.c.item_id == item_id,
                    alerts_table.c.alert_kind == AlertKind.LOW_STOCK.value,
                    alerts_table.c.resolved.is_(False),
                )
                .values(resolved=True, resolved_at=timestamp)
            )
        if alert.open_alert is not None:
            session.add(alert.open_alert)

    # Items

    def get_item(self, item_id):
        with self._reader() as session:
            return session.get(StockItem, item_id)

    def list_items(self, categories=None):
        with self._reader() as session:
            query = select(StockItem).order_by(StockItem.name)
            if categories is not None:
                query = query.where(StockItem.category.in_(list(categories)))
            return list(session.scalars(query))

    def insert_item(self, item, alert=None):
        try:
            with self._unit_of_work() as session:
                session.add(item)
                session.flush()
                self._apply_alert(session, item.id, alert, item.created_at)
        except IntegrityError as e:
            raise ConflictError(f"Stock item {item.id} could not be created: {e.orig}")
        return self.get_item(item.id)

    def update_item(self, item_id, expected_version, fields, alert=None):
        with self._unit_of_work() as session:
            self._cas_item(session, item_id, expected_version, fields)
            self._apply_alert(session, item_id, alert, fields.get("updated_at"))
        return self.get_item(item_id)

    def delete_item(self, item_id, expected_version):
        with self._unit_of_work() as session:
            result = session.execute(
                delete(items_table)
                .where(items_table.c.id == item_id, items_table.c.version == expected_version)
            )
            if result.rowcount != 1:
                if session.get(StockItem, item_id) is None:
                    raise NotFoundError("Stock item", item_id)
                raise VersionConflict(item_id, expected_version)

    def commit_mutation(self, mutation):
        with self._unit_of_work() as session:
            self._cas_item(session, mutation.item_id, mutation.expected_version, {
                "quantity_on_hand": mutation.quantity_on_hand,
                "cost_per_unit": mutation.cost_per_unit,
                "updated_at": mutation.updated_at,
            })
            session.add(mutation.transaction)
            self._apply_alert(session, mutation.item_id, mutation.alert, mutation.updated_at)
        return self.get_item(mutation.item_id)

    # Transactions

    def get_transaction(self, transaction_id):
        with self._reader() as session:
            return session.get(LedgerTransaction, transaction_id)

    def list_transactions(self, item_id=None, start=None, end=None, kind=None,
                          related_event_id=None, reverses_transaction_id=None,
                          skip=0, limit=None, newest_first=True):
        query = select(LedgerTransaction)
        if item_id is not None:
            query = query.where(LedgerTransaction.item_id == item_id)
        if start is not None:
            query = query.where(LedgerTransaction.timestamp >= start)
        if end is not None:
            query = query.where(LedgerTransaction.timestamp <= end)
        if kind is not None:
            query = query.where(LedgerTransaction.kind == kind)
        if related_event_id is not None:
            query = query.where(LedgerTransaction.related_event_id == related_event_id)
        if reverses_transaction_id is not None:
            query = query.where(LedgerTransaction.reverses_transaction_id == reverses_transaction_id)
        if newest_first:
            query = query.order_by(LedgerTransaction.timestamp.desc(), LedgerTransaction.id)
        else:
            query = query.order_by(LedgerTransaction.timestamp, LedgerTransaction.id)
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        with self._reader() as session:
            return list(session.scalars(query))

    # Alerts

    def get_alert(self, alert_id):
        with self._reader() as session:
            return session.get(StockAlert, alert_id)

    def list_alerts(self, item_id=None, include_resolved=False):
        query = select(StockAlert).order_by(StockAlert.created_at.desc())
        if item_id is not None:
            query = query.where(StockAlert.item_id == item_id)
        if not include_resolved:
            query = query.where(StockAlert.resolved.is_(False))
        with self._reader() as session:
            return list(session.scalars(query))

    def resolve_alert(self, alert_id, resolved_at):
        with self._unit_of_work() as session:
            alert = session.get(StockAlert, alert_id)
            if alert is None:
                raise NotFoundError("Alert", alert_id)
            if not alert.resolved:
                alert.resolved = True
                alert.resolved_at = resolved_at
        return alert

    # Allocation events and journal

    def finalize_event(self, event, updated_at):
        try:
            with self._unit_of_work() as session:
                session.add(event)
                session.flush()
                journal = session.get(AllocationJournal, event.id)
                if journal is not None:
                    result = session.execute(
                        update(journal_table)
                        .where(
                            journal_table.c.event_id == event.id,
                            journal_table.c.status.in_(OPEN_JOURNAL_STATUSES),
                        )
                        .values(status=JournalStatus.COMPLETED.value, updated_at=updated_at)
                    )
                    if result.rowcount != 1:
                        raise ConflictError(f"Allocation journal {event.id} is {journal.status}")
        except IntegrityError as e:
            raise ConflictError(f"Allocation event {event.id} could not be saved: {e.orig}")
        return self.get_event(event.id)

    def get_event(self, event_id):
        with self._reader() as session:
            return session.get(AllocationEvent, event_id)

    def list_events(self, event_kind=None, subject_group_id=None, start=None, end=None,
                    skip=0, limit=None):
        query = select(AllocationEvent)
        if event_kind is not None:
            query = query.where(AllocationEvent.event_kind == event_kind)
        if subject_group_id is not None:
            query = query.where(AllocationEvent.subject_group_id == subject_group_id)
        if start is not None:
            query = query.where(AllocationEvent.event_date >= start)
        if end is not None:
            query = query.where(AllocationEvent.event_date <= end)
        query = query.order_by(AllocationEvent.event_date.desc(), AllocationEvent.created_at.desc())
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        with self._reader() as session:
            return list(session.scalars(query))

    def insert_journal(self, entry):
        try:
            with self._unit_of_work() as session:
                session.add(entry)
        except IntegrityError as e:
            raise ConflictError(f"Allocation journal {entry.event_id} already exists: {e.orig}")
        return self.get_journal(entry.event_id)

    def get_journal(self, event_id):
        with self._reader() as session:
            return session.get(AllocationJournal, event_id)

    def update_journal(self, event_id, status, updated_at, last_error=None, expected_statuses=None):
        values = {"status": status, "updated_at": updated_at}
        if last_error is not None:
            values["last_error"] = last_error
        with self._unit_of_work() as session:
            query = update(journal_table).where(journal_table.c.event_id == event_id)
            if expected_statuses is not None:
                query = query.where(journal_table.c.status.in_(list(expected_statuses)))
            result = session.execute(query.values(**values))
            if result.rowcount != 1:
                entry = session.get(AllocationJournal, event_id)
                if entry is None:
                    raise NotFoundError("Allocation journal", event_id)
                raise ConflictError(f"Allocation journal {event_id} is {entry.status}")
        return self.get_journal(event_id)

    def list_journal(self, statuses, created_before=None):
        query = (
            select(AllocationJournal)
            .where(AllocationJournal.status.in_(list(statuses)))
            .order_by(AllocationJournal.created_at)
        )
        if created_before is not None:
            query = query.where(AllocationJournal.created_at <= created_before)
        with self._reader() as session:
            return list(session.scalars(query))
