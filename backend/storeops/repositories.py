# Overview: Per-collection repositories injected into handlers instead of a shared client.

"""
Repositories

WHY: Handlers receive a `Repositories` bundle rather than reaching for the
global session, so every collection they touch is explicit and a test (or
a different backing store) can hand in its own bundle.

All repositories in one bundle share one SQLAlchemy session, which is the
transaction boundary: a handler commits or rolls back the bundle's session
once, after all writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from .extensions import db
from .models import (
    ActivityEntry,
    Closeout,
    Customer,
    DailySummary,
    ErrorLogEvent,
    LedgerEntry,
    OutboxEvent,
    ProcessedEvent,
    Product,
    Receipt,
    Sale,
    SaleItem,
    Store,
)
from .models.events import EVENT_PENDING
from .models.summaries import summary_id
from .services.concurrency import lock_for_update


class _Repository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, obj):
        self.session.add(obj)
        self.session.flush()
        return obj


class StoresRepository(_Repository):
    def get(self, store_id: str) -> Store | None:
        return self.session.get(Store, store_id)

    def list_all(self) -> list[Store]:
        return self.session.query(Store).order_by(Store.id.asc()).all()


class ProductsRepository(_Repository):
    def get(self, product_id: str) -> Product | None:
        return self.session.get(Product, product_id)

    def get_for_update(self, product_id: str) -> Product | None:
        return lock_for_update(
            self.session.query(Product).filter(Product.id == product_id)
        ).first()


class SalesRepository(_Repository):
    def get(self, sale_id: str) -> Sale | None:
        return self.session.get(Sale, sale_id)

    def items_for(self, sale_id: str) -> list[SaleItem]:
        return (
            self.session.query(SaleItem)
            .filter(SaleItem.sale_id == sale_id)
            .order_by(SaleItem.position.asc())
            .all()
        )

    def in_window(self, store_id: str, start: datetime, end: datetime) -> list[Sale]:
        return self.session.query(Sale).filter(
            Sale.store_id == store_id,
            Sale.created_at >= start,
            Sale.created_at < end,
        ).order_by(Sale.created_at.asc(), Sale.id.asc()).all()


class ReceiptsRepository(_Repository):
    def get(self, receipt_id: str) -> Receipt | None:
        return self.session.get(Receipt, receipt_id)

    def in_window(self, store_id: str, start: datetime, end: datetime) -> list[Receipt]:
        return self.session.query(Receipt).filter(
            Receipt.store_id == store_id,
            Receipt.created_at >= start,
            Receipt.created_at < end,
        ).order_by(Receipt.created_at.asc(), Receipt.id.asc()).all()


class CustomersRepository(_Repository):
    def get(self, customer_id: str) -> Customer | None:
        return self.session.get(Customer, customer_id)

    def in_window(self, store_id: str, start: datetime, end: datetime) -> list[Customer]:
        return self.session.query(Customer).filter(
            Customer.store_id == store_id,
            Customer.created_at >= start,
            Customer.created_at < end,
        ).order_by(Customer.created_at.asc(), Customer.id.asc()).all()


class CloseoutsRepository(_Repository):
    def in_window(self, store_id: str, start: datetime, end: datetime) -> list[Closeout]:
        return self.session.query(Closeout).filter(
            Closeout.store_id == store_id,
            Closeout.closed_at >= start,
            Closeout.closed_at < end,
        ).order_by(Closeout.closed_at.asc(), Closeout.id.asc()).all()


class LedgerRepository(_Repository):
    """Append-only: no update or delete methods on purpose."""

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        return self.add(entry)

    def for_ref(self, entry_type: str, ref_id: str) -> list[LedgerEntry]:
        return self.session.query(LedgerEntry).filter_by(type=entry_type, ref_id=ref_id).all()

    def for_product(self, product_id: str) -> list[LedgerEntry]:
        return (
            self.session.query(LedgerEntry)
            .filter(LedgerEntry.product_id == product_id)
            .order_by(LedgerEntry.created_at.asc())
            .all()
        )

    def net_change(self, product_id: str) -> int:
        total = self.session.query(func.coalesce(func.sum(LedgerEntry.qty_change), 0)).filter(
            LedgerEntry.product_id == product_id
        ).scalar()
        return int(total or 0)


class SummariesRepository(_Repository):
    def get(self, store_id: str, date_key: str) -> DailySummary | None:
        return self.session.get(DailySummary, summary_id(store_id, date_key))

    def get_for_update(self, store_id: str, date_key: str) -> DailySummary | None:
        return lock_for_update(
            self.session.query(DailySummary).filter(
                DailySummary.id == summary_id(store_id, date_key)
            )
        ).first()

    def get_or_create_for_update(self, store_id: str, date_key: str) -> DailySummary:
        summary = self.get_for_update(store_id, date_key)
        if summary is not None:
            return summary
        summary = DailySummary(
            id=summary_id(store_id, date_key),
            store_id=store_id,
            date_key=date_key,
            product_stats={},
            product_stats_order=[],
        )
        # A concurrent creator surfaces as IntegrityError here; callers retry
        return self.add(summary)

    def increment(self, summary: DailySummary, **deltas) -> None:
        """Atomic column += delta for each counter, then reload the row."""
        values = {
            getattr(DailySummary, name): getattr(DailySummary, name) + delta
            for name, delta in deltas.items()
            if delta
        }
        if not values:
            return
        self.session.execute(
            update(DailySummary)
            .where(DailySummary.id == summary.id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(summary)


class ActivitiesRepository(_Repository):
    def append(self, entry: ActivityEntry) -> ActivityEntry:
        return self.add(entry)

    def feed(self, store_id: str, *, date_key: str | None = None, limit: int = 50) -> list[ActivityEntry]:
        query = self.session.query(ActivityEntry).filter(ActivityEntry.store_id == store_id)
        if date_key:
            query = query.filter(ActivityEntry.date_key == date_key)
        return query.order_by(ActivityEntry.at.desc(), ActivityEntry.id.desc()).limit(limit).all()

    def orphaned(self) -> list[ActivityEntry]:
        return self.session.query(ActivityEntry).filter(
            or_(ActivityEntry.store_id.is_(None), func.trim(ActivityEntry.store_id) == "")
        ).all()

    def missing_date_key(self) -> list[ActivityEntry]:
        return self.session.query(ActivityEntry).filter(
            or_(ActivityEntry.date_key.is_(None), func.trim(ActivityEntry.date_key) == "")
        ).all()

    def delete(self, entry: ActivityEntry) -> None:
        self.session.delete(entry)


class EventsRepository(_Repository):
    def get(self, event_id: str) -> OutboxEvent | None:
        return self.session.get(OutboxEvent, event_id)

    def pending(self, *, limit: int, store_id: str | None = None) -> list[OutboxEvent]:
        query = self.session.query(OutboxEvent).filter(OutboxEvent.status == EVENT_PENDING)
        if store_id:
            query = query.filter(OutboxEvent.store_id == store_id)
        return query.order_by(OutboxEvent.occurred_at.asc(), OutboxEvent.id.asc()).limit(limit).all()

    def pending_before(self, store_id: str, end: datetime) -> list[OutboxEvent]:
        """Every PENDING event of a store that occurred before `end`."""
        return self.session.query(OutboxEvent).filter(
            OutboxEvent.status == EVENT_PENDING,
            OutboxEvent.store_id == store_id,
            OutboxEvent.occurred_at < end,
        ).order_by(OutboxEvent.occurred_at.asc(), OutboxEvent.id.asc()).all()

    def is_processed(self, event_id: str) -> bool:
        return self.session.get(ProcessedEvent, event_id) is not None

    def mark_processed(self, event_id: str, at: datetime) -> ProcessedEvent:
        return self.add(ProcessedEvent(event_id=event_id, processed_at=at))

    def record_error(self, entry: ErrorLogEvent) -> ErrorLogEvent:
        return self.add(entry)


@dataclass
class Repositories:
    session: Session
    stores: StoresRepository
    products: ProductsRepository
    sales: SalesRepository
    receipts: ReceiptsRepository
    customers: CustomersRepository
    closeouts: CloseoutsRepository
    ledger: LedgerRepository
    summaries: SummariesRepository
    activities: ActivitiesRepository
    events: EventsRepository

    @classmethod
    def for_session(cls, session: Session) -> "Repositories":
        return cls(
            session=session,
            stores=StoresRepository(session),
            products=ProductsRepository(session),
            sales=SalesRepository(session),
            receipts=ReceiptsRepository(session),
            customers=CustomersRepository(session),
            closeouts=CloseoutsRepository(session),
            ledger=LedgerRepository(session),
            summaries=SummariesRepository(session),
            activities=ActivitiesRepository(session),
            events=EventsRepository(session),
        )


def default_repositories() -> Repositories:
    """Repositories bound to the Flask-SQLAlchemy scoped session."""
    return Repositories.for_session(db.session)
