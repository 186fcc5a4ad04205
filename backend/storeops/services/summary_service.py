# Overview: Domain event aggregator; folds created sales/receipts/customers into daily summaries.

"""
Daily Summary Aggregator

Each sale.created / receipt.created / customer.created event is applied to
the DailySummary "{store_id}_{date_key}", where date_key is the event's
local day in the store's timezone.

ONE TRANSACTION PER EVENT:
- ProcessedEvent check + insert (redelivery is a no-op)
- summary row created if absent, then locked
- scalar counters bumped with SQL increments
- top products leaderboard read-modify-write
- activity feed entry appended

Because the leaderboard shares the transaction and the row lock with the
counters, concurrent sales for the same store and day serialize instead of
overwriting each other's leaderboard. If anything fails the whole merge
rolls back and the event stays undelivered.
"""

from __future__ import annotations

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from ..models import DailySummary
from ..repositories import Repositories, default_repositories
from ..schemas import CustomerCreated, DomainEvent, ReceiptCreated, SaleCreated
from storeops.time_utils import Clock, current_clock, format_date_key
from . import activity_service
from .concurrency import begin_write, run_with_retry
from .leaderboard import DEFAULT_LIMIT, apply_sold_lines
from .store_service import store_timezone


def _leaderboard_limit() -> int:
    if has_app_context():
        return current_app.config.get("SUMMARY_TOP_PRODUCTS", DEFAULT_LIMIT)
    return DEFAULT_LIMIT


def split_payment(total: float, method: str | None, tenders: dict | None) -> tuple[float, float]:
    """
    (cash, card) portions of a sale.

    A tender map wins: its "cash" entry is cash and every other tender
    counts as card. Otherwise the single payment method takes the whole
    total: "cash" -> cash, anything else (card, mobile, ...) -> card.
    """
    if tenders:
        cash = float(tenders.get("cash") or 0)
        card = sum(float(amount or 0) for name, amount in tenders.items() if name != "cash")
        return cash, card
    if not method:
        return 0.0, 0.0
    if method == "cash":
        return total, 0.0
    return 0.0, total


def _touch(summary: DailySummary, event: DomainEvent, clock: Clock) -> None:
    if summary.last_activity_at is None or event.occurred_at > summary.last_activity_at:
        summary.last_activity_at = event.occurred_at
    summary.updated_at = clock.now()


def _apply_sale(repos: Repositories, summary: DailySummary, event: SaleCreated) -> None:
    cash, card = split_payment(event.total, event.payment_method, event.tenders)
    repos.summaries.increment(
        summary,
        sales_count=1,
        sales_total=event.total,
        cash_total=cash,
        card_total=card,
    )
    stats, order = apply_sold_lines(
        summary.product_stats,
        summary.product_stats_order,
        event.lines,
        limit=_leaderboard_limit(),
    )
    summary.product_stats = stats
    summary.product_stats_order = order

    activity_service.record_activity(
        repos,
        store_id=event.store_id,
        date_key=summary.date_key,
        activity_type=activity_service.ACTIVITY_SALE,
        refs={"saleId": event.sale_id},
        summary=activity_service.sale_summary(event.total, sum(line.units for line in event.lines)),
        at=event.occurred_at,
    )


def _apply_receipt(repos: Repositories, summary: DailySummary, event: ReceiptCreated) -> None:
    repos.summaries.increment(
        summary,
        receipts_count=1,
        units_received=event.qty,
        receipt_cost_total=event.total_cost or 0,
    )
    activity_service.record_activity(
        repos,
        store_id=event.store_id,
        date_key=summary.date_key,
        activity_type=activity_service.ACTIVITY_RECEIPT,
        refs={"receiptId": event.receipt_id, "productId": event.product_id},
        summary=activity_service.receipt_summary(event.qty, event.product_name or event.product_id),
        at=event.occurred_at,
    )


def _apply_customer(repos: Repositories, summary: DailySummary, event: CustomerCreated) -> None:
    repos.summaries.increment(summary, new_customers_count=1)
    activity_service.record_activity(
        repos,
        store_id=event.store_id,
        date_key=summary.date_key,
        activity_type=activity_service.ACTIVITY_CUSTOMER,
        refs={"customerId": event.customer_id},
        summary=activity_service.customer_summary(event.name),
        at=event.occurred_at,
    )


def apply_event(event: DomainEvent, *, repos: Repositories, clock: Clock) -> bool:
    """
    Merge one event into its daily summary inside the caller's transaction.

    Returns False when the event was already applied. Does not commit.
    """
    if repos.events.is_processed(event.event_id):
        return False

    date_key = format_date_key(event.occurred_at, store_timezone(repos, event.store_id))
    summary = repos.summaries.get_or_create_for_update(event.store_id, date_key)

    if isinstance(event, SaleCreated):
        _apply_sale(repos, summary, event)
    elif isinstance(event, ReceiptCreated):
        _apply_receipt(repos, summary, event)
    elif isinstance(event, CustomerCreated):
        _apply_customer(repos, summary, event)
    else:
        raise TypeError(f"Unsupported event {type(event).__name__}")

    _touch(summary, event, clock)
    repos.events.mark_processed(event.event_id, clock.now())
    return True


def handle_event(
    event: DomainEvent,
    *,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> bool:
    """Apply one event in its own transaction (retried on conflicts)."""
    repos = repos or default_repositories()
    clock = clock or current_clock()
    session = repos.session

    def _op():
        begin_write(session)
        applied = apply_event(event, repos=repos, clock=clock)
        session.commit()
        return applied

    # IntegrityError: a concurrent merge created the same summary row first
    return run_with_retry(_op, session=session, retry_on=(IntegrityError,))


def get_summary(store_id: str, date_key: str, *, repos: Repositories | None = None) -> DailySummary | None:
    repos = repos or default_repositories()
    return repos.summaries.get(store_id, date_key)
