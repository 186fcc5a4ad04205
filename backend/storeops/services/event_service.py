# Overview: Event outbox; publishes creation events and delivers them to the aggregator.

"""
Event Outbox

Commit handlers call publish_event() inside their own transaction, so a
creation event exists exactly when its record does. dispatch_pending_events()
is the trigger platform: it hands every PENDING event to the aggregator,
one transaction per event.

DELIVERY: at least once.
- success: aggregator merge + DELIVERED mark commit together
- failure: merge rolls back, attempts/last_error are recorded, the event
  stays PENDING and the next dispatch redelivers it
- duplicates: the aggregator's ProcessedEvent check turns a repeat into a
  no-op
- retired: the nightly job closes events it could not deliver for a day
  it has already rebuilt from source rows
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from ..errors import FailedPrecondition
from ..models import OutboxEvent
from ..models.events import EVENT_DELIVERED, EVENT_PENDING, EVENT_RETIRED
from ..repositories import Repositories, default_repositories
from ..schemas import (
    KIND_CUSTOMER,
    KIND_RECEIPT,
    KIND_SALE,
    CustomerCreated,
    DomainEvent,
    ReceiptCreated,
    SaleCreated,
    SoldLine,
    event_id_for,
)
from storeops.time_utils import Clock, current_clock
from .concurrency import begin_write, run_with_retry
from .summary_service import apply_event

MAX_ERROR_LENGTH = 1000


def publish_event(
    repos: Repositories,
    *,
    kind: str,
    store_id: str,
    aggregate_id: str,
    occurred_at: datetime,
) -> OutboxEvent:
    """Add a PENDING outbox row in the caller's transaction."""
    return repos.events.add(OutboxEvent(
        id=event_id_for(kind, aggregate_id),
        kind=kind,
        store_id=store_id,
        aggregate_id=aggregate_id,
        occurred_at=occurred_at,
        status=EVENT_PENDING,
        attempts=0,
    ))


def load_event(repos: Repositories, outbox: OutboxEvent) -> DomainEvent:
    """Build the typed event from the committed source record."""
    if outbox.kind == KIND_SALE:
        sale = repos.sales.get(outbox.aggregate_id)
        if sale is None:
            raise FailedPrecondition("Sale for event not found", details={"eventId": outbox.id})
        lines = tuple(
            SoldLine(
                product_id=item.product_id,
                name=item.name,
                units=abs(item.qty),
                revenue=item.line_total,
            )
            for item in repos.sales.items_for(sale.id)
        )
        return SaleCreated(
            event_id=outbox.id,
            store_id=sale.store_id,
            occurred_at=sale.created_at,
            sale_id=sale.id,
            total=sale.total or 0.0,
            payment_method=(sale.payment or {}).get("method"),
            tenders=sale.tenders or None,
            lines=lines,
        )

    if outbox.kind == KIND_RECEIPT:
        receipt = repos.receipts.get(outbox.aggregate_id)
        if receipt is None:
            raise FailedPrecondition("Receipt for event not found", details={"eventId": outbox.id})
        product = repos.products.get(receipt.product_id)
        return ReceiptCreated(
            event_id=outbox.id,
            store_id=receipt.store_id,
            occurred_at=receipt.created_at,
            receipt_id=receipt.id,
            product_id=receipt.product_id,
            qty=receipt.qty,
            total_cost=receipt.total_cost,
            product_name=product.name if product else None,
        )

    if outbox.kind == KIND_CUSTOMER:
        customer = repos.customers.get(outbox.aggregate_id)
        if customer is None:
            raise FailedPrecondition("Customer for event not found", details={"eventId": outbox.id})
        return CustomerCreated(
            event_id=outbox.id,
            store_id=customer.store_id,
            occurred_at=customer.created_at,
            customer_id=customer.id,
            name=customer.name,
        )

    raise FailedPrecondition(f"Unknown event kind {outbox.kind}", details={"eventId": outbox.id})


def deliver_event(event_id: str, *, repos: Repositories, clock: Clock) -> bool:
    """Apply one outbox event and mark it delivered, atomically."""
    session = repos.session

    def _op():
        begin_write(session)
        outbox = repos.events.get(event_id)
        if outbox is None or outbox.status != EVENT_PENDING:
            session.commit()
            return False
        apply_event(load_event(repos, outbox), repos=repos, clock=clock)
        outbox.status = EVENT_DELIVERED
        outbox.attempts = (outbox.attempts or 0) + 1
        outbox.delivered_at = clock.now()
        outbox.last_error = None
        session.commit()
        return True

    return run_with_retry(_op, session=session, retry_on=(IntegrityError,))


def _record_failure(repos: Repositories, event_id: str, exc: Exception) -> None:
    session = repos.session
    try:
        outbox = repos.events.get(event_id)
        if outbox is not None:
            outbox.attempts = (outbox.attempts or 0) + 1
            outbox.last_error = f"{type(exc).__name__}: {exc}"[:MAX_ERROR_LENGTH]
            session.commit()
    except Exception:
        session.rollback()
        current_app.logger.exception("Failed to record delivery failure for %s", event_id)


def dispatch_pending_events(
    *,
    limit: int | None = None,
    store_id: str | None = None,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> dict:
    """
    Deliver PENDING events oldest first.

    Failures are isolated per event and left PENDING for the next run.
    Returns {"delivered": n, "failed": n}.
    """
    repos = repos or default_repositories()
    clock = clock or current_clock()
    if limit is None:
        limit = current_app.config.get("EVENTS_DISPATCH_BATCH_SIZE", 100) if has_app_context() else 100

    event_ids = [event.id for event in repos.events.pending(limit=limit, store_id=store_id)]
    repos.session.commit()

    result = deliver_events(event_ids, repos=repos, clock=clock)
    if event_ids:
        current_app.logger.info(
            "Dispatched outbox events: delivered=%s failed=%s", result["delivered"], result["failed"]
        )
    return result


def deliver_events(event_ids: list[str], *, repos: Repositories, clock: Clock) -> dict:
    """Deliver the given events one transaction each; failures stay PENDING."""
    delivered = failed = 0
    for event_id in event_ids:
        try:
            if deliver_event(event_id, repos=repos, clock=clock):
                delivered += 1
        except Exception as exc:
            failed += 1
            current_app.logger.exception("Event delivery failed for %s", event_id)
            _record_failure(repos, event_id, exc)
    return {"delivered": delivered, "failed": failed}


def retire_event(outbox: OutboxEvent, *, repos: Repositories, clock: Clock) -> None:
    """
    Close a PENDING event without merging it, in the caller's transaction.

    The ProcessedEvent row makes any later delivery of the same id a no-op,
    so a day whose counters were rebuilt from source rows is not counted
    twice.
    """
    if not repos.events.is_processed(outbox.id):
        repos.events.mark_processed(outbox.id, clock.now())
    outbox.status = EVENT_RETIRED
    outbox.delivered_at = clock.now()


def dispatch_after_commit(store_id: str | None) -> None:
    """
    Inline delivery for a just-committed record when EVENTS_DISPATCH_INLINE
    is on. The commit already succeeded, so a delivery failure is only
    logged; the event stays PENDING for `flask events dispatch`.
    """
    if not current_app.config.get("EVENTS_DISPATCH_INLINE", True):
        return
    try:
        dispatch_pending_events(store_id=store_id)
    except Exception:
        current_app.logger.exception("Inline event dispatch failed for store %s", store_id)
