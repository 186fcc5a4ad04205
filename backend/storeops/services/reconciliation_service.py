# Overview: Nightly reconciliation; recomputes yesterday's summaries and repairs the activity feed.

"""
Nightly Reconciliation Job

WHY: The aggregator is incremental and at-least-once. A partial failure,
a replayed event without its ProcessedEvent row, or a manual data fix can
leave a summary's counters drifting from the source records. Once a day
this job recomputes every counter for each store's previous local day
from sales, receipts, customers and closeouts and OVERWRITES them.

CONVERGENCE:
- Counters are a pure function of the source rows in [start, end).
- When the recomputed counters equal the stored ones nothing is written,
  so running the job twice over unchanged data leaves the row untouched.

NOT RECOMPUTED: product_stats / product_stats_order. The leaderboard is a
real-time view maintained by the aggregator and is carried over as-is.

FAILURE ISOLATION: each store runs in its own transaction; a failure is
rolled back, logged, and the sweep moves on to the next store.

PENDING EVENTS: before a store-day is recomputed, the store's PENDING
events up to the end of the window are delivered to the aggregator (leaderboard
and activity feed included). Any that still fail are retired inside the
recompute transaction, so a late delivery cannot add them a second time
to a day that was already rebuilt from source rows.

HYGIENE: after the summaries, activity entries without a store are
deleted and entries without a date_key get one derived from `at` in the
store's timezone.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..models import DailySummary, Store
from ..models.summaries import COUNTER_FIELDS, summary_id
from ..money import round_money
from ..repositories import Repositories, default_repositories
from storeops.time_utils import Clock, DayWindow, current_clock, format_date_key, previous_day_window
from .concurrency import begin_write, run_with_retry
from .event_service import deliver_events, retire_event
from .store_service import store_timezone
from .summary_service import split_payment


def _latest(*candidates: datetime | None) -> datetime | None:
    present = [value for value in candidates if value is not None]
    return max(present) if present else None


def recompute_counters(repos: Repositories, store_id: str, window: DayWindow) -> tuple[dict, datetime | None]:
    """Counters and last_activity_at for one store-day, straight from source rows."""
    sales = repos.sales.in_window(store_id, window.start, window.end)
    receipts = repos.receipts.in_window(store_id, window.start, window.end)
    customers = repos.customers.in_window(store_id, window.start, window.end)
    closeouts = repos.closeouts.in_window(store_id, window.start, window.end)

    sales_total = cash_total = card_total = 0.0
    for sale in sales:
        sales_total += sale.total or 0
        cash, card = split_payment(sale.total or 0.0, (sale.payment or {}).get("method"), sale.tenders)
        cash_total += cash
        card_total += card

    counted = sum(closeout.counted_cash or 0 for closeout in closeouts)
    expected = sum(closeout.expected_cash or 0 for closeout in closeouts)

    counters = {
        "sales_count": len(sales),
        "sales_total": round_money(sales_total),
        "cash_total": round_money(cash_total),
        "card_total": round_money(card_total),
        "receipts_count": len(receipts),
        "units_received": sum(receipt.qty or 0 for receipt in receipts),
        "receipt_cost_total": round_money(sum(receipt.total_cost or 0 for receipt in receipts)),
        "new_customers_count": len(customers),
        "closeouts_count": len(closeouts),
        "closeout_counted_total": round_money(counted),
        "closeout_expected_total": round_money(expected),
        "closeout_variance_total": round_money(counted - expected),
    }
    last_activity_at = _latest(
        max((sale.created_at for sale in sales), default=None),
        max((receipt.created_at for receipt in receipts), default=None),
        max((customer.created_at for customer in customers), default=None),
        max((closeout.closed_at for closeout in closeouts), default=None),
    )
    return counters, last_activity_at


def _counters_match(summary: DailySummary, counters: dict, last_activity_at: datetime | None) -> bool:
    for field in COUNTER_FIELDS:
        stored = getattr(summary, field) or 0
        if isinstance(counters[field], float):
            if round_money(stored) != counters[field]:
                return False
        elif stored != counters[field]:
            return False
    return summary.last_activity_at == last_activity_at


def reconcile_store_day(
    store: Store,
    *,
    repos: Repositories,
    clock: Clock,
    window: DayWindow | None = None,
) -> bool:
    """
    Overwrite one store's summary for `window` (default: previous local day).

    Returns True when the summary row was written.
    """
    session = repos.session

    def _op():
        begin_write(session)
        day = window or previous_day_window(store_timezone(repos, store.id), clock.now())
        for outbox in repos.events.pending_before(store.id, day.end):
            current_app.logger.warning(
                "Retiring undelivered event %s for store %s (%s)", outbox.id, store.id, outbox.last_error
            )
            retire_event(outbox, repos=repos, clock=clock)
        counters, last_activity_at = recompute_counters(repos, store.id, day)

        summary = repos.summaries.get_for_update(store.id, day.date_key)
        if summary is not None and _counters_match(summary, counters, last_activity_at):
            session.commit()
            return False

        if summary is None:
            # Nothing happened and nothing was recorded: keep it that way
            if last_activity_at is None:
                session.commit()
                return False
            summary = repos.summaries.add(DailySummary(
                id=summary_id(store.id, day.date_key),
                store_id=store.id,
                date_key=day.date_key,
                product_stats={},
                product_stats_order=[],
            ))

        for field, value in counters.items():
            setattr(summary, field, value)
        summary.last_activity_at = last_activity_at
        summary.updated_at = clock.now()
        session.commit()
        return True

    return run_with_retry(_op, session=session)


def settle_pending_events(store: Store, window: DayWindow, *, repos: Repositories, clock: Clock) -> dict:
    """Deliver the store's PENDING events that occurred before the end of `window`."""
    event_ids = [event.id for event in repos.events.pending_before(store.id, window.end)]
    repos.session.commit()
    return deliver_events(event_ids, repos=repos, clock=clock)


def repair_activities(*, repos: Repositories) -> dict:
    """
    Activity feed hygiene.

    - store_id missing/blank: deleted (cannot be shown to any tenant)
    - date_key missing/blank: backfilled from `at` in the store's timezone
    """
    session = repos.session
    deleted = backfilled = 0

    for entry in repos.activities.orphaned():
        repos.activities.delete(entry)
        deleted += 1
    session.flush()

    for entry in repos.activities.missing_date_key():
        entry.date_key = format_date_key(entry.at, store_timezone(repos, entry.store_id))
        backfilled += 1

    session.commit()
    return {"activities_deleted": deleted, "activities_backfilled": backfilled}


def run_nightly_reconciliation(
    *,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> dict:
    """
    Scheduled entry point. Idempotent and safe to re-run.

    Returns a report: stores, failed_stores, summaries_written,
    events_delivered, activities_deleted, activities_backfilled.
    """
    repos = repos or default_repositories()
    clock = clock or current_clock()

    stores = repos.stores.list_all()
    report = {
        "stores": len(stores),
        "failed_stores": [],
        "summaries_written": 0,
        "events_delivered": 0,
        "activities_deleted": 0,
        "activities_backfilled": 0,
    }

    for store in stores:
        store_id = store.id
        try:
            day = previous_day_window(store_timezone(repos, store_id), clock.now())
            report["events_delivered"] += settle_pending_events(store, day, repos=repos, clock=clock)["delivered"]
            if reconcile_store_day(store, repos=repos, clock=clock, window=day):
                report["summaries_written"] += 1
        except Exception:
            repos.session.rollback()
            report["failed_stores"].append(store_id)
            current_app.logger.exception("Nightly reconciliation failed for store %s", store_id)

    try:
        report.update(repair_activities(repos=repos))
    except Exception:
        repos.session.rollback()
        current_app.logger.exception("Activity repair failed")
        raise

    current_app.logger.info(
        "Nightly reconciliation: stores=%s written=%s delivered=%s failed=%s deleted=%s backfilled=%s",
        report["stores"],
        report["summaries_written"],
        report["events_delivered"],
        len(report["failed_stores"]),
        report["activities_deleted"],
        report["activities_backfilled"],
    )
    return report
