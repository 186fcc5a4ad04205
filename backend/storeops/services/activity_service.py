# Overview: Activity feed recorder; one human-readable entry per domain event.

from __future__ import annotations

import uuid
from datetime import datetime

from flask import current_app, has_app_context

from ..models import ActivityEntry
from ..money import DEFAULT_CURRENCY_SYMBOL, format_currency
from ..repositories import Repositories


ACTIVITY_SALE = "sale"
ACTIVITY_RECEIPT = "receipt"
ACTIVITY_CUSTOMER = "customer"


def _currency_symbol() -> str:
    if has_app_context():
        return current_app.config.get("CURRENCY_SYMBOL", DEFAULT_CURRENCY_SYMBOL)
    return DEFAULT_CURRENCY_SYMBOL


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def sale_summary(total: float, units: int) -> str:
    return f"Recorded sale of {format_currency(total, _currency_symbol())} ({_plural(units, 'item')})"


def receipt_summary(qty: int, product_label: str) -> str:
    return f"Received {_plural(qty, 'unit')} of {product_label}"


def customer_summary(name: str | None) -> str:
    if name:
        return f"Added new customer {name}"
    return "Added new customer"


def record_activity(
    repos: Repositories,
    *,
    store_id: str,
    date_key: str,
    activity_type: str,
    refs: dict,
    summary: str,
    at: datetime,
) -> ActivityEntry:
    """Append one feed entry. No aggregation happens here."""
    return repos.activities.append(ActivityEntry(
        id=uuid.uuid4().hex,
        store_id=store_id,
        date_key=date_key,
        type=activity_type,
        refs=refs,
        summary=summary,
        at=at,
    ))


def activity_feed(
    repos: Repositories,
    store_id: str,
    *,
    date_key: str | None = None,
    limit: int | None = None,
) -> list[ActivityEntry]:
    if limit is None:
        limit = current_app.config.get("ACTIVITY_FEED_LIMIT", 50) if has_app_context() else 50
    return repos.activities.feed(store_id, date_key=date_key, limit=limit)
