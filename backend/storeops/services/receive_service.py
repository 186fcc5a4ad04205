# Overview: Service-layer operations for stock receipts; encapsulates business logic.

"""
Receipt Commit Handler

WHY: Stock intake is the mirror image of a sale: one transaction bumps
stock_count, writes the Receipt and its +qty ledger entry, and publishes
receipt.created for the daily summary.

DESIGN:
- supplier and reference are REQUIRED (packing slip / PO number)
- unit_cost is optional; total_cost = round(unit_cost * qty, 2) when given
- store_id defaults to the product's store; when the caller sends one it
  must match
"""

from __future__ import annotations

import uuid

from ..errors import Aborted, FailedPrecondition
from ..models import LedgerEntry, Receipt
from ..repositories import Repositories, default_repositories
from ..schemas import KIND_RECEIPT, ReceiveStockCommand
from storeops.time_utils import Clock, current_clock
from .concurrency import RETRYABLE_ERRORS, begin_write, run_with_retry
from .event_service import publish_event


def _receive_stock_locked(command: ReceiveStockCommand, repos: Repositories, clock: Clock) -> dict:
    product = repos.products.get_for_update(command.product_id)
    if product is None:
        raise FailedPrecondition("Bad product", details={"productId": command.product_id})
    if command.store_id and product.store_id != command.store_id:
        raise FailedPrecondition(
            "Product belongs to a different store",
            details={"productId": command.product_id, "storeId": command.store_id},
        )

    now = clock.now()
    receipt_id = uuid.uuid4().hex

    product.stock_count = (product.stock_count or 0) + command.qty
    product.updated_at = now

    repos.receipts.add(Receipt(
        id=receipt_id,
        store_id=product.store_id,
        product_id=product.id,
        qty=command.qty,
        supplier=command.supplier,
        reference=command.reference,
        unit_cost=command.unit_cost,
        total_cost=command.total_cost,
        created_at=now,
    ))

    repos.ledger.append(LedgerEntry(
        id=uuid.uuid4().hex,
        store_id=product.store_id,
        product_id=product.id,
        qty_change=command.qty,
        type="receipt",
        ref_id=receipt_id,
        created_at=now,
    ))

    publish_event(
        repos,
        kind=KIND_RECEIPT,
        store_id=product.store_id,
        aggregate_id=receipt_id,
        occurred_at=now,
    )
    return {"ok": True, "receiptId": receipt_id, "storeId": product.store_id}


def receive_stock(
    command: ReceiveStockCommand,
    *,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> dict:
    """Record a stock receipt. Returns {"ok": True, "receiptId": ..., "storeId": ...}."""
    repos = repos or default_repositories()
    clock = clock or current_clock()
    session = repos.session

    def _op():
        begin_write(session)
        result = _receive_stock_locked(command, repos, clock)
        session.commit()
        return result

    try:
        return run_with_retry(_op, session=session)
    except RETRYABLE_ERRORS as exc:
        raise Aborted(
            "Receipt conflicted with concurrent writes; retry the request",
            details={"productId": command.product_id},
        ) from exc
