"""
Sale Commit Handler

WHY: A sale, its line items, the stock decrements and the ledger entries
must land together or not at all. Offline clients replay commits, so the
client-supplied sale id is the idempotency key.

PROTOCOL (one transaction, retried on lock/optimistic conflicts):
1. Existing sale with this id -> AlreadyExists; unknown store ->
   FailedPrecondition.
2. Per item: lock product (missing or other store -> FailedPrecondition),
   stock_count -= abs(qty), write SaleItem, write LedgerEntry(-abs(qty)).
3. Write the Sale and its sale.created outbox event.

KNOWN GAP: stock_count is not floored at zero; overselling is recorded
as negative stock and shows up in the ledger.
"""

from __future__ import annotations

import uuid

from sqlalchemy.exc import IntegrityError

from ..errors import AlreadyExists, Aborted, FailedPrecondition
from ..models import LedgerEntry, Sale, SaleItem
from ..repositories import Repositories, default_repositories
from ..schemas import KIND_SALE, CommitSaleCommand
from storeops.time_utils import Clock, current_clock
from .concurrency import RETRYABLE_ERRORS, begin_write, run_with_retry
from .event_service import publish_event
from .store_service import require_store


def _new_id() -> str:
    return uuid.uuid4().hex


def _commit_sale_locked(command: CommitSaleCommand, repos: Repositories, clock: Clock) -> dict:
    if repos.sales.get(command.sale_id) is not None:
        raise AlreadyExists(
            f"Sale {command.sale_id} was already committed",
            details={"saleId": command.sale_id},
        )
    require_store(repos, command.store_id)

    now = clock.now()

    sale = Sale(
        id=command.sale_id,
        store_id=command.store_id,
        branch_id=command.branch_id,
        cashier_id=command.cashier_id,
        total=command.total,
        tax_total=command.tax_total,
        payment=command.payment.to_json(),
        tenders=command.payment.tenders,
        customer=command.customer,
        created_at=now,
    )
    repos.sales.add(sale)

    for position, item in enumerate(command.items):
        product = repos.products.get_for_update(item.product_id)
        if product is None or product.store_id != command.store_id:
            raise FailedPrecondition(
                "Bad product",
                details={"productId": item.product_id, "storeId": command.store_id},
            )

        product.stock_count = (product.stock_count or 0) - item.units
        product.updated_at = now

        repos.session.add(SaleItem(
            id=_new_id(),
            sale_id=command.sale_id,
            store_id=command.store_id,
            product_id=item.product_id,
            position=position,
            name=item.name or product.name,
            qty=item.qty,
            price=item.price,
            tax_rate=item.tax_rate,
            line_total=item.line_total,
        ))

        repos.ledger.append(LedgerEntry(
            id=_new_id(),
            store_id=command.store_id,
            branch_id=command.branch_id,
            product_id=item.product_id,
            qty_change=-item.units,
            type="sale",
            ref_id=command.sale_id,
            created_at=now,
        ))

    publish_event(
        repos,
        kind=KIND_SALE,
        store_id=command.store_id,
        aggregate_id=command.sale_id,
        occurred_at=now,
    )
    return {"ok": True, "saleId": command.sale_id}


def commit_sale(
    command: CommitSaleCommand,
    *,
    repos: Repositories | None = None,
    clock: Clock | None = None,
) -> dict:
    """Atomically record a sale. Returns {"ok": True, "saleId": ...}."""
    repos = repos or default_repositories()
    clock = clock or current_clock()
    session = repos.session

    def _op():
        begin_write(session)
        result = _commit_sale_locked(command, repos, clock)
        session.commit()
        return result

    try:
        return run_with_retry(_op, session=session)
    except IntegrityError as exc:
        # Two commits of the same id raced past the existence check
        if repos.sales.get(command.sale_id) is not None:
            raise AlreadyExists(
                f"Sale {command.sale_id} was already committed",
                details={"saleId": command.sale_id},
            ) from exc
        raise
    except RETRYABLE_ERRORS as exc:
        raise Aborted(
            "Sale commit conflicted with concurrent writes; retry the request",
            details={"saleId": command.sale_id},
        ) from exc
