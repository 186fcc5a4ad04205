# Overview: Typed request commands and domain events, validated before any write.

"""
Request and event DTOs.

Commands are parsed from untyped JSON at the transaction boundary: a
command object only exists if every field passed validation, so handlers
never see a half-valid payload and nothing is written for a rejected one.

Domain events are tagged variants (`kind`) built from committed rows and
handed to the aggregator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .errors import InvalidArgument
from .money import round_money


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------

def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text if text else None


def _require_text(payload: dict, key: str, label: str | None = None) -> str:
    raw = payload.get(key)
    if raw is not None and not isinstance(raw, str):
        raise InvalidArgument(f"{label or key} must be a string")
    text = _to_text(raw)
    if not text:
        raise InvalidArgument(f"{label or key} is required")
    return text


def _optional_text(payload: dict, key: str) -> str | None:
    raw = payload.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise InvalidArgument(f"{key} must be a string when provided")
    return _to_text(raw)


def _to_number(value: Any, label: str, *, required: bool = False) -> float | None:
    if value is None or value == "":
        if required:
            raise InvalidArgument(f"{label} is required")
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgument(f"{label} must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidArgument(f"{label} must be a finite number")
    return float(value)


def _to_whole(value: Any, label: str) -> int:
    number = _to_number(value, label, required=True)
    if not float(number).is_integer():
        raise InvalidArgument(f"{label} must be a whole number")
    return int(number)


def _as_dict(value: Any, label: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidArgument(f"{label} must be an object")
    return value


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SaleItemInput:
    product_id: str
    qty: int
    price: float
    tax_rate: float | None = None
    name: str | None = None
    total: float | None = None

    @property
    def units(self) -> int:
        return abs(self.qty)

    @property
    def line_total(self) -> float:
        if self.total is not None:
            return round_money(self.total)
        return round_money(self.units * self.price)


@dataclass(frozen=True)
class PaymentInput:
    method: str | None = None
    amount_paid: float | None = None
    change_due: float | None = None
    tenders: dict[str, float] | None = None

    def to_json(self) -> dict:
        return {
            "method": self.method,
            "amount_paid": self.amount_paid,
            "change_due": self.change_due,
        }


@dataclass(frozen=True)
class CommitSaleCommand:
    sale_id: str
    store_id: str
    branch_id: str | None
    items: tuple[SaleItemInput, ...]
    total: float
    tax_total: float
    payment: PaymentInput
    customer: dict | None = None
    cashier_id: str | None = None


@dataclass(frozen=True)
class ReceiveStockCommand:
    product_id: str
    qty: int
    supplier: str
    reference: str
    unit_cost: float | None = None
    store_id: str | None = None

    @property
    def total_cost(self) -> float | None:
        if self.unit_cost is None:
            return None
        return round_money(self.unit_cost * self.qty)


@dataclass(frozen=True)
class CreateCustomerCommand:
    store_id: str
    name: str
    phone: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class RecordCloseoutCommand:
    store_id: str
    counted_cash: float
    expected_cash: float
    notes: str | None = None
    closed_by: str | None = None


def _parse_sale_item(raw: Any, index: int) -> SaleItemInput:
    label = f"items[{index}]"
    if not isinstance(raw, dict):
        raise InvalidArgument(f"{label} must be an object")
    product_id = _to_text(raw.get("productId"))
    if not product_id:
        raise InvalidArgument(f"{label}.productId is required")
    return SaleItemInput(
        product_id=product_id,
        qty=_to_whole(raw.get("qty"), f"{label}.qty"),
        price=_to_number(raw.get("price"), f"{label}.price") or 0.0,
        tax_rate=_to_number(raw.get("taxRate"), f"{label}.taxRate"),
        name=_to_text(raw.get("name")),
        total=_to_number(raw.get("total"), f"{label}.total"),
    )


def _parse_tenders(raw: Any) -> dict[str, float] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise InvalidArgument("tenders must be an object")
    tenders: dict[str, float] = {}
    for method, amount in raw.items():
        value = _to_number(amount, f"tenders.{method}")
        if value is not None:
            tenders[str(method).strip().lower()] = round_money(value)
    return tenders or None


def _parse_payment(payload: dict) -> PaymentInput:
    raw = _as_dict(payload.get("payment"), "payment")
    method = raw.get("method")
    if method is not None and not isinstance(method, str):
        raise InvalidArgument("payment.method must be a string")
    tenders = payload.get("tenders")
    if tenders is None:
        tenders = raw.get("tenders")
    return PaymentInput(
        method=_to_text(method).lower() if _to_text(method) else None,
        amount_paid=_to_number(raw.get("amountPaid"), "payment.amountPaid"),
        change_due=_to_number(raw.get("changeDue"), "payment.changeDue"),
        tenders=_parse_tenders(tenders),
    )


def parse_commit_sale(payload: Any) -> CommitSaleCommand:
    """
    Validate a commitSale request.

    storeId falls back to branchId, matching clients that only send the
    branch. Totals default to the sum of line totals.
    """
    if not isinstance(payload, dict):
        raise InvalidArgument("Request body must be an object")

    sale_id = _require_text(payload, "saleId")
    branch_id = _optional_text(payload, "branchId")
    store_id = _optional_text(payload, "storeId") or branch_id
    if not store_id:
        raise InvalidArgument("storeId is required")

    raw_items = payload.get("items")
    if raw_items is None:
        raw_items = []
    if not isinstance(raw_items, list):
        raise InvalidArgument("items must be a list")
    items = tuple(_parse_sale_item(raw, i) for i, raw in enumerate(raw_items))

    totals = _as_dict(payload.get("totals"), "totals")
    total = _to_number(totals.get("total"), "totals.total")
    if total is None:
        total = sum(item.line_total for item in items)

    customer = payload.get("customer")
    if customer is not None and not isinstance(customer, dict):
        raise InvalidArgument("customer must be an object")

    return CommitSaleCommand(
        sale_id=sale_id,
        store_id=store_id,
        branch_id=branch_id,
        items=items,
        total=round_money(total),
        tax_total=round_money(_to_number(totals.get("taxTotal"), "totals.taxTotal")),
        payment=_parse_payment(payload),
        customer=customer,
        cashier_id=_optional_text(payload, "cashierId"),
    )


def parse_receive_stock(payload: Any) -> ReceiveStockCommand:
    if not isinstance(payload, dict):
        raise InvalidArgument("Request body must be an object")

    product_id = _require_text(payload, "productId")
    qty = _to_whole(payload.get("qty"), "qty")
    if qty <= 0:
        raise InvalidArgument("qty must be greater than zero")
    supplier = _require_text(payload, "supplier")
    reference = _require_text(payload, "reference")

    unit_cost = _to_number(payload.get("unitCost"), "unitCost")
    if unit_cost is not None and unit_cost < 0:
        raise InvalidArgument("unitCost cannot be negative")

    return ReceiveStockCommand(
        product_id=product_id,
        qty=qty,
        supplier=supplier,
        reference=reference,
        unit_cost=unit_cost,
        store_id=_optional_text(payload, "storeId"),
    )


def parse_create_customer(payload: Any) -> CreateCustomerCommand:
    if not isinstance(payload, dict):
        raise InvalidArgument("Request body must be an object")
    email = _optional_text(payload, "email")
    return CreateCustomerCommand(
        store_id=_require_text(payload, "storeId"),
        name=_require_text(payload, "name"),
        phone=_optional_text(payload, "phone"),
        email=email.lower() if email else None,
    )


def parse_record_closeout(payload: Any) -> RecordCloseoutCommand:
    if not isinstance(payload, dict):
        raise InvalidArgument("Request body must be an object")
    return RecordCloseoutCommand(
        store_id=_require_text(payload, "storeId"),
        counted_cash=round_money(_to_number(payload.get("countedCash"), "countedCash", required=True)),
        expected_cash=round_money(_to_number(payload.get("expectedCash"), "expectedCash", required=True)),
        notes=_optional_text(payload, "notes"),
        closed_by=_optional_text(payload, "closedBy"),
    )


# ---------------------------------------------------------------------------
# Domain events
# ---------------------------------------------------------------------------

KIND_SALE = "sale.created"
KIND_RECEIPT = "receipt.created"
KIND_CUSTOMER = "customer.created"

EVENT_KINDS = (KIND_SALE, KIND_RECEIPT, KIND_CUSTOMER)


def event_id_for(kind: str, aggregate_id: str) -> str:
    return f"{kind}:{aggregate_id}"


@dataclass(frozen=True)
class SoldLine:
    product_id: str
    name: str | None
    units: int
    revenue: float


@dataclass(frozen=True)
class SaleCreated:
    event_id: str
    store_id: str
    occurred_at: datetime
    sale_id: str
    total: float
    payment_method: str | None = None
    tenders: dict[str, float] | None = None
    lines: tuple[SoldLine, ...] = field(default_factory=tuple)
    kind: str = KIND_SALE


@dataclass(frozen=True)
class ReceiptCreated:
    event_id: str
    store_id: str
    occurred_at: datetime
    receipt_id: str
    product_id: str
    qty: int
    total_cost: float | None = None
    product_name: str | None = None
    kind: str = KIND_RECEIPT


@dataclass(frozen=True)
class CustomerCreated:
    event_id: str
    store_id: str
    occurred_at: datetime
    customer_id: str
    name: str | None = None
    kind: str = KIND_CUSTOMER


DomainEvent = SaleCreated | ReceiptCreated | CustomerCreated
