# Overview: Pytest coverage for stock receipts, customers and closeouts.

import pytest

from conftest import make_product, sale_payload
from storeops.errors import FailedPrecondition, InvalidArgument
from storeops.models import Closeout, Customer, OutboxEvent, Receipt
from storeops.schemas import (
    parse_commit_sale,
    parse_create_customer,
    parse_receive_stock,
    parse_record_closeout,
)
from storeops.services.customer_service import create_customer, record_closeout
from storeops.services.receive_service import receive_stock
from storeops.services.sales_service import commit_sale


def receipt_payload(product_id, qty, **extra):
    body = {"productId": product_id, "qty": qty, "supplier": "Kumasi Mills", "reference": "INV-204"}
    body.update(extra)
    return body


class TestReceiveStock:
    def test_receipt_increments_stock_and_ledger(self, db_session, repos, accra):
        make_product("rice", accra.id, stock=3)

        result = receive_stock(parse_receive_stock(receipt_payload("rice", 12, unitCost=2.5)))

        assert result["ok"] is True
        receipt = db_session.get(Receipt, result["receiptId"])
        assert receipt.store_id == accra.id
        assert receipt.qty == 12
        assert receipt.total_cost == 30.0

        assert repos.products.get("rice").stock_count == 15
        ledger = repos.ledger.for_ref("receipt", receipt.id)
        assert [(e.product_id, e.qty_change) for e in ledger] == [("rice", 12)]
        assert db_session.get(OutboxEvent, f"receipt.created:{receipt.id}") is not None

    def test_total_cost_is_rounded(self):
        command = parse_receive_stock(receipt_payload("rice", 3, unitCost=0.333))
        assert command.total_cost == 1.0

    def test_total_cost_absent_without_unit_cost(self):
        assert parse_receive_stock(receipt_payload("rice", 3)).total_cost is None

    def test_sales_and_receipts_conserve_stock(self, db_session, repos, accra):
        """stock_count - opening stock == net ledger movement."""
        make_product("rice", accra.id, stock=20)
        receive_stock(parse_receive_stock(receipt_payload("rice", 7)))
        commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("rice", 4, 10.0)])))
        receive_stock(parse_receive_stock(receipt_payload("rice", 2)))

        assert repos.products.get("rice").stock_count == 20 + 7 - 4 + 2
        assert repos.ledger.net_change("rice") == 5

    def test_unknown_product(self, db_session, accra):
        with pytest.raises(FailedPrecondition):
            receive_stock(parse_receive_stock(receipt_payload("ghost", 1)))
        assert db_session.query(Receipt).count() == 0

    def test_store_mismatch(self, db_session, repos, accra, new_york):
        make_product("bagel", new_york.id, stock=1)

        with pytest.raises(FailedPrecondition):
            receive_stock(parse_receive_stock(receipt_payload("bagel", 5, storeId=accra.id)))

        assert repos.products.get("bagel").stock_count == 1

    @pytest.mark.parametrize("payload", [
        {"productId": "rice", "qty": 0, "supplier": "s", "reference": "r"},
        {"productId": "rice", "qty": -3, "supplier": "s", "reference": "r"},
        {"productId": "rice", "qty": 2, "reference": "r"},
        {"productId": "rice", "qty": 2, "supplier": "s", "reference": "  "},
        {"productId": "rice", "qty": 2, "supplier": "s", "reference": "r", "unitCost": -1},
        {"qty": 2, "supplier": "s", "reference": "r"},
    ])
    def test_invalid_receipts(self, payload):
        with pytest.raises(InvalidArgument):
            parse_receive_stock(payload)


class TestCustomers:
    def test_create_customer_publishes_event(self, db_session, accra):
        result = create_customer(parse_create_customer({
            "storeId": accra.id, "name": "Ama Mensah", "email": "AMA@example.com"
        }))

        customer = db_session.get(Customer, result["customerId"])
        assert customer.name == "Ama Mensah"
        assert customer.email == "ama@example.com"
        assert db_session.get(OutboxEvent, f"customer.created:{customer.id}") is not None

    def test_unknown_store(self, db_session):
        with pytest.raises(FailedPrecondition):
            create_customer(parse_create_customer({"storeId": "nowhere", "name": "Kofi"}))
        assert db_session.query(Customer).count() == 0


class TestCloseouts:
    def test_closeout_variance(self, db_session, accra):
        result = record_closeout(parse_record_closeout({
            "storeId": accra.id, "countedCash": 500, "expectedCash": 480
        }))

        assert result["variance"] == 20.0
        assert db_session.get(Closeout, result["closeoutId"]).counted_cash == 500.0
        # Closeouts feed the nightly job only
        assert db_session.query(OutboxEvent).count() == 0

    def test_closeout_requires_amounts(self):
        with pytest.raises(InvalidArgument):
            parse_record_closeout({"storeId": "accra-1", "countedCash": 10})
