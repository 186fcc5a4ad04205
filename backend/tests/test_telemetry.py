# Overview: Pytest coverage for operation error telemetry.

from datetime import datetime

from storeops.errors import FailedPrecondition
from storeops.models import ErrorLogEvent
from storeops.telemetry import (
    log_operation_error,
    sanitize_error,
    sanitize_payload,
    store_id_from_payload,
)


class TestSanitizePayload:
    def test_values_replaced_by_types(self):
        shape = sanitize_payload({
            "saleId": "s-1",
            "qty": 3,
            "price": 9.99,
            "paid": True,
            "note": None,
            "at": datetime(2024, 3, 2),
        })
        assert shape == {
            "saleId": "string",
            "qty": "number",
            "price": "number",
            "paid": "boolean",
            "note": "null",
            "at": "date",
        }

    def test_arrays_sampled(self):
        shape = sanitize_payload({"items": [{"productId": "p"}] * 8})
        assert shape == {"items": [{"productId": "string"}] * 5 + ["[+3 more]"]}

    def test_depth_bounded(self):
        shape = sanitize_payload({"a": {"b": {"c": {"d": "deep"}}}})
        assert shape == {"a": {"b": {"c": {"d": "[max-depth]"}}}}

    def test_arrays_near_depth_limit_collapse_to_length(self):
        shape = sanitize_payload({"a": {"b": {"c": [1, 2, 3]}}})
        assert shape == {"a": {"b": {"c": {"__type": "array", "length": 3}}}}

    def test_object_keys_truncated(self):
        payload = {f"k{i:02d}": i for i in range(30)}
        shape = sanitize_payload(payload)
        assert len([k for k in shape if k.startswith("k")]) == 25
        assert shape["__truncatedKeys"] == 5

    def test_unknown_objects_named_by_type(self):
        assert sanitize_payload(object()) == "object"


class TestSanitizeError:
    def test_store_ops_error(self):
        error = FailedPrecondition("Bad product", details={"productId": "p-9"})
        assert sanitize_error(error) == {
            "message": "Bad product",
            "code": "failed-precondition",
            "status": 400,
            "details": {"productId": "string"},
        }

    def test_plain_exception(self):
        assert sanitize_error(ValueError("nope")) == {"message": "nope"}


class TestLogOperationError:
    def test_row_written_with_shape_only(self, db_session, accra):
        payload = {"saleId": "s-1", "storeId": accra.id, "items": [{"productId": "secret"}]}

        entry = log_operation_error("commitSale", payload, FailedPrecondition("Bad product"))

        row = db_session.get(ErrorLogEvent, entry.id)
        assert row.route == "commitSale"
        assert row.store_id == accra.id
        assert row.date_key == "2024-03-02"
        assert row.payload_shape == {
            "saleId": "string",
            "storeId": "string",
            "items": [{"productId": "string"}],
        }
        assert row.error["code"] == "failed-precondition"
        assert "secret" not in str(row.payload_shape)

    def test_explicit_store_id_wins(self, db_session):
        entry = log_operation_error("receiveStock", {"storeId": "x"}, ValueError("boom"), store_id="y")
        assert entry.store_id == "y"

    def test_store_id_fallbacks(self):
        assert store_id_from_payload({"branchId": " b-1 "}) == "b-1"
        assert store_id_from_payload({"storeId": ""}) is None
        assert store_id_from_payload(["storeId"]) is None
