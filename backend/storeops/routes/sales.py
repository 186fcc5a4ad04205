# Overview: Flask API routes for sale commits; parses input and returns JSON responses.

"""
Sale Routes

POST /api/sales/commit

The request body is validated into a CommitSaleCommand before anything is
written. Re-submitting a committed saleId returns 409 already-exists, so
clients can retry a timed-out request safely.
"""

from flask import Blueprint, jsonify, request

from ..schemas import parse_commit_sale
from ..services import sales_service
from ..services.event_service import dispatch_after_commit
from ..telemetry import store_id_from_payload, with_error_logging


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/commit")
@with_error_logging("commitSale", lambda payload, error: store_id_from_payload(payload))
def commit_sale_route():
    """
    Commit a sale.

    Request body:
    {
        "saleId": "...",        // required, the idempotency key
        "storeId": "...",       // required (branchId accepted)
        "items": [{"productId": "...", "qty": 2, "price": 10.0, "taxRate": 0.15}],
        "totals": {"total": 23.0, "taxTotal": 3.0},
        "payment": {"method": "cash", "amountPaid": 25.0, "changeDue": 2.0},
        "tenders": {"cash": 20.0, "card": 3.0},   // optional split
        "customer": {"id": "...", "name": "..."}  // optional
    }

    Returns:
        201 {ok: true, saleId}
    """
    command = parse_commit_sale(request.get_json(silent=True))
    result = sales_service.commit_sale(command)
    dispatch_after_commit(command.store_id)
    return jsonify(result), 201
