# Overview: Flask API routes for stock receipts; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..schemas import parse_receive_stock
from ..services import receive_service
from ..services.event_service import dispatch_after_commit
from ..telemetry import with_error_logging


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.post("")
@with_error_logging("receiveStock")
def receive_stock_route():
    """
    Receive stock for one product.

    Request body:
    {
        "productId": "...",   // required
        "qty": 5,             // required, > 0
        "supplier": "...",    // required
        "reference": "...",   // required (invoice, delivery note)
        "unitCost": 2.5,      // optional
        "storeId": "..."      // optional, must match the product's store
    }

    Returns:
        201 {ok: true, receiptId, storeId}
    """
    command = parse_receive_stock(request.get_json(silent=True))
    result = receive_service.receive_stock(command)
    dispatch_after_commit(result["storeId"])
    return jsonify(result), 201
