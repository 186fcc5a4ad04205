# Overview: Flask API routes for customer signups and till closeouts.

from flask import Blueprint, jsonify, request

from ..schemas import parse_create_customer, parse_record_closeout
from ..services import customer_service
from ..services.event_service import dispatch_after_commit
from ..telemetry import with_error_logging


customers_bp = Blueprint("customers", __name__, url_prefix="/api")


@customers_bp.post("/customers")
@with_error_logging("createCustomer")
def create_customer_route():
    """
    Register a customer for a store.

    Request body: {"storeId": "...", "name": "...", "phone": "...", "email": "..."}

    Returns:
        201 {ok: true, customerId}
    """
    command = parse_create_customer(request.get_json(silent=True))
    result = customer_service.create_customer(command)
    dispatch_after_commit(command.store_id)
    return jsonify(result), 201


@customers_bp.post("/closeouts")
@with_error_logging("recordCloseout")
def record_closeout_route():
    """
    Record an end-of-day cash count.

    Request body:
    {
        "storeId": "...",
        "countedCash": 500.0,
        "expectedCash": 480.0,
        "notes": "...",       // optional
        "closedBy": "..."     // optional
    }

    Returns:
        201 {ok: true, closeoutId, variance}
    """
    command = parse_record_closeout(request.get_json(silent=True))
    return jsonify(customer_service.record_closeout(command)), 201
