# Overview: Operation error telemetry; records sanitized failure events for every API operation.

"""
Operation Telemetry

When an API operation fails, an ErrorLogEvent row is written with:
- route:          logical operation name ("commitSale", "receiveStock", ...)
- store_id:       resolved from the payload (or a resolver), may be None
- payload_shape:  the TYPES of the request payload, never its values
- error:          message / code / status / details of the failure

PRIVACY: payload values are replaced by their type names so amounts,
names and phone numbers never reach the log table. The shape is bounded:
depth 4, 5 sampled array entries, 25 object keys.

RELIABILITY: a failure to write the telemetry row is logged;
it never replaces the error the caller sees.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from functools import wraps
from typing import Any, Callable, Optional

from flask import current_app, jsonify, request

from .errors import Internal, StoreOpsError
from .extensions import db
from .models import ErrorLogEvent
from .repositories import Repositories, default_repositories
from .time_utils import UTC, current_clock, format_date_key

MAX_SANITIZE_DEPTH = 4
MAX_ARRAY_SAMPLE = 5
MAX_OBJECT_KEYS = 25

STORE_ID_KEYS = ("storeId", "store_id", "branchId")


def sanitize_payload(value: Any, depth: int = 0) -> Any:
    """Replace every leaf with its type name, keeping the container structure."""
    if depth >= MAX_SANITIZE_DEPTH:
        return "[max-depth]"

    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (datetime, date)):
        return "date"

    if isinstance(value, (list, tuple)):
        if depth + 1 >= MAX_SANITIZE_DEPTH:
            return {"__type": "array", "length": len(value)}
        samples = [sanitize_payload(entry, depth + 1) for entry in value[:MAX_ARRAY_SAMPLE]]
        if len(value) > MAX_ARRAY_SAMPLE:
            samples.append(f"[+{len(value) - MAX_ARRAY_SAMPLE} more]")
        return samples

    if isinstance(value, dict):
        keys = list(value.keys())
        result = {
            str(key): sanitize_payload(value[key], depth + 1)
            for key in keys[:MAX_OBJECT_KEYS]
        }
        if len(keys) > MAX_OBJECT_KEYS:
            result["__truncatedKeys"] = len(keys) - MAX_OBJECT_KEYS
        return result

    return type(value).__name__


def sanitize_error(error: BaseException) -> dict:
    """message, code, status and a sanitized details shape."""
    result: dict = {}
    message = getattr(error, "message", None) or str(error)
    result["message"] = message if message else type(error).__name__

    code = getattr(error, "code", None)
    if isinstance(code, str) and code.strip():
        result["code"] = code
    status = getattr(error, "http_status", None)
    if status is not None:
        result["status"] = status

    details = getattr(error, "details", None)
    if details:
        result["details"] = sanitize_payload(details)
    return result


def store_id_from_payload(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in STORE_ID_KEYS:
        raw = payload.get(key)
        if isinstance(raw, str) and raw.strip():
            return raw.strip()
    return None


def log_operation_error(
    route: str,
    payload: Any,
    error: BaseException,
    *,
    store_id: Optional[str] = None,
    repos: Repositories | None = None,
) -> ErrorLogEvent | None:
    """
    Persist one ErrorLogEvent in its own transaction.

    The caller's transaction is rolled back first so a half-written
    operation is never committed together with its error record.
    """
    repos = repos or default_repositories()
    session = repos.session
    resolved_store_id = store_id or store_id_from_payload(payload)

    current_app.logger.error(
        "Operation %s failed (store=%s): %s", route, resolved_store_id, error
    )
    try:
        session.rollback()
        now = current_clock().now()
        entry = repos.events.record_error(ErrorLogEvent(
            id=uuid.uuid4().hex,
            date_key=format_date_key(now, UTC),
            route=route,
            store_id=resolved_store_id,
            payload_shape=sanitize_payload(payload),
            error=sanitize_error(error),
            created_at=now,
        ))
        session.commit()
        return entry
    except Exception:
        session.rollback()
        current_app.logger.exception("Failed to record operation error for %s", route)
        return None


def _resolve_store_id(resolver, payload, error) -> Optional[str]:
    if resolver is None:
        return None
    try:
        return resolver(payload, error)
    except Exception:
        current_app.logger.warning("Failed to resolve store id for %s error log", request.path, exc_info=True)
        return None


def error_response(error: StoreOpsError):
    return jsonify({"error": error.to_dict()}), error.http_status


def with_error_logging(
    route: str,
    resolve_store_id: Callable[[Any, BaseException], Optional[str]] | None = None,
):
    """
    Wrap a Flask view: any failure is recorded and turned into an error body.

    StoreOpsError keeps its code and status; anything else becomes Internal.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except StoreOpsError as e:
                payload = request.get_json(silent=True)
                log_operation_error(
                    route, payload, e, store_id=_resolve_store_id(resolve_store_id, payload, e)
                )
                return error_response(e)
            except Exception as e:
                db.session.rollback()
                current_app.logger.exception("Unhandled error in %s", route)
                payload = request.get_json(silent=True)
                log_operation_error(
                    route, payload, e, store_id=_resolve_store_id(resolve_store_id, payload, e)
                )
                return error_response(Internal("Internal error"))
        return decorated_function
    return decorator
