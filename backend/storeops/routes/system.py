# Overview: System health endpoint.

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import OutboxEvent, Store
from ..models.events import EVENT_PENDING
from storeops.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and the outbox backlog.

    A growing pending count means events are not being dispatched.
    """
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        pending_events = db.session.query(OutboxEvent).filter(
            OutboxEvent.status == EVENT_PENDING
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stores": store_count,
                "pending_events": pending_events,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    return {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        }
    }, http_status
