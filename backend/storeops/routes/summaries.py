# Overview: Flask API routes for reading daily summaries and the activity feed.

"""
Summary Routes

GET /api/stores/<store_id>/summaries/<date_key>
GET /api/stores/<store_id>/activities?date_key=YYYY-MM-DD&limit=50

Read-only. Summaries are written by the aggregator and the nightly job,
never through the API.
"""

from flask import Blueprint, jsonify, request

from ..errors import InvalidArgument, NotFound
from ..repositories import default_repositories
from ..services import activity_service, summary_service
from ..telemetry import with_error_logging
from storeops.time_utils import parse_date_key


summaries_bp = Blueprint("summaries", __name__, url_prefix="/api/stores")


def _store_from_path(payload, error):
    return request.view_args.get("store_id") if request.view_args else None


@summaries_bp.get("/<store_id>/summaries/<date_key>")
@with_error_logging("getDailySummary", _store_from_path)
def get_summary_route(store_id, date_key):
    if parse_date_key(date_key) is None:
        raise InvalidArgument("date_key must be YYYY-MM-DD", details={"dateKey": date_key})

    summary = summary_service.get_summary(store_id, date_key)
    if summary is None:
        raise NotFound("No summary for this store and day", details={"storeId": store_id, "dateKey": date_key})
    return jsonify(summary.to_dict())


@summaries_bp.get("/<store_id>/activities")
@with_error_logging("listActivities", _store_from_path)
def list_activities_route(store_id):
    """
    Activity feed for a store, newest first.

    Query parameters:
    - date_key: only entries for this local day (optional)
    - limit: maximum entries (default ACTIVITY_FEED_LIMIT, max 500)
    """
    date_key = request.args.get("date_key")
    if date_key and parse_date_key(date_key) is None:
        raise InvalidArgument("date_key must be YYYY-MM-DD", details={"dateKey": date_key})

    limit = request.args.get("limit", type=int)
    if limit is not None:
        # Clamp limit
        limit = max(1, min(limit, 500))

    entries = activity_service.activity_feed(
        default_repositories(), store_id, date_key=date_key, limit=limit
    )
    return jsonify({
        "items": [entry.to_dict() for entry in entries],
        "count": len(entries),
    })
