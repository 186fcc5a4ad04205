from __future__ import annotations

from ..extensions import db
from storeops.time_utils import to_utc_z


EVENT_PENDING = "PENDING"
EVENT_DELIVERED = "DELIVERED"
# Settled by the nightly job without reaching the aggregator
EVENT_RETIRED = "RETIRED"


class OutboxEvent(db.Model):
    """
    Creation event for a Sale, Receipt or Customer.

    Written in the same transaction as the record it describes, so an event
    exists if and only if its record does. The dispatcher delivers PENDING
    events to the aggregator at least once; id is deterministic
    ("sale.created:<sale id>") and doubles as the dedup key.
    """
    __tablename__ = "outbox_events"
    __table_args__ = (
        db.Index("ix_outbox_status_occurred", "status", "occurred_at"),
        db.Index("ix_outbox_store_status", "store_id", "status"),
    )

    id = db.Column(db.String(128), primary_key=True)
    kind = db.Column(db.String(32), nullable=False)  # sale.created, receipt.created, customer.created
    store_id = db.Column(db.String(64), nullable=False)
    aggregate_id = db.Column(db.String(64), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=EVENT_PENDING)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "store_id": self.store_id,
            "aggregate_id": self.aggregate_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "delivered_at": to_utc_z(self.delivered_at),
        }


class ProcessedEvent(db.Model):
    """Events already folded into a daily summary. Makes redelivery a no-op."""
    __tablename__ = "processed_events"

    event_id = db.Column(db.String(128), primary_key=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=False)


class ErrorLogEvent(db.Model):
    """
    Operation failure record.

    Only the SHAPE of the request payload is stored (types, not values),
    bounded in depth and width, together with the resolved store id.
    """
    __tablename__ = "error_log_events"
    __table_args__ = (
        db.Index("ix_error_log_date_route", "date_key", "route"),
    )

    id = db.Column(db.String(64), primary_key=True)
    date_key = db.Column(db.String(10), nullable=False)
    route = db.Column(db.String(64), nullable=False)
    store_id = db.Column(db.String(64), nullable=True)
    payload_shape = db.Column(db.JSON, nullable=True)
    error = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date_key": self.date_key,
            "route": self.route,
            "store_id": self.store_id,
            "payload_shape": self.payload_shape,
            "error": self.error,
            "created_at": to_utc_z(self.created_at),
        }
