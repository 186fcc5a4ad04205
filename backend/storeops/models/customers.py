from __future__ import annotations

from ..extensions import db
from storeops.time_utils import to_utc_z


class Customer(db.Model):
    """Customer signup. Counted into the day's new_customers_count."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_store_created", "store_id", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
        }


class Closeout(db.Model):
    """
    End-of-day till count.

    Closeouts never pass through the incremental aggregator; the nightly
    reconciliation folds them into the summary's closeout_* fields.
    """
    __tablename__ = "closeouts"
    __table_args__ = (
        db.Index("ix_closeouts_store_closed", "store_id", "closed_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)

    counted_cash = db.Column(db.Float, nullable=False, default=0)
    expected_cash = db.Column(db.Float, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    closed_by = db.Column(db.String(64), nullable=True)

    closed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    @property
    def variance(self) -> float:
        return round((self.counted_cash or 0) - (self.expected_cash or 0), 2)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "counted_cash": self.counted_cash,
            "expected_cash": self.expected_cash,
            "variance": self.variance,
            "notes": self.notes,
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at),
        }
