from __future__ import annotations

from ..extensions import db
from storeops.time_utils import to_utc_z


# Counters owned by the nightly reconciliation (recomputed from source records)
COUNTER_FIELDS = (
    "sales_count",
    "sales_total",
    "cash_total",
    "card_total",
    "receipts_count",
    "units_received",
    "receipt_cost_total",
    "new_customers_count",
    "closeouts_count",
    "closeout_counted_total",
    "closeout_expected_total",
    "closeout_variance_total",
)


def summary_id(store_id: str, date_key: str) -> str:
    return f"{store_id}_{date_key}"


class DailySummary(db.Model):
    """
    Per-store, per-local-day rollup read by dashboards.

    WRITERS:
    - Aggregator: increments counters and maintains the top products
      leaderboard as each sale/receipt/customer is created.
    - Nightly reconciliation: overwrites every counter with values
      recomputed from source records. The leaderboard is left as-is.

    INVARIANT: product_stats_order holds at most SUMMARY_TOP_PRODUCTS ids,
    ranked by (units_sold desc, revenue desc), and product_stats holds
    exactly those ids.
    """
    __tablename__ = "daily_summaries"
    __table_args__ = (
        db.UniqueConstraint("store_id", "date_key", name="uq_daily_summaries_store_date"),
    )

    # "{store_id}_{YYYY-MM-DD}"
    id = db.Column(db.String(96), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)
    date_key = db.Column(db.String(10), nullable=False)

    sales_count = db.Column(db.Integer, nullable=False, default=0)
    sales_total = db.Column(db.Float, nullable=False, default=0)
    cash_total = db.Column(db.Float, nullable=False, default=0)
    card_total = db.Column(db.Float, nullable=False, default=0)

    receipts_count = db.Column(db.Integer, nullable=False, default=0)
    units_received = db.Column(db.Integer, nullable=False, default=0)
    receipt_cost_total = db.Column(db.Float, nullable=False, default=0)

    new_customers_count = db.Column(db.Integer, nullable=False, default=0)

    closeouts_count = db.Column(db.Integer, nullable=False, default=0)
    closeout_counted_total = db.Column(db.Float, nullable=False, default=0)
    closeout_expected_total = db.Column(db.Float, nullable=False, default=0)
    closeout_variance_total = db.Column(db.Float, nullable=False, default=0)

    last_activity_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # {product_id: {"name": str, "units_sold": int, "revenue": float}}
    product_stats = db.Column(db.JSON, nullable=False, default=dict)
    product_stats_order = db.Column(db.JSON, nullable=False, default=list)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def counters(self) -> dict:
        return {field: getattr(self, field) for field in COUNTER_FIELDS}

    def to_dict(self) -> dict:
        payload = {
            "id": self.id,
            "store_id": self.store_id,
            "date_key": self.date_key,
        }
        payload.update(self.counters())
        payload.update({
            "last_activity_at": to_utc_z(self.last_activity_at),
            "product_stats": self.product_stats or {},
            "product_stats_order": self.product_stats_order or [],
            "updated_at": to_utc_z(self.updated_at),
        })
        return payload


class ActivityEntry(db.Model):
    """
    Human-readable feed entry, one per domain event.

    store_id and date_key are nullable on purpose: legacy or partially
    written rows are repaired (or deleted) by the nightly hygiene pass
    instead of being rejected at read time.
    """
    __tablename__ = "activities"
    __table_args__ = (
        db.Index("ix_activities_store_date", "store_id", "date_key"),
        db.Index("ix_activities_at", "at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), nullable=True)
    date_key = db.Column(db.String(10), nullable=True)

    type = db.Column(db.String(32), nullable=False)  # sale, receipt, customer
    refs = db.Column(db.JSON, nullable=False, default=dict)
    summary = db.Column(db.String(255), nullable=False, default="")

    at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "date_key": self.date_key,
            "type": self.type,
            "refs": self.refs or {},
            "summary": self.summary,
            "at": to_utc_z(self.at),
        }
