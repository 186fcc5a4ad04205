from __future__ import annotations

from ..extensions import db
from storeops.time_utils import to_utc_z


class Store(db.Model):
    """
    Store (tenant) record.

    MULTI-TENANT: Every source record, ledger entry, summary and activity is
    partitioned by store_id. Store ids are client-facing strings.

    timezone is an IANA identifier used to bucket events into local days.
    It is not validated on write; readers fall back to UTC when it is
    missing or unknown.
    """
    __tablename__ = "stores"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    # Store-level configuration
    timezone = db.Column(db.String(64), nullable=True, default="UTC")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id!r} name={self.name!r} timezone={self.timezone!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }
