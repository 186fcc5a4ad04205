from __future__ import annotations

from ..extensions import db
from storeops.time_utils import to_utc_z


class Sale(db.Model):
    """
    Committed sale.

    The primary key is the client-supplied sale id, which doubles as the
    idempotency key: offline queues replay the same id and the second
    commit fails with AlreadyExists instead of decrementing stock twice.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_created", "store_id", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(64), nullable=True)
    cashier_id = db.Column(db.String(64), nullable=True)

    total = db.Column(db.Float, nullable=False, default=0)
    tax_total = db.Column(db.Float, nullable=False, default=0)

    # {"method": "cash", "amount_paid": 100.0, "change_due": 0.0}
    payment = db.Column(db.JSON, nullable=True)
    # Split tender amounts, e.g. {"cash": 50.0, "card": 100.0}
    tenders = db.Column(db.JSON, nullable=True)
    customer = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.position")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "branch_id": self.branch_id,
            "cashier_id": self.cashier_id,
            "total": self.total,
            "tax_total": self.tax_total,
            "payment": self.payment,
            "tenders": self.tenders,
            "customer": self.customer,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """Individual line items of a sale."""
    __tablename__ = "sale_items"

    id = db.Column(db.String(64), primary_key=True)
    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id"), nullable=False, index=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)

    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(255), nullable=True)
    qty = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Float, nullable=False, default=0)
    tax_rate = db.Column(db.Float, nullable=True)
    line_total = db.Column(db.Float, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "name": self.name,
            "qty": self.qty,
            "price": self.price,
            "tax_rate": self.tax_rate,
            "line_total": self.line_total,
        }
