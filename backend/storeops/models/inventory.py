from __future__ import annotations

from ..extensions import db
from storeops.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with its running stock level.

    MULTI-TENANT: Products are scoped to stores via store_id. A commit that
    references a product of another store is rejected.

    stock_count is only mutated inside a sale or receipt commit, and every
    mutation is mirrored by a LedgerEntry. version_id turns concurrent
    read-modify-write of stock_count into a StaleDataError that the commit
    retry loop absorbs.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_store_name", "store_id", "name"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=True)
    stock_count = db.Column(db.Integer, nullable=False, default=0)
    reorder_threshold = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} name={self.name!r} store_id={self.store_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "price": self.price,
            "stock_count": self.stock_count,
            "reorder_threshold": self.reorder_threshold,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Receipt(db.Model):
    """Stock intake record. Immutable once written."""
    __tablename__ = "receipts"
    __table_args__ = (
        db.Index("ix_receipts_store_created", "store_id", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    supplier = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(255), nullable=False)
    unit_cost = db.Column(db.Float, nullable=True)
    total_cost = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "qty": self.qty,
            "supplier": self.supplier,
            "reference": self.reference,
            "unit_cost": self.unit_cost,
            "total_cost": self.total_cost,
            "created_at": to_utc_z(self.created_at),
        }


class LedgerEntry(db.Model):
    """
    Append-only audit trail of signed stock changes.

    INVARIANTS:
    - Never updated or deleted.
    - Written in the same transaction as the stock mutation it records.
    - For a product, SUM(qty_change) equals stock_count minus its opening stock.
    - ref_id points at the originating Sale or Receipt.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_store_product", "store_id", "product_id"),
        db.Index("ix_ledger_ref", "type", "ref_id"),
    )

    id = db.Column(db.String(64), primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(64), nullable=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)

    qty_change = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False)  # sale, receipt
    ref_id = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "qty_change": self.qty_change,
            "type": self.type,
            "ref_id": self.ref_id,
            "created_at": to_utc_z(self.created_at),
        }
