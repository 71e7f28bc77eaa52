from __future__ import annotations

from ..extensions import db
from .types import UTCDateTime
from shopsync.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data.

    Quantity is the on-hand stock count. It is changed only by product
    CRUD, stock receipt, and the sale ledger (deduct on sale, restock on
    reversal); it must never go below zero.

    category_id names a Category; sub_category_id, when set, one of its
    children.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_barcode", "barcode"),
    )

    id = db.Column(db.String(36), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.String(64), nullable=True)
    sub_category_id = db.Column(db.String(64), nullable=True)
    manufacturer = db.Column(db.String(128), nullable=False, default="N/A")
    location = db.Column(db.String(128), nullable=False, default="")

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents (frontend may only format for display)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    barcode = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(UTCDateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        UTCDateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
            "sub_category_id": self.sub_category_id,
            "manufacturer": self.manufacturer,
            "location": self.location,
            "quantity": self.quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "barcode": self.barcode,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Category(db.Model):
    """
    Catalogue grouping for products.

    Categories nest through parent_id; a product points at a top-level
    category and optionally at one of its children as sub-category.
    Deleting a category removes its whole subtree.
    """
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    parent_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)

    created_at = db.Column(UTCDateTime, nullable=False, server_default=db.func.now())

    children = db.relationship("Category", backref=db.backref("parent", remote_side=[id]), lazy=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id!r} name={self.name!r} parent_id={self.parent_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "created_at": to_utc_z(self.created_at),
        }
