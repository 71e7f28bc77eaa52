from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from .types import UTCDateTime
from shopsync.time_utils import to_utc_z


def plain_number(value):
    """Decimal column value as an int when whole, else a float, for JSON."""
    if value is None:
        return None
    value = Decimal(value)
    return int(value) if value == value.to_integral_value() else float(value)

class Sale(db.Model):
    """
    Finalized sale record.

    WHY: A sale is written once, atomically, together with its stock,
    balance and loyalty effects. There is no draft state. Financial fields
    may be rewritten in place by an edit or a partial reversal; a full
    reversal deletes the row.

    AMOUNTS: All money columns are in cents. previous_balance_cents is the
    customer's unpaid balance carried into this sale's total.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
    )

    # Time-derived document id, e.g. "20261018143005" or "20261018143005-1"
    id = db.Column(db.String(32), primary_key=True)

    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_item_discounts_cents = db.Column(db.Integer, nullable=False, default=0)

    # cents for "fixed", a percent for "percentage"
    overall_discount_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    overall_discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    overall_discount_cents = db.Column(db.Integer, nullable=False, default=0)

    tuning_charges_cents = db.Column(db.Integer, nullable=False, default=0)
    labor_charges_cents = db.Column(db.Integer, nullable=False, default=0)
    loyalty_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    previous_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)  # PAID, PARTIAL, UNPAID

    points_earned = db.Column(db.Integer, nullable=False, default=0)
    redeemed_points = db.Column(db.Integer, nullable=False, default=0)
    final_loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    promotion_applied = db.Column(db.JSON, nullable=True)  # {"name", "multiplier"}
    tier_applied = db.Column(db.JSON, nullable=True)  # {"id", "name", "multiplier"}

    created_at = db.Column(UTCDateTime, nullable=False, index=True)
    updated_at = db.Column(UTCDateTime, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship(
        "Customer",
        backref=db.backref("sales", lazy=True, order_by="Sale.created_at"),
    )
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.line_number",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def subtotal_after_item_discount_cents(self) -> int:
        return self.subtotal_cents - self.total_item_discounts_cents

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "subtotal_cents": self.subtotal_cents,
            "total_item_discounts_cents": self.total_item_discounts_cents,
            "overall_discount_value": plain_number(self.overall_discount_value),
            "overall_discount_type": self.overall_discount_type,
            "overall_discount_cents": self.overall_discount_cents,
            "tuning_charges_cents": self.tuning_charges_cents,
            "labor_charges_cents": self.labor_charges_cents,
            "loyalty_discount_cents": self.loyalty_discount_cents,
            "previous_balance_cents": self.previous_balance_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "payment_status": self.payment_status,
            "points_earned": self.points_earned,
            "redeemed_points": self.redeemed_points,
            "final_loyalty_points": self.final_loyalty_points,
            "promotion_applied": self.promotion_applied,
            "tier_applied": self.tier_applied,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

class SaleItem(db.Model):
    """
    One cart line frozen at sale time.

    product_id is a weak reference: no foreign key, the product may be
    deleted later. Synthetic (manually entered) lines never touch stock.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.String(32), db.ForeignKey("sales.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    is_manual = db.Column(db.Boolean, nullable=False, default=False)

    quantity = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=False)
    discount_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    price_cents = db.Column(db.Integer, nullable=False)  # net unit price after item discount
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "name": self.name,
            "is_manual": self.is_manual,
            "quantity": self.quantity,
            "original_price_cents": self.original_price_cents,
            "discount_value": plain_number(self.discount_value),
            "discount_type": self.discount_type,
            "price_cents": self.price_cents,
            "purchase_price_cents": self.purchase_price_cents,
        }

class Payment(db.Model):
    """
    Payment against a customer's outstanding balance.

    Append-only: a payment reduces Customer.balance_cents and is never
    edited or removed.
    """
    __tablename__ = "payments"

    id = db.Column(db.String(36), primary_key=True)
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    balance_before_cents = db.Column(db.Integer, nullable=False)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    paid_at = db.Column(UTCDateTime, nullable=False, index=True)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True, order_by="Payment.paid_at"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "notes": self.notes,
            "balance_before_cents": self.balance_before_cents,
            "balance_after_cents": self.balance_after_cents,
            "paid_at": to_utc_z(self.paid_at),
        }
