from __future__ import annotations

from ..extensions import db
from .types import UTCDateTime
from shopsync.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data for receivables and loyalty.

    IDENTITY: id is the normalized customer code supplied at the till
    (e.g. a vehicle number with whitespace removed, upper-cased).

    INVARIANTS: loyalty_points >= 0 and balance_cents >= 0 after every
    sale, payment, point adjustment and expiry sweep.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_last_seen", "last_seen"),
    )

    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    contact_number = db.Column(db.String(32), nullable=True)

    first_seen = db.Column(UTCDateTime, nullable=False)
    last_seen = db.Column(UTCDateTime, nullable=False)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    tier_id = db.Column(db.String(64), nullable=True)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    manual_visit_adjustment = db.Column(db.Integer, nullable=False, default=0)

    # Service reminders
    service_frequency_value = db.Column(db.Integer, nullable=True)
    service_frequency_unit = db.Column(db.String(8), nullable=True)  # days, months, years
    next_service_date = db.Column(db.Date, nullable=True)
    servicing_notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_number": self.contact_number,
            "first_seen": to_utc_z(self.first_seen),
            "last_seen": to_utc_z(self.last_seen),
            "loyalty_points": self.loyalty_points,
            "tier_id": self.tier_id,
            "balance_cents": self.balance_cents,
            "manual_visit_adjustment": self.manual_visit_adjustment,
            "service_frequency_value": self.service_frequency_value,
            "service_frequency_unit": self.service_frequency_unit,
            "next_service_date": self.next_service_date.isoformat() if self.next_service_date else None,
            "servicing_notes": self.servicing_notes,
            "sale_ids": [sale.id for sale in self.sales],
            "version_id": self.version_id,
        }


class LoyaltyTransaction(db.Model):
    """
    Append-only ledger of loyalty point events.

    TRANSACTION TYPES:
    - EARNED: Points earned from a sale
    - REDEEMED: Points redeemed for a sale discount
    - MANUAL_ADD: Manual credit by staff
    - MANUAL_SUBTRACT: Manual debit by staff, inactivity or lifespan expiry

    points is always >= 0; the type carries the sign.
    points_after = points_before + points (credits) or - points (debits).

    EXCEPTION: a full sale reversal deletes the rows referencing that sale.
    """
    __tablename__ = "loyalty_transactions"
    __table_args__ = (
        db.Index("ix_loyalty_txns_customer_occurred", "customer_id", "occurred_at"),
    )

    id = db.Column(db.String(36), primary_key=True)
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    points = db.Column(db.Integer, nullable=False)

    # Weak reference; a full reversal deletes the rows carrying it
    sale_id = db.Column(db.String(32), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)

    points_before = db.Column(db.Integer, nullable=False)
    points_after = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(UTCDateTime, nullable=False, index=True)

    customer = db.relationship("Customer", backref=db.backref("loyalty_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "transaction_type": self.transaction_type,
            "points": self.points,
            "sale_id": self.sale_id,
            "reason": self.reason,
            "points_before": self.points_before,
            "points_after": self.points_after,
            "occurred_at": to_utc_z(self.occurred_at),
        }
