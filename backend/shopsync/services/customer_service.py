"""
Customer accounts service

Customer identity, profile edits, receivable payments and the reminder
views (due balances, service due) built on top of the customer record.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime

from flask import current_app
from sqlalchemy import or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Payment
from shopsync.time_utils import PERIOD_UNITS, parse_iso_date, shift_date, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .tier_service import refresh_customer_tier

CUSTOMER_MUTABLE_FIELDS = {
    "name", "contact_number", "manual_visit_adjustment",
    "service_frequency_value", "service_frequency_unit",
    "next_service_date", "servicing_notes",
}

_WHITESPACE = re.compile(r"\s+")


def normalize_customer_code(code: str | None) -> str:
    """Customer id from the code typed at the till: whitespace removed, upper-cased."""
    return _WHITESPACE.sub("", code or "").upper()


def is_walk_in(customer_id: str) -> bool:
    return customer_id == normalize_customer_code(current_app.config.get("WALK_IN_CUSTOMER_CODE", "WALKIN"))


def get_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.name.ilike(like),
            Customer.id.ilike(f"%{normalize_customer_code(search)}%"),
            Customer.contact_number.ilike(like),
        ))
    return query.order_by(Customer.last_seen.desc()).all()


def list_due_customers() -> list[Customer]:
    """Customers owing money, largest balance first."""
    return (
        db.session.query(Customer)
        .filter(Customer.balance_cents > 0)
        .order_by(Customer.balance_cents.desc(), Customer.id.asc())
        .all()
    )


def update_customer(customer_id: str, patch: dict, now: datetime | None = None) -> Customer:
    """
    Edit profile fields. A changed manual visit adjustment re-evaluates the
    customer's tier in the same transaction.
    """
    clean = {k: v for k, v in (patch or {}).items() if k in CUSTOMER_MUTABLE_FIELDS}
    errors = []
    if "name" in clean and not (clean["name"] or "").strip():
        errors.append("name is required")
    if "manual_visit_adjustment" in clean and (
        isinstance(clean["manual_visit_adjustment"], bool) or not isinstance(clean["manual_visit_adjustment"], int)
    ):
        errors.append("manual_visit_adjustment must be an integer")
    unit = clean.get("service_frequency_unit")
    if unit is not None and unit not in PERIOD_UNITS:
        errors.append(f"service_frequency_unit must be one of {list(PERIOD_UNITS)}")
    if "next_service_date" in clean and isinstance(clean["next_service_date"], str):
        try:
            clean["next_service_date"] = parse_iso_date(clean["next_service_date"])
        except ValueError:
            errors.append("next_service_date must be YYYY-MM-DD")
    if errors:
        raise ValidationError("Invalid customer data", details={"errors": errors})

    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")
        old_adjustment = customer.manual_visit_adjustment
        for key, value in clean.items():
            setattr(customer, key, value)
        if customer.manual_visit_adjustment != old_adjustment:
            refresh_customer_tier(customer, now=now)
        return customer

    return run_in_transaction(_op)


# =============================================================================
# PAYMENTS
# =============================================================================

def record_customer_payment(
    customer_id: str,
    amount_cents: int,
    notes: str | None = None,
    now: datetime | None = None,
) -> Payment:
    """
    Record money received against a customer's outstanding balance.

    Rejects non-positive amounts and anything above the current balance.
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Payment amount must be a positive integer (cents)")

    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")
        if amount_cents > customer.balance_cents:
            raise ValidationError(
                "Payment exceeds outstanding balance",
                details={"amount_cents": amount_cents, "balance_cents": customer.balance_cents},
            )

        before = customer.balance_cents
        customer.balance_cents = before - amount_cents
        payment = Payment(
            id=str(uuid.uuid4()),
            customer_id=customer.id,
            amount_cents=amount_cents,
            notes=(notes or "").strip() or None,
            balance_before_cents=before,
            balance_after_cents=customer.balance_cents,
            paid_at=now or utcnow(),
        )
        db.session.add(payment)
        return payment

    payment = run_in_transaction(_op)
    current_app.logger.info(
        "Payment %s recorded for %s: %s cents (balance %s -> %s)",
        payment.id, customer_id, amount_cents, payment.balance_before_cents, payment.balance_after_cents,
    )
    return payment


def list_customer_payments(customer_id: str) -> list[Payment]:
    get_customer(customer_id)
    return (
        db.session.query(Payment)
        .filter_by(customer_id=customer_id)
        .order_by(Payment.paid_at.asc())
        .all()
    )


# =============================================================================
# SERVICE REMINDERS
# =============================================================================

def service_due_date(customer: Customer) -> date | None:
    """
    When the next service falls due: the explicit next_service_date wins,
    otherwise last visit + service frequency.
    """
    if customer.next_service_date:
        return customer.next_service_date
    if customer.service_frequency_value and customer.service_frequency_unit:
        return shift_date(
            customer.last_seen.date(), customer.service_frequency_value, customer.service_frequency_unit
        )
    return None


def is_service_due(customer: Customer, today: date | None = None) -> bool:
    due = service_due_date(customer)
    today = today or utcnow().date()
    return due is not None and due <= today
