"""
Loyalty Ledger Service

Ledger rules for loyalty points:
- Append-only: every balance change writes one LoyaltyTransaction carrying
  points_before / points_after.
- Customer.loyalty_points is the running balance and never goes negative.
- The only deletion is the full sale reversal in sales_service.

EXPIRY (daily maintenance pass):
1. Inactivity: a customer unseen for longer than the inactivity period
   loses the whole balance.
2. Lifespan: credits are matched against debits oldest-first (FIFO); the
   unspent remainder of any credit older than the lifespan expires.
3. Every customer's tier is recomputed.
The pass runs at most once per calendar day.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator

from flask import current_app

from ..errors import InvariantViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, LoyaltyTransaction
from shopsync.time_utils import shift_date, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .loyalty_schemas import ExpirySettings
from .settings_service import SETTING_LAST_MAINTENANCE_DATE, get_expiry_settings, get_setting, set_setting
from .tier_service import refresh_all_tiers


# =============================================================================
# TRANSACTION TYPES (CONSTANTS)
# =============================================================================

TXN_EARNED = "EARNED"
TXN_REDEEMED = "REDEEMED"
TXN_MANUAL_ADD = "MANUAL_ADD"
TXN_MANUAL_SUBTRACT = "MANUAL_SUBTRACT"

CREDIT_TYPES = (TXN_EARNED, TXN_MANUAL_ADD)
DEBIT_TYPES = (TXN_REDEEMED, TXN_MANUAL_SUBTRACT)

REASON_INACTIVITY = "inactivity"
REASON_EXPIRED = "expired"


# =============================================================================
# LEDGER WRITES
# =============================================================================

def append_loyalty_transaction(
    customer: Customer,
    transaction_type: str,
    points: int,
    *,
    occurred_at: datetime,
    sale_id: str | None = None,
    reason: str | None = None,
) -> LoyaltyTransaction:
    """
    Apply a point movement to the customer and record it.

    Runs inside the caller's transaction; no commit here.
    """
    if transaction_type not in CREDIT_TYPES + DEBIT_TYPES:
        raise ValueError(f"Unknown loyalty transaction type: {transaction_type}")
    if points < 0:
        raise ValueError("Loyalty transaction points must be >= 0")

    before = customer.loyalty_points or 0
    after = before + points if transaction_type in CREDIT_TYPES else before - points
    if after < 0:
        raise InvariantViolation(
            "Loyalty points cannot go negative",
            details={"customer_id": customer.id, "points_before": before, "points": points},
        )

    txn = LoyaltyTransaction(
        id=str(uuid.uuid4()),
        customer_id=customer.id,
        transaction_type=transaction_type,
        points=points,
        sale_id=sale_id,
        reason=reason,
        points_before=before,
        points_after=after,
        occurred_at=occurred_at,
    )
    customer.loyalty_points = after
    db.session.add(txn)
    return txn


def adjust_customer_points(customer_id: str, delta: int, reason: str, now: datetime | None = None) -> LoyaltyTransaction:
    """
    Manual point correction by staff.

    Positive delta writes MANUAL_ADD, negative writes MANUAL_SUBTRACT.
    Reason is mandatory; a deduction below zero is rejected.
    """
    if not reason or not str(reason).strip():
        raise ValidationError("A reason is required for point adjustments")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("Point adjustment must be an integer")
    if delta == 0:
        raise ValidationError("Point adjustment must be non-zero")

    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")
        if customer.loyalty_points + delta < 0:
            raise InvariantViolation(
                "Cannot deduct more points than available",
                details={"available": customer.loyalty_points, "requested": -delta},
            )
        txn_type = TXN_MANUAL_ADD if delta > 0 else TXN_MANUAL_SUBTRACT
        return append_loyalty_transaction(
            customer,
            txn_type,
            abs(delta),
            occurred_at=now or utcnow(),
            reason=str(reason).strip(),
        )

    txn = run_in_transaction(_op)
    current_app.logger.info(
        "Points adjusted for %s: %s -> %s (%s)", customer_id, txn.points_before, txn.points_after, txn.reason
    )
    return txn


def customer_transactions(customer_id: str) -> list[LoyaltyTransaction]:
    return (
        db.session.query(LoyaltyTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(LoyaltyTransaction.occurred_at.asc())
        .all()
    )


# =============================================================================
# FIFO MATCHING
# =============================================================================

@dataclass
class CreditRemainder:
    credit: LoyaltyTransaction
    unspent: int


def unspent_credits(transactions: Iterable[LoyaltyTransaction]) -> Iterator[CreditRemainder]:
    """
    Walk credits oldest-first once, consuming the pooled debits as we go.

    Every debit ever written is treated as spending the oldest points
    still available, so a credit is unspent only past the point where the
    cumulative debits run out.
    """
    transactions = list(transactions)
    debit_pool = sum(t.points for t in transactions if t.transaction_type in DEBIT_TYPES)
    credits = sorted(
        (t for t in transactions if t.transaction_type in CREDIT_TYPES),
        key=lambda t: t.occurred_at,
    )
    for credit in credits:
        consumed = min(credit.points, debit_pool)
        debit_pool -= consumed
        yield CreditRemainder(credit, credit.points - consumed)


def expirable_points(transactions: Iterable[LoyaltyTransaction], settings: ExpirySettings, now: datetime) -> int:
    """Unspent points whose credit is at least one lifespan old."""
    total = 0
    for remainder in unspent_credits(transactions):
        expires_at = shift_date(
            remainder.credit.occurred_at, settings.points_lifespan_value, settings.points_lifespan_unit
        )
        if remainder.unspent > 0 and expires_at <= now:
            total += remainder.unspent
    return total


def is_inactive(customer: Customer, settings: ExpirySettings, now: datetime) -> bool:
    threshold = shift_date(now, settings.inactivity_period_value, settings.inactivity_period_unit, "subtract")
    return customer.last_seen < threshold


def points_expiring_soon(customer: Customer, settings: ExpirySettings | None = None, now: datetime | None = None) -> int:
    """
    Points that will lapse within the reminder period.

    Zero when expiry is off or the customer is already past the inactivity
    threshold (they lose everything at the next sweep anyway).
    """
    settings = settings or get_expiry_settings()
    now = now or utcnow()
    if not settings.enabled or customer.loyalty_points <= 0:
        return 0
    if is_inactive(customer, settings, now):
        return 0

    reminder_end = shift_date(now, settings.reminder_period_value, settings.reminder_period_unit)
    soon = 0
    for remainder in unspent_credits(customer_transactions(customer.id)):
        expires_at = shift_date(
            remainder.credit.occurred_at, settings.points_lifespan_value, settings.points_lifespan_unit
        )
        if remainder.unspent > 0 and now < expires_at <= reminder_end:
            soon += remainder.unspent
    return soon


# =============================================================================
# EXPIRY SWEEP
# =============================================================================

def expire_customer_points(customer: Customer, settings: ExpirySettings, now: datetime) -> LoyaltyTransaction | None:
    """
    Inactivity check, then lifespan check, for one customer.

    Runs inside the caller's transaction. Returns the MANUAL_SUBTRACT entry
    written, if any.
    """
    if customer.loyalty_points <= 0:
        return None

    if is_inactive(customer, settings, now):
        return append_loyalty_transaction(
            customer,
            TXN_MANUAL_SUBTRACT,
            customer.loyalty_points,
            occurred_at=now,
            reason=REASON_INACTIVITY,
        )

    to_expire = min(expirable_points(customer_transactions(customer.id), settings, now), customer.loyalty_points)
    if to_expire <= 0:
        return None
    return append_loyalty_transaction(
        customer,
        TXN_MANUAL_SUBTRACT,
        to_expire,
        occurred_at=now,
        reason=REASON_EXPIRED,
    )


def run_daily_maintenance(now: datetime | None = None, force: bool = False) -> dict | None:
    """
    Point expiry sweep plus full tier recompute, once per calendar day.

    Returns a summary, or None when today's run already happened (unless
    `force`). The last-run date is stored in the same transaction as the
    expiry entries, so a failed pass can simply be retried.
    """
    now = now or utcnow()
    run_date = now.date().isoformat()

    def _op():
        if not force and get_setting(SETTING_LAST_MAINTENANCE_DATE) == run_date:
            return None

        settings = get_expiry_settings()
        summary = {
            "run_date": run_date,
            "expiry_enabled": settings.enabled,
            "inactive_customers": 0,
            "expired_customers": 0,
            "points_removed": 0,
            "tiers_changed": 0,
        }

        if settings.enabled:
            customers = (
                lock_for_update(db.session.query(Customer).filter(Customer.loyalty_points > 0))
                .order_by(Customer.id.asc())
                .all()
            )
            for customer in customers:
                txn = expire_customer_points(customer, settings, now)
                if txn is None:
                    continue
                summary["points_removed"] += txn.points
                if txn.reason == REASON_INACTIVITY:
                    summary["inactive_customers"] += 1
                else:
                    summary["expired_customers"] += 1
            db.session.flush()

        summary["tiers_changed"] = refresh_all_tiers(now)
        set_setting(SETTING_LAST_MAINTENANCE_DATE, run_date)
        return summary

    summary = run_in_transaction(_op)
    if summary is None:
        current_app.logger.info("Daily loyalty maintenance already ran for %s", run_date)
    else:
        current_app.logger.info("Daily loyalty maintenance finished: %s", summary)
    return summary
