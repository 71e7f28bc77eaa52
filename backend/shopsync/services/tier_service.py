"""
Customer tier evaluation.

A tier is earned by spend and visits inside the tier's own rolling window
(e.g. 12 months back from now). Tiers are checked from the highest rank
down and the first one whose thresholds are met wins; a rank-0 tier with
zero thresholds catches everyone else.

Re-run for every customer whenever tier definitions change and once a day
from the maintenance pass, since windows slide even without new sales.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Customer, CustomerTier
from shopsync.time_utils import shift_date, utcnow
from .concurrency import run_in_transaction


def ranked_tiers(tiers: Iterable | None = None) -> list:
    """Tiers ordered by rank descending; ties keep their given order."""
    if tiers is None:
        tiers = db.session.query(CustomerTier).order_by(CustomerTier.rank.desc(), CustomerTier.id.asc()).all()
    return sorted(tiers, key=lambda t: t.rank, reverse=True)


def evaluate_tier(customer, sales: Iterable, tiers: Iterable, now: datetime) -> str | None:
    """
    Return the id of the highest-ranked tier the customer qualifies for.

    visits = sales inside the window + customer.manual_visit_adjustment
    spend  = sum of sale totals inside the window
    """
    sales = list(sales)
    adjustment = customer.manual_visit_adjustment or 0

    for tier in ranked_tiers(tiers):
        window_start = shift_date(now, tier.period_value, tier.period_unit, "subtract")
        in_window = [s for s in sales if s.created_at >= window_start]
        spend = sum(s.total_cents for s in in_window)
        visits = len(in_window) + adjustment
        if visits >= tier.min_visits and spend >= tier.min_spend_cents:
            return tier.id
    return None


def refresh_customer_tier(customer: Customer, tiers: list | None = None, now: datetime | None = None) -> bool:
    """
    Re-evaluate one customer inside the caller's transaction.

    Returns True only when the tier changed; an unchanged result writes
    nothing.
    """
    now = now or utcnow()
    tiers = ranked_tiers(tiers)
    tier_id = evaluate_tier(customer, customer.sales, tiers, now)
    if tier_id == customer.tier_id:
        return False
    customer.tier_id = tier_id
    return True


def refresh_all_tiers(now: datetime | None = None) -> int:
    """Batch re-evaluation inside the caller's transaction; returns the number of customers that moved."""
    now = now or utcnow()
    tiers = ranked_tiers()
    changed = 0
    for customer in db.session.query(Customer).order_by(Customer.id.asc()).all():
        if refresh_customer_tier(customer, tiers, now):
            changed += 1
    return changed


def base_tier_id(tiers: list | None = None) -> str | None:
    """Id of the rank-0 tier new customers start in, if one is configured."""
    for tier in ranked_tiers(tiers):
        if tier.rank == 0:
            return tier.id
    return None


def recompute_all_tiers(now: datetime | None = None) -> int:
    """Standalone full recompute, committed as one transaction."""
    changed = run_in_transaction(lambda: refresh_all_tiers(now))
    current_app.logger.info("Tier recompute finished: %s customer(s) changed tier", changed)
    return changed
