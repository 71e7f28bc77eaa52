"""
Loyalty rule resolution: earning brackets, promotions and redemption.

All functions here are pure over their inputs; the `load_*` helpers only
read the configured rows in their stored order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from ..errors import ValidationError
from ..extensions import db
from ..models import EarningRule, Promotion
from .loyalty_schemas import REDEMPTION_FIXED_VALUE, REDEMPTION_PERCENTAGE, RedemptionRule
from .pricing_service import HUNDRED, as_decimal, to_cents


@dataclass(frozen=True)
class EarningBracket:
    min_spend_cents: int
    max_spend_cents: int | None
    points_per_hundred: float

    def contains(self, amount_cents: int) -> bool:
        if amount_cents < self.min_spend_cents:
            return False
        return self.max_spend_cents is None or amount_cents <= self.max_spend_cents


class EarningSchedule:
    """
    Earning brackets sorted once by min spend ascending.

    Lookup walks the brackets in that order and the first one containing
    the amount wins, so overlapping brackets resolve to the lowest minimum.
    Gaps between brackets earn nothing.
    """

    def __init__(self, brackets: Iterable[EarningBracket]):
        self._brackets = sorted(brackets, key=lambda b: b.min_spend_cents)

    @classmethod
    def from_rules(cls, rules: Iterable) -> "EarningSchedule":
        return cls(
            EarningBracket(r.min_spend_cents, r.max_spend_cents, r.points_per_hundred)
            for r in rules
        )

    def __iter__(self):
        return iter(self._brackets)

    def __len__(self) -> int:
        return len(self._brackets)

    def find(self, amount_cents: int) -> EarningBracket | None:
        for bracket in self._brackets:
            if bracket.contains(amount_cents):
                return bracket
        return None


def load_earning_schedule() -> EarningSchedule:
    rules = db.session.query(EarningRule).order_by(EarningRule.position.asc(), EarningRule.id.asc()).all()
    return EarningSchedule.from_rules(rules)


def find_active_promotion(promotions: Iterable, today: date):
    """First promotion, in the given order, whose inclusive date range covers `today`."""
    for promo in promotions:
        if promo.start_date <= today <= promo.end_date:
            return promo
    return None


def load_active_promotion(today: date) -> Promotion | None:
    promotions = db.session.query(Promotion).order_by(Promotion.id.asc()).all()
    return find_active_promotion(promotions, today)


def calculate_redemption_discount(
    redeemed_points: int,
    available_points: int,
    rule: RedemptionRule,
    total_before_loyalty_cents: int,
) -> int:
    """
    Discount in cents bought by `redeemed_points`.

    fixedValue: (redeemed / rule.points) * rule.value cents.
    percentage: total * ((redeemed / rule.points) * rule.value) / 100.
    Never more than the bill it pays off.
    """
    if redeemed_points < 0:
        raise ValidationError("Redeemed points must not be negative")
    if redeemed_points > available_points:
        raise ValidationError(
            "Insufficient loyalty points",
            details={"requested": redeemed_points, "available": available_points},
        )
    if redeemed_points == 0:
        return 0

    units = Decimal(redeemed_points) / Decimal(rule.points)
    if rule.method == REDEMPTION_FIXED_VALUE:
        discount = to_cents(units * as_decimal(rule.value))
    elif rule.method == REDEMPTION_PERCENTAGE:
        discount = to_cents(Decimal(total_before_loyalty_cents) * units * as_decimal(rule.value) / HUNDRED)
    else:
        raise ValidationError(f"Unknown redemption method: {rule.method}")

    return max(0, min(discount, total_before_loyalty_cents))


def calculate_points_earned(
    subtotal_cents: int,
    bracket: EarningBracket | None,
    tier_multiplier: float | None = None,
    promotion_multiplier: float | None = None,
) -> int:
    """(subtotal / 100 currency units) * rate, then tier and promotion multipliers, rounded half-up."""
    if bracket is None or subtotal_cents <= 0:
        return 0
    points = Decimal(subtotal_cents) / Decimal(10000) * Decimal(str(bracket.points_per_hundred))
    if tier_multiplier is not None and tier_multiplier > 1:
        points *= Decimal(str(tier_multiplier))
    if promotion_multiplier is not None:
        points *= Decimal(str(promotion_multiplier))
    return int(points.quantize(Decimal(1), rounding=ROUND_HALF_UP))
