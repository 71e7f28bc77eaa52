"""
Sale totals pipeline

WHY: Creation, edit and partial reversal must produce identical numbers for
identical inputs, so all three run the cart through the same functions:

    item discounts -> subtotal after item discounts -> + tuning + labor
    -> overall discount -> cart total -> + previous balance
    -> - loyalty discount -> round

AMOUNTS: integers in cents. A fixed discount value is in cents, a
percentage discount value is a percent (10 or 12.5). Fractional cents are
rounded half-up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from ..errors import ValidationError

DISCOUNT_FIXED = "fixed"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_TYPES = (DISCOUNT_FIXED, DISCOUNT_PERCENTAGE)

PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_UNPAID = "UNPAID"

HUNDRED = Decimal(100)
PERCENT_PLACES = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Round a Decimal amount of cents half-up to a whole cent."""
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_currency(amount_cents: int | Decimal, unit_cents: int = 100) -> int:
    """Round half-up to a multiple of `unit_cents` (100 = whole currency unit)."""
    steps = (Decimal(amount_cents) / Decimal(unit_cents)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(steps) * unit_cents


def resolve_discount(base_cents: int, value: int | Decimal, discount_type: str) -> int:
    """
    Discount amount for a base: the value itself when fixed, or
    base * value / 100 when it is a percentage.

    No clamping; the caller decides whether a negative net is acceptable.
    """
    if discount_type == DISCOUNT_FIXED:
        return int(value)
    if discount_type == DISCOUNT_PERCENTAGE:
        return to_cents(Decimal(base_cents) * as_decimal(value) / HUNDRED)
    raise ValidationError(f"Unknown discount type: {discount_type}")


@dataclass
class CartLine:
    product_id: str
    name: str
    quantity: int
    original_price_cents: int
    discount_value: int | Decimal = 0
    discount_type: str = DISCOUNT_FIXED
    purchase_price_cents: int = 0
    is_manual: bool = False

    @property
    def unit_discount_cents(self) -> int:
        return resolve_discount(self.original_price_cents, self.discount_value, self.discount_type)

    @property
    def price_cents(self) -> int:
        """Net unit price after the item discount."""
        return self.original_price_cents - self.unit_discount_cents

    @classmethod
    def from_sale_item(cls, item) -> "CartLine":
        return cls(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            original_price_cents=item.original_price_cents,
            discount_value=item.discount_value,
            discount_type=item.discount_type,
            purchase_price_cents=item.purchase_price_cents,
            is_manual=item.is_manual,
        )


@dataclass
class SaleTotals:
    lines: list[CartLine] = field(default_factory=list)
    subtotal_cents: int = 0
    total_item_discounts_cents: int = 0
    tuning_charges_cents: int = 0
    labor_charges_cents: int = 0
    overall_discount_cents: int = 0

    @property
    def subtotal_after_item_discount_cents(self) -> int:
        return self.subtotal_cents - self.total_item_discounts_cents

    @property
    def total_with_charges_cents(self) -> int:
        return self.subtotal_after_item_discount_cents + self.tuning_charges_cents + self.labor_charges_cents

    @property
    def cart_total_cents(self) -> int:
        return self.total_with_charges_cents - self.overall_discount_cents


def compute_totals(
    lines: list[CartLine],
    overall_discount_value: int | Decimal,
    overall_discount_type: str,
    tuning_charges_cents: int,
    labor_charges_cents: int,
) -> SaleTotals:
    """Item discounts, charges and the overall discount for a cart."""
    subtotal = sum(line.original_price_cents * line.quantity for line in lines)
    item_discounts = sum(line.unit_discount_cents * line.quantity for line in lines)

    totals = SaleTotals(
        lines=list(lines),
        subtotal_cents=subtotal,
        total_item_discounts_cents=item_discounts,
        tuning_charges_cents=tuning_charges_cents,
        labor_charges_cents=labor_charges_cents,
    )
    totals.overall_discount_cents = resolve_discount(
        totals.total_with_charges_cents, overall_discount_value, overall_discount_type
    )
    return totals


def payment_status_for(balance_due_cents: int, amount_paid_cents: int) -> str:
    if balance_due_cents <= 0:
        return PAYMENT_STATUS_PAID
    if amount_paid_cents > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def settle_amounts(
    total_before_loyalty_cents: int,
    loyalty_discount_cents: int,
    amount_paid_cents: int,
    unit_cents: int = 100,
) -> tuple[int, int, str]:
    """Return (total, balance_due, payment_status) for a bill."""
    total = round_currency(total_before_loyalty_cents - loyalty_discount_cents, unit_cents)
    balance_due = round_currency(total - amount_paid_cents, unit_cents)
    return total, balance_due, payment_status_for(balance_due, amount_paid_cents)


def parse_discount_value(name: str, value, discount_type: str, errors: list) -> int | Decimal:
    """
    Validate a discount value for its type: whole cents when fixed, a
    non-negative percent with at most two decimals when a percentage.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        errors.append(f"{name} must be a number")
        return 0
    if discount_type != DISCOUNT_PERCENTAGE:
        if isinstance(value, Decimal) and value == value.to_integral_value():
            value = int(value)
        if not isinstance(value, int):
            errors.append(f"{name} must be an integer")
            return 0
        if value < 0:
            errors.append(f"{name} must not be negative")
            return 0
        return value
    if not isinstance(value, (int, float, Decimal)):
        errors.append(f"{name} must be a number")
        return 0
    percent = as_decimal(value)
    if not percent.is_finite() or percent < 0:
        errors.append(f"{name} must be a non-negative percentage")
        return 0
    if percent != percent.quantize(PERCENT_PLACES):
        errors.append(f"{name} allows at most two decimal places")
        return 0
    return percent.quantize(PERCENT_PLACES)
