from decimal import Decimal

import pytest

from shopsync.errors import ValidationError
from shopsync.services.pricing_service import (
    CartLine,
    compute_totals,
    parse_discount_value,
    payment_status_for,
    resolve_discount,
    round_currency,
    settle_amounts,
    to_cents,
)


def test_resolve_discount_fixed_returns_value():
    assert resolve_discount(10000, 1500, "fixed") == 1500


def test_resolve_discount_percentage_is_a_percent():
    assert resolve_discount(10000, 10, "percentage") == 1000
    # 10% of 125.50
    assert resolve_discount(12550, 10, "percentage") == 1255


def test_resolve_discount_fractional_percentage():
    # 12.5% of 99.99 = 12.49875
    assert resolve_discount(9999, Decimal("12.5"), "percentage") == 1250
    assert resolve_discount(9999, 12.5, "percentage") == 1250


def test_resolve_discount_is_not_clamped():
    assert resolve_discount(1000, 5000, "fixed") == 5000


def test_resolve_discount_rejects_unknown_type():
    with pytest.raises(ValidationError):
        resolve_discount(1000, 10, "bogus")


def test_rounding_is_half_up():
    assert to_cents(Decimal("12.5")) == 13
    assert to_cents(Decimal("12.49")) == 12
    assert round_currency(1250) == 1300
    assert round_currency(1249) == 1200
    assert round_currency(1249, unit_cents=1) == 1249


def test_compute_totals_pipeline():
    lines = [
        CartLine("a", "A", quantity=2, original_price_cents=10000, discount_value=10, discount_type="percentage"),
        CartLine("b", "B", quantity=1, original_price_cents=5000, discount_value=500, discount_type="fixed"),
    ]
    totals = compute_totals(lines, 2000, "fixed", tuning_charges_cents=3000, labor_charges_cents=1000)

    assert totals.subtotal_cents == 25000
    assert totals.total_item_discounts_cents == 2 * 1000 + 500
    assert totals.subtotal_after_item_discount_cents == 22500
    assert totals.total_with_charges_cents == 26500
    assert totals.overall_discount_cents == 2000
    assert totals.cart_total_cents == 24500
    assert lines[0].price_cents == 9000


def test_overall_percentage_discount_applies_to_total_with_charges():
    lines = [CartLine("a", "A", quantity=1, original_price_cents=9000)]
    totals = compute_totals(lines, 10, "percentage", tuning_charges_cents=1000, labor_charges_cents=0)
    assert totals.overall_discount_cents == 1000
    assert totals.cart_total_cents == 9000


@pytest.mark.parametrize("balance_due,paid,expected", [
    (0, 0, "PAID"),
    (-100, 5000, "PAID"),
    (100, 50, "PARTIAL"),
    (100, 0, "UNPAID"),
])
def test_payment_status(balance_due, paid, expected):
    assert payment_status_for(balance_due, paid) == expected


def test_settle_amounts_rounds_total_and_balance():
    total, balance_due, status = settle_amounts(10049, 0, 5000)
    assert total == 10000
    assert balance_due == 5000
    assert status == "PARTIAL"


def test_settle_amounts_overpayment_is_paid():
    total, balance_due, status = settle_amounts(5000, 1000, 6000)
    assert total == 4000
    assert balance_due == -2000
    assert status == "PAID"


def test_parse_discount_value_by_type():
    errors = []
    assert parse_discount_value("d", 1500, "fixed", errors) == 1500
    assert parse_discount_value("d", Decimal("1500.00"), "fixed", errors) == 1500
    assert parse_discount_value("d", 12.5, "percentage", errors) == Decimal("12.50")
    assert parse_discount_value("d", None, "percentage", errors) == 0
    assert errors == []

    parse_discount_value("d", 12.5, "fixed", errors)
    parse_discount_value("d", -1, "percentage", errors)
    parse_discount_value("d", 1.234, "percentage", errors)
    parse_discount_value("d", True, "percentage", errors)
    assert len(errors) == 4
