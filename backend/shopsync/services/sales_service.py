"""
Sales Service - atomic sale settlement

WHY: A sale is the one operation that touches every aggregate at once:
stock, the customer's balance, the loyalty ledger and the customer's tier.
All of it is written in a single transaction; a failure anywhere (stock,
redemption, rounding) leaves nothing behind.

LIFECYCLE:
- create_sale: validate -> price -> settle -> earn -> deduct stock -> ledger
- update_sale: reprice an edited cart in place; stock follows the cart, points do not
- reverse_sale: return whole lines; returning everything deletes the sale
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, CustomerTier, LoyaltyTransaction, Sale, SaleItem
from shopsync.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import is_walk_in, normalize_customer_code
from .loyalty_service import TXN_EARNED, TXN_REDEEMED, append_loyalty_transaction
from .pricing_service import (
    DISCOUNT_FIXED,
    DISCOUNT_TYPES,
    CartLine,
    SaleTotals,
    compute_totals,
    parse_discount_value,
    settle_amounts,
)
from .products_service import MANUAL_PRODUCT_PREFIX, check_stock, deduct_stock, restock, stock_difference
from .rules_service import (
    calculate_points_earned,
    calculate_redemption_discount,
    load_active_promotion,
    load_earning_schedule,
)
from .settings_service import get_redemption_rule
from .tier_service import base_tier_id, refresh_customer_tier


SALE_ID_FORMAT = "%Y%m%d%H%M%S"


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

def _require_amount(name: str, value, errors: list) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{name} must be an integer")
        return 0
    if value < 0:
        errors.append(f"{name} must not be negative")
        return 0
    return value


def _build_cart_lines(items) -> list[CartLine]:
    """Turn request item dicts into CartLines, collecting every problem before raising."""
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    lines = []
    errors = []
    for idx, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            errors.append(f"Item {idx}: must be an object")
            continue
        product_id = str(item.get("product_id") or "").strip()
        if not product_id:
            errors.append(f"Item {idx}: product_id is required")
            continue

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            errors.append(f"Item {idx}: quantity must be a positive integer")
            continue

        line_errors: list = []
        price = _require_amount(f"Item {idx}: original_price_cents", item.get("original_price_cents"), line_errors)
        purchase_price = _require_amount(f"Item {idx}: purchase_price_cents", item.get("purchase_price_cents"), line_errors)
        discount_type = item.get("discount_type") or DISCOUNT_FIXED
        if discount_type not in DISCOUNT_TYPES:
            line_errors.append(f"Item {idx}: discount_type must be one of {list(DISCOUNT_TYPES)}")
        discount_value = parse_discount_value(
            f"Item {idx}: discount_value", item.get("discount_value"), discount_type, line_errors
        )
        if line_errors:
            errors.extend(line_errors)
            continue

        lines.append(CartLine(
            product_id=product_id,
            name=(item.get("name") or product_id).strip(),
            quantity=quantity,
            original_price_cents=price,
            discount_value=discount_value,
            discount_type=discount_type,
            purchase_price_cents=purchase_price,
            is_manual=bool(item.get("is_manual")) or product_id.startswith(MANUAL_PRODUCT_PREFIX),
        ))

    if errors:
        raise ValidationError("Invalid sale items", details={"errors": errors})
    return lines


def _check_discount_type(discount_type: str) -> str:
    discount_type = discount_type or DISCOUNT_FIXED
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of {list(DISCOUNT_TYPES)}")
    return discount_type


def next_sale_id(now: datetime) -> str:
    """
    Time-derived sale id (YYYYMMDDHHMMSS).

    Two sales in the same second get "-1", "-2", ... appended.
    """
    base = now.strftime(SALE_ID_FORMAT)
    candidate = base
    suffix = 0
    while db.session.get(Sale, candidate) is not None:
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def _rounding_unit() -> int:
    return int(current_app.config.get("CURRENCY_ROUNDING_CENTS", 100))


# =============================================================================
# SALE ROWS
# =============================================================================

def _replace_items(sale: Sale, lines: list[CartLine]) -> None:
    sale.items = [
        SaleItem(
            line_number=number,
            product_id=line.product_id,
            name=line.name,
            is_manual=line.is_manual,
            quantity=line.quantity,
            original_price_cents=line.original_price_cents,
            discount_value=line.discount_value,
            discount_type=line.discount_type,
            price_cents=line.price_cents,
            purchase_price_cents=line.purchase_price_cents,
        )
        for number, line in enumerate(lines, start=1)
    ]


def _apply_totals(sale: Sale, totals: SaleTotals) -> None:
    sale.subtotal_cents = totals.subtotal_cents
    sale.total_item_discounts_cents = totals.total_item_discounts_cents
    sale.tuning_charges_cents = totals.tuning_charges_cents
    sale.labor_charges_cents = totals.labor_charges_cents
    sale.overall_discount_cents = totals.overall_discount_cents


def _resettle(sale: Sale, totals: SaleTotals) -> None:
    """Recompute total / balance due / status keeping the stored previous balance, loyalty discount and payment."""
    _apply_totals(sale, totals)
    sale.total_cents, sale.balance_due_cents, sale.payment_status = settle_amounts(
        totals.cart_total_cents + sale.previous_balance_cents,
        sale.loyalty_discount_cents,
        sale.amount_paid_cents,
        _rounding_unit(),
    )


def _resum_customer_balance(customer: Customer, sale: Sale) -> None:
    """Balance = what the customer's other sales still show as due, plus this sale's new figure."""
    others = sum(s.balance_due_cents for s in customer.sales if s.id != sale.id)
    customer.balance_cents = max(0, others + sale.balance_due_cents)


def _find_or_create_customer(customer_id: str, info: dict, now: datetime) -> tuple[Customer, bool]:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is not None:
        return customer, False

    customer = Customer(
        id=customer_id,
        name=(info.get("name") or "").strip() or customer_id,
        contact_number=(info.get("contact_number") or "").strip() or None,
        first_seen=now,
        last_seen=now,
        loyalty_points=0,
        tier_id=base_tier_id(),
        balance_cents=0,
        manual_visit_adjustment=0,
    )
    db.session.add(customer)
    return customer, True


# =============================================================================
# CREATE
# =============================================================================

def create_sale(
    items,
    overall_discount: int | float = 0,
    discount_type: str = DISCOUNT_FIXED,
    customer_info: dict | None = None,
    redeemed_points: int = 0,
    tuning_charges: int = 0,
    labor_charges: int = 0,
    amount_paid: int = 0,
    now: datetime | None = None,
) -> Sale:
    """
    Finalize a sale in one transaction.

    customer_info: {"code", "name", "contact_number"?}; a missing code is
    treated as the walk-in customer. Walk-in sales neither earn nor redeem
    points but still carry a balance.

    Raises ValidationError for an empty bill, bad amounts, insufficient
    stock or over-redemption; NotFoundError for an unknown product.
    """
    lines = _build_cart_lines(items)
    discount_type = _check_discount_type(discount_type)
    errors: list = []
    overall_discount = parse_discount_value("overall_discount", overall_discount, discount_type, errors)
    tuning_charges = _require_amount("tuning_charges", tuning_charges, errors)
    labor_charges = _require_amount("labor_charges", labor_charges, errors)
    amount_paid = _require_amount("amount_paid", amount_paid, errors)
    redeemed_points = _require_amount("redeemed_points", redeemed_points, errors)
    if errors:
        raise ValidationError("Invalid sale data", details={"errors": errors})
    if not lines and tuning_charges == 0 and labor_charges == 0:
        raise ValidationError("Cannot create a sale with no items and no charges")

    info = customer_info or {}
    walk_in_code = normalize_customer_code(current_app.config.get("WALK_IN_CUSTOMER_CODE", "WALKIN"))
    customer_id = normalize_customer_code(info.get("code")) or walk_in_code
    now = now or utcnow()

    def _op():
        sale_id = next_sale_id(now)
        totals = compute_totals(lines, overall_discount, discount_type, tuning_charges, labor_charges)

        existing = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        walk_in = is_walk_in(customer_id)
        previous_balance = existing.balance_cents if existing else 0
        total_before_loyalty = totals.cart_total_cents + previous_balance

        # Redemption only for a customer who already holds points
        redeemed = 0
        loyalty_discount = 0
        if existing is not None and not walk_in and redeemed_points > 0:
            loyalty_discount = calculate_redemption_discount(
                redeemed_points, existing.loyalty_points, get_redemption_rule(), total_before_loyalty
            )
            redeemed = redeemed_points

        total, balance_due, status = settle_amounts(
            total_before_loyalty, loyalty_discount, amount_paid, _rounding_unit()
        )

        points_earned = 0
        tier_applied = None
        promotion_applied = None
        if totals.subtotal_cents > 0 and not walk_in:
            bracket = load_earning_schedule().find(totals.subtotal_cents)
            promotion = load_active_promotion(now.date())
            tier = db.session.get(CustomerTier, existing.tier_id) if existing and existing.tier_id else None
            points_earned = calculate_points_earned(
                totals.subtotal_cents,
                bracket,
                tier.points_multiplier if tier else None,
                promotion.multiplier if promotion else None,
            )
            if bracket is not None and tier is not None and tier.points_multiplier > 1:
                tier_applied = {"id": tier.id, "name": tier.name, "multiplier": tier.points_multiplier}
            if bracket is not None and promotion is not None:
                promotion_applied = {"name": promotion.name, "multiplier": promotion.multiplier}

        products = check_stock(lines)

        customer, created = _find_or_create_customer(customer_id, info, now)
        if not created:
            if (info.get("contact_number") or "").strip():
                customer.contact_number = info["contact_number"].strip()
        customer.last_seen = now
        customer.balance_cents = max(0, balance_due)

        sale = Sale(
            id=sale_id,
            customer=customer,
            customer_name=(info.get("name") or "").strip() or customer.name,
            overall_discount_value=overall_discount,
            overall_discount_type=discount_type,
            loyalty_discount_cents=loyalty_discount,
            previous_balance_cents=previous_balance,
            total_cents=total,
            amount_paid_cents=amount_paid,
            balance_due_cents=balance_due,
            payment_status=status,
            points_earned=points_earned,
            redeemed_points=redeemed,
            promotion_applied=promotion_applied,
            tier_applied=tier_applied,
            created_at=now,
        )
        _apply_totals(sale, totals)
        _replace_items(sale, lines)
        db.session.add(sale)

        deduct_stock(lines, products)

        if redeemed > 0:
            append_loyalty_transaction(customer, TXN_REDEEMED, redeemed, occurred_at=now, sale_id=sale_id)
        if points_earned > 0:
            append_loyalty_transaction(customer, TXN_EARNED, points_earned, occurred_at=now, sale_id=sale_id)
        sale.final_loyalty_points = customer.loyalty_points

        db.session.flush()
        refresh_customer_tier(customer, now=now)
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Sale %s created for %s: total=%s paid=%s due=%s points +%s/-%s",
        sale.id, sale.customer_id, sale.total_cents, sale.amount_paid_cents,
        sale.balance_due_cents, sale.points_earned, sale.redeemed_points,
    )
    return sale


# =============================================================================
# READ
# =============================================================================

def get_sale(sale_id: str) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(customer_id: str | None = None, limit: int | None = None) -> list[Sale]:
    query = db.session.query(Sale)
    if customer_id:
        query = query.filter(Sale.customer_id == normalize_customer_code(customer_id))
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


# =============================================================================
# EDIT
# =============================================================================

def update_sale(sale_id: str, updates: dict, now: datetime | None = None) -> Sale:
    """
    Reprice a sale from an edited cart.

    Previous balance, loyalty discount and amount paid are kept; the
    customer's balance is re-summed over their sales. Stock moves by the
    per-product difference between the old and new cart, checked before
    anything changes. Loyalty points are left as they are.
    """
    updates = updates or {}
    now = now or utcnow()

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found")

        if "items" in updates:
            lines = _build_cart_lines(updates["items"])
        else:
            lines = [CartLine.from_sale_item(item) for item in sale.items]

        discount_type = _check_discount_type(updates.get("discount_type", sale.overall_discount_type))
        errors: list = []
        overall_discount = parse_discount_value(
            "overall_discount", updates.get("overall_discount", sale.overall_discount_value), discount_type, errors
        )
        tuning = _require_amount("tuning_charges", updates.get("tuning_charges", sale.tuning_charges_cents), errors)
        labor = _require_amount("labor_charges", updates.get("labor_charges", sale.labor_charges_cents), errors)
        if errors:
            raise ValidationError("Invalid sale data", details={"errors": errors})
        if not lines and tuning == 0 and labor == 0:
            raise ValidationError("A sale must keep at least one item or charge")

        increases, decreases = stock_difference(sale.items, lines)
        products = check_stock(increases)

        totals = compute_totals(lines, overall_discount, discount_type, tuning, labor)
        deduct_stock(increases, products)
        restock(decreases)
        sale.overall_discount_value = overall_discount
        sale.overall_discount_type = discount_type
        _replace_items(sale, lines)
        _resettle(sale, totals)
        sale.updated_at = now

        customer = lock_for_update(db.session.query(Customer).filter_by(id=sale.customer_id)).first()
        _resum_customer_balance(customer, sale)
        db.session.flush()
        refresh_customer_tier(customer, now=now)
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info("Sale %s edited: total=%s due=%s", sale.id, sale.total_cents, sale.balance_due_cents)
    return sale


# =============================================================================
# REVERSAL
# =============================================================================

def reverse_sale(sale_id: str, item_ids: list, now: datetime | None = None) -> Sale | None:
    """
    Return whole sale lines to stock.

    Returning every line of a sale without charges removes the sale, its
    loyalty entries and its effect on the customer; returns None. Otherwise
    the remaining lines are repriced in place and the loyalty ledger is
    left alone.
    """
    if not isinstance(item_ids, list) or not item_ids:
        raise ValidationError("item_ids must be a non-empty list")
    wanted = set(item_ids)
    now = now or utcnow()

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found")

        known = {item.id for item in sale.items}
        unknown = sorted(wanted - known, key=str)
        if unknown:
            raise ValidationError("Items do not belong to this sale", details={"item_ids": unknown})

        returned = [item for item in sale.items if item.id in wanted]
        remaining = [item for item in sale.items if item.id not in wanted]
        restock(returned)

        customer = lock_for_update(db.session.query(Customer).filter_by(id=sale.customer_id)).first()

        if not remaining and sale.tuning_charges_cents == 0 and sale.labor_charges_cents == 0:
            deleted = (
                db.session.query(LoyaltyTransaction)
                .filter(LoyaltyTransaction.sale_id == sale.id)
                .delete(synchronize_session="fetch")
            )
            customer.balance_cents = max(0, customer.balance_cents - sale.balance_due_cents)
            customer.loyalty_points = max(0, customer.loyalty_points - sale.points_earned + sale.redeemed_points)
            db.session.delete(sale)
            db.session.flush()
            db.session.expire(customer, ["sales"])
            refresh_customer_tier(customer, now=now)
            current_app.logger.warning(
                "Sale %s fully reversed: sale and %s loyalty entries deleted for customer %s",
                sale_id, deleted, customer.id,
            )
            return None

        lines = [CartLine.from_sale_item(item) for item in remaining]
        totals = compute_totals(
            lines,
            sale.overall_discount_value,
            sale.overall_discount_type,
            sale.tuning_charges_cents,
            sale.labor_charges_cents,
        )
        for item in returned:
            sale.items.remove(item)
        for number, item in enumerate(sale.items, start=1):
            item.line_number = number
        _resettle(sale, totals)
        sale.updated_at = now

        _resum_customer_balance(customer, sale)
        db.session.flush()
        refresh_customer_tier(customer, now=now)
        current_app.logger.info(
            "Sale %s partially reversed: %s line(s) returned, total now %s",
            sale_id, len(returned), sale.total_cents,
        )
        return sale

    return run_in_transaction(_op)
