# backend/shopsync/services/products_service.py
"""
Products Service

Product CRUD, stock receipt and barcode lookup, plus the stock helpers the
sale ledger uses. Stock for a sale is validated for every line before any
line is deducted, so a shortfall never leaves a half-applied cart.

Synthetic (manually entered) cart lines are not inventory products and are
skipped by every stock helper.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable

from flask import current_app
from sqlalchemy import or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from .category_service import check_product_categories
from .concurrency import lock_for_update, run_in_transaction

MANUAL_PRODUCT_PREFIX = "manual-"

PRODUCT_MUTABLE_FIELDS = {
    "name", "category_id", "sub_category_id", "manufacturer", "location",
    "quantity", "purchase_price_cents", "sale_price_cents", "barcode", "image_url",
}
PRODUCT_INT_FIELDS = {"quantity", "purchase_price_cents", "sale_price_cents"}
PRODUCT_CATEGORY_FIELDS = {"category_id", "sub_category_id"}


def is_synthetic(product_id: str, is_manual: bool = False) -> bool:
    return bool(is_manual) or str(product_id).startswith(MANUAL_PRODUCT_PREFIX)


def _validated_patch(patch: dict) -> dict:
    clean = {}
    errors = []
    for key, value in (patch or {}).items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        if key in PRODUCT_INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                errors.append(f"{key} must be an integer")
                continue
            if value < 0:
                errors.append(f"{key} must not be negative")
                continue
        if key in PRODUCT_CATEGORY_FIELDS:
            value = (str(value).strip() or None) if value is not None else None
        clean[key] = value
    if "name" in clean and not (clean["name"] or "").strip():
        errors.append("name is required")
    if errors:
        raise ValidationError("Invalid product data", details={"errors": errors})
    return clean


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        setattr(p, k, v)


# =============================================================================
# CRUD
# =============================================================================

def list_products(search: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.barcode == search.strip()))
    return query.order_by(Product.name.asc()).all()


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def find_product_by_barcode(barcode: str) -> Product | None:
    if not barcode:
        return None
    return db.session.query(Product).filter_by(barcode=barcode.strip()).first()


def create_product(data: dict) -> Product:
    patch = _validated_patch(data)
    if "name" not in patch:
        raise ValidationError("Invalid product data", details={"errors": ["name is required"]})

    def _op():
        check_product_categories(patch.get("category_id"), patch.get("sub_category_id"))
        product = Product(id=str(uuid.uuid4()), quantity=0, purchase_price_cents=0, sale_price_cents=0)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def update_product(product_id: str, patch: dict) -> Product:
    clean = _validated_patch(patch)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if PRODUCT_CATEGORY_FIELDS & clean.keys():
            check_product_categories(
                clean.get("category_id", product.category_id),
                clean.get("sub_category_id", product.sub_category_id),
            )
        apply_product_patch(product, clean)
        return product

    return run_in_transaction(_op)


def delete_product(product_id: str) -> None:
    """Delete a product; past sale items keep their snapshot and weak product_id."""
    def _op():
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        db.session.delete(product)

    run_in_transaction(_op)


def add_stock(product_id: str, quantity: int, new_sale_price_cents: int | None = None) -> Product:
    """Receive stock, optionally repricing the product."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Stock quantity must be a positive integer")
    if new_sale_price_cents is not None and new_sale_price_cents < 0:
        raise ValidationError("Sale price must not be negative")

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        product.quantity += quantity
        if new_sale_price_cents is not None:
            product.sale_price_cents = new_sale_price_cents
        return product

    return run_in_transaction(_op)


# =============================================================================
# SALE STOCK HELPERS (caller's transaction)
# =============================================================================

def check_stock(lines: Iterable) -> dict[str, Product]:
    """
    Validate stock for every non-synthetic line before anything is deducted.

    Quantities are summed per product so a product split across lines is
    checked against its total. Returns the locked products by id.
    """
    required: dict[str, int] = {}
    for line in lines:
        if is_synthetic(line.product_id, line.is_manual):
            continue
        required[line.product_id] = required.get(line.product_id, 0) + line.quantity

    products: dict[str, Product] = {}
    missing = []
    insufficient = []
    for product_id, qty in required.items():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            missing.append(product_id)
            continue
        if product.quantity < qty:
            insufficient.append({
                "product_id": product_id,
                "name": product.name,
                "requested_quantity": qty,
                "on_hand": product.quantity,
            })
        products[product_id] = product

    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})
    if insufficient:
        raise ValidationError("Insufficient stock to complete sale", details={"items": insufficient})
    return products


def deduct_stock(lines: Iterable, products: dict[str, Product]) -> None:
    for line in lines:
        if is_synthetic(line.product_id, line.is_manual):
            continue
        products[line.product_id].quantity -= line.quantity


def restock(items: Iterable) -> None:
    """Put returned sale items back on the shelf; deleted products are skipped."""
    for item in items:
        if is_synthetic(item.product_id, item.is_manual):
            continue
        product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
        if not product:
            current_app.logger.warning(
                "Restock skipped for %s x%s: product no longer exists", item.product_id, item.quantity
            )
            continue
        product.quantity += item.quantity


@dataclass(frozen=True)
class StockMove:
    product_id: str
    quantity: int
    is_manual: bool = False


def _quantities_by_product(entries: Iterable) -> dict[str, int]:
    counts: dict[str, int] = {}
    for entry in entries:
        if is_synthetic(entry.product_id, entry.is_manual):
            continue
        counts[entry.product_id] = counts.get(entry.product_id, 0) + entry.quantity
    return counts


def stock_difference(old_entries: Iterable, new_entries: Iterable) -> tuple[list[StockMove], list[StockMove]]:
    """
    Per-product change between two carts.

    Returns (increases, decreases): units the new cart takes beyond the old
    one, and units the old cart held that the new one gives back.
    """
    before = _quantities_by_product(old_entries)
    after = _quantities_by_product(new_entries)
    increases = [
        StockMove(product_id, qty - before.get(product_id, 0))
        for product_id, qty in after.items()
        if qty > before.get(product_id, 0)
    ]
    decreases = [
        StockMove(product_id, qty - after.get(product_id, 0))
        for product_id, qty in before.items()
        if qty > after.get(product_id, 0)
    ]
    return increases, decreases
