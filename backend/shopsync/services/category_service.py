"""
Category Service

Catalogue tree for products. A category with no parent is top-level;
anything else is a sub-category of its parent. Names are free text and
only need to be non-empty.

DELETION: removing a category removes every descendant too, and any
product filed under a removed id is left uncategorised rather than
pointing at a missing row.
"""

from __future__ import annotations

import uuid

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product
from .concurrency import run_in_transaction


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Category name is required")
    return name.strip()


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: str) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def create_category(name: str, parent_id: str | None = None) -> Category:
    name = _clean_name(name)

    def _op():
        if parent_id is not None and db.session.get(Category, parent_id) is None:
            raise ValidationError("Parent category not found", details={"parent_id": parent_id})
        category = Category(id=str(uuid.uuid4()), name=name, parent_id=parent_id)
        db.session.add(category)
        db.session.flush()
        return category

    return run_in_transaction(_op)


def rename_category(category_id: str, name: str) -> Category:
    name = _clean_name(name)

    def _op():
        category = get_category(category_id)
        category.name = name
        return category

    return run_in_transaction(_op)


def subtree_ids(category_id: str) -> set[str]:
    """The category and all of its descendants."""
    children_of: dict[str | None, list[str]] = {}
    for cid, parent in db.session.query(Category.id, Category.parent_id):
        children_of.setdefault(parent, []).append(cid)

    found = set()
    pending = [category_id]
    while pending:
        current = pending.pop()
        if current in found:
            continue
        found.add(current)
        pending.extend(children_of.get(current, []))
    return found


def delete_category(category_id: str) -> int:
    """Delete a category and its subtree; returns how many categories were removed."""
    def _op():
        get_category(category_id)
        doomed = subtree_ids(category_id)

        db.session.query(Product).filter(Product.category_id.in_(doomed)).update(
            {Product.category_id: None, Product.sub_category_id: None}, synchronize_session="fetch"
        )
        db.session.query(Product).filter(Product.sub_category_id.in_(doomed)).update(
            {Product.sub_category_id: None}, synchronize_session="fetch"
        )
        # children first so parent_id references never dangle mid-flush
        for category in sorted(
            db.session.query(Category).filter(Category.id.in_(doomed)).all(),
            key=_depth,
            reverse=True,
        ):
            db.session.delete(category)
            db.session.flush()
        return len(doomed)

    removed = run_in_transaction(_op)
    current_app.logger.info("Category %s deleted with %s descendant(s)", category_id, removed - 1)
    return removed


def _depth(category: Category) -> int:
    depth = 0
    while category.parent is not None:
        depth += 1
        category = category.parent
    return depth


def check_product_categories(category_id: str | None, sub_category_id: str | None) -> None:
    """
    A product's category must exist; its sub-category must exist and be a
    direct child of that category.
    """
    if sub_category_id is not None and category_id is None:
        raise ValidationError("sub_category_id requires category_id")
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError("Category not found", details={"category_id": category_id})
    if sub_category_id is not None:
        sub = db.session.get(Category, sub_category_id)
        if sub is None:
            raise ValidationError("Sub-category not found", details={"sub_category_id": sub_category_id})
        if sub.parent_id != category_id:
            raise ValidationError(
                "Sub-category does not belong to the category",
                details={"category_id": category_id, "sub_category_id": sub_category_id},
            )
