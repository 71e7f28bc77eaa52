# Overview: Flask API routes for the product category tree.

# backend/shopsync/routes/categories.py
from flask import Blueprint, jsonify

from ..decorators import handle_service_errors, json_body
from ..services import category_service


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("/")
@handle_service_errors("list categories")
def list_categories_route():
    categories = category_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@categories_bp.post("/")
@handle_service_errors("create category")
def create_category_route():
    """Body: {"name": str, "parent_id": str | null}"""
    data = json_body()
    category = category_service.create_category(data.get("name"), parent_id=data.get("parent_id"))
    return jsonify({"category": category.to_dict()}), 201


@categories_bp.put("/<category_id>")
@handle_service_errors("rename category")
def rename_category_route(category_id: str):
    category = category_service.rename_category(category_id, json_body().get("name"))
    return jsonify({"category": category.to_dict()}), 200


@categories_bp.delete("/<category_id>")
@handle_service_errors("delete category")
def delete_category_route(category_id: str):
    removed = category_service.delete_category(category_id)
    return jsonify({"deleted": True, "removed": removed}), 200
