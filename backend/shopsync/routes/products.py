# Overview: Flask API routes for product management, stock receipt and barcode lookup.

# backend/shopsync/routes/products.py
from flask import Blueprint, request, jsonify

from ..decorators import handle_service_errors, json_body
from ..services import products_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/")
@handle_service_errors("list products")
def list_products_route():
    products = products_service.list_products(search=request.args.get("q"))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("/")
@handle_service_errors("create product")
def create_product_route():
    product = products_service.create_product(json_body())
    return jsonify({"product": product.to_dict()}), 201


@products_bp.get("/barcode/<code>")
@handle_service_errors("look up barcode")
def barcode_lookup_route(code: str):
    product = products_service.find_product_by_barcode(code)
    if not product:
        return jsonify({"error": "Product not found", "details": {"barcode": code}}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.get("/<product_id>")
@handle_service_errors("get product")
def get_product_route(product_id: str):
    return jsonify({"product": products_service.get_product(product_id).to_dict()}), 200


@products_bp.put("/<product_id>")
@handle_service_errors("update product")
def update_product_route(product_id: str):
    product = products_service.update_product(product_id, json_body())
    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/<product_id>")
@handle_service_errors("delete product")
def delete_product_route(product_id: str):
    products_service.delete_product(product_id)
    return jsonify({"deleted": True}), 200


@products_bp.post("/<product_id>/stock")
@handle_service_errors("add stock")
def add_stock_route(product_id: str):
    """Receive stock. Body: {"quantity": int, "sale_price_cents": int?}"""
    data = json_body()
    product = products_service.add_stock(
        product_id,
        data.get("quantity"),
        new_sale_price_cents=data.get("sale_price_cents"),
    )
    return jsonify({"product": product.to_dict()}), 200
