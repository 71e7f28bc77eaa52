# Overview: Flask API routes for sale settlement, edits and reversals.

# backend/shopsync/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify

from ..decorators import handle_service_errors, json_body
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@handle_service_errors("create sale")
def create_sale_route():
    """
    Finalize a sale.

    Body: items[], overall_discount, discount_type, customer{code, name,
    contact_number}, redeemed_points, tuning_charges, labor_charges,
    amount_paid. All amounts in cents.
    """
    data = json_body()

    sale = sales_service.create_sale(
        items=data.get("items") or [],
        overall_discount=data.get("overall_discount", 0),
        discount_type=data.get("discount_type", "fixed"),
        customer_info=data.get("customer") or {},
        redeemed_points=data.get("redeemed_points", 0),
        tuning_charges=data.get("tuning_charges", 0),
        labor_charges=data.get("labor_charges", 0),
        amount_paid=data.get("amount_paid", 0),
    )
    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.get("/")
@handle_service_errors("list sales")
def list_sales_route():
    customer_id = request.args.get("customer_id")
    limit = request.args.get("limit", type=int)
    sales = sales_service.list_sales(customer_id=customer_id, limit=limit)
    return jsonify({"sales": [s.to_dict(include_items=False) for s in sales]}), 200


@sales_bp.get("/<sale_id>")
@handle_service_errors("get sale")
def get_sale_route(sale_id: str):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.put("/<sale_id>")
@handle_service_errors("update sale")
def update_sale_route(sale_id: str):
    """Reprice a sale from an edited item list, discount and charges."""
    data = json_body()
    sale = sales_service.update_sale(sale_id, data)
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("/<sale_id>/reverse")
@handle_service_errors("reverse sale")
def reverse_sale_route(sale_id: str):
    """
    Return whole lines to stock.

    Responds with the repriced sale, or {"sale": null, "deleted": true}
    when every line came back and the sale was removed.
    """
    data = json_body()
    sale = sales_service.reverse_sale(sale_id, data.get("item_ids"))
    if sale is None:
        return jsonify({"sale": None, "deleted": True}), 200
    return jsonify({"sale": sale.to_dict(), "deleted": False}), 200
