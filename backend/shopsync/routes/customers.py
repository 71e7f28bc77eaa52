# Overview: Flask API routes for customer accounts, points and payments.

from flask import Blueprint, request, jsonify

from ..decorators import handle_service_errors, json_body
from ..services import customer_service, loyalty_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _customer_payload(customer) -> dict:
    data = customer.to_dict()
    due = customer_service.service_due_date(customer)
    data["service_due_date"] = due.isoformat() if due else None
    data["service_due"] = customer_service.is_service_due(customer)
    return data


@customers_bp.get("/")
@handle_service_errors("list customers")
def list_customers_route():
    customers = customer_service.list_customers(search=request.args.get("q"))
    return jsonify({"customers": [_customer_payload(c) for c in customers]}), 200


@customers_bp.get("/due")
@handle_service_errors("list due customers")
def list_due_customers_route():
    customers = customer_service.list_due_customers()
    return jsonify({
        "customers": [c.to_dict() for c in customers],
        "total_due_cents": sum(c.balance_cents for c in customers),
    }), 200


@customers_bp.get("/<customer_id>")
@handle_service_errors("get customer")
def get_customer_route(customer_id: str):
    customer = customer_service.get_customer(customer_service.normalize_customer_code(customer_id))
    return jsonify({"customer": _customer_payload(customer)}), 200


@customers_bp.patch("/<customer_id>")
@handle_service_errors("update customer")
def update_customer_route(customer_id: str):
    data = json_body()
    customer = customer_service.update_customer(customer_service.normalize_customer_code(customer_id), data)
    return jsonify({"customer": _customer_payload(customer)}), 200


@customers_bp.post("/<customer_id>/points")
@handle_service_errors("adjust customer points")
def adjust_points_route(customer_id: str):
    """Manual point correction. Body: {"points": <signed int>, "reason": "..."}"""
    data = json_body()
    txn = loyalty_service.adjust_customer_points(
        customer_service.normalize_customer_code(customer_id),
        data.get("points"),
        data.get("reason"),
    )
    return jsonify({"transaction": txn.to_dict()}), 201


@customers_bp.post("/<customer_id>/payments")
@handle_service_errors("record customer payment")
def record_payment_route(customer_id: str):
    data = json_body()
    payment = customer_service.record_customer_payment(
        customer_service.normalize_customer_code(customer_id),
        data.get("amount_cents"),
        notes=data.get("notes"),
    )
    return jsonify({"payment": payment.to_dict()}), 201


@customers_bp.get("/<customer_id>/payments")
@handle_service_errors("list customer payments")
def list_payments_route(customer_id: str):
    payments = customer_service.list_customer_payments(customer_service.normalize_customer_code(customer_id))
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@customers_bp.get("/<customer_id>/loyalty")
@handle_service_errors("get customer loyalty")
def customer_loyalty_route(customer_id: str):
    """Balance, tier, ledger history and points lapsing within the reminder period."""
    customer = customer_service.get_customer(customer_service.normalize_customer_code(customer_id))
    transactions = loyalty_service.customer_transactions(customer.id)
    return jsonify({
        "customer_id": customer.id,
        "loyalty_points": customer.loyalty_points,
        "tier_id": customer.tier_id,
        "points_expiring_soon": loyalty_service.points_expiring_soon(customer),
        "transactions": [t.to_dict() for t in transactions],
    }), 200
