# Overview: Flask API routes for loyalty configuration and the daily maintenance pass.

# backend/shopsync/routes/loyalty.py
"""
Loyalty settings API.

Earning rules, redemption rule, tiers and expiry settings are replaced
wholesale with PUT; each replacement re-evaluates every customer's tier.
"""

from flask import Blueprint, jsonify

from ..decorators import handle_service_errors, json_body
from ..services import loyalty_service, settings_service


loyalty_bp = Blueprint("loyalty", __name__, url_prefix="/api/loyalty")


@loyalty_bp.get("/earning-rules")
@handle_service_errors("list earning rules")
def list_earning_rules_route():
    rules = settings_service.list_earning_rules()
    return jsonify({"rules": [r.to_dict() for r in rules]}), 200


@loyalty_bp.put("/earning-rules")
@handle_service_errors("update earning rules")
def update_earning_rules_route():
    data = json_body()
    rules = settings_service.update_earning_rules(data.get("rules"))
    return jsonify({"rules": [r.to_dict() for r in rules]}), 200


@loyalty_bp.get("/redemption-rule")
@handle_service_errors("get redemption rule")
def get_redemption_rule_route():
    return jsonify({"rule": settings_service.get_redemption_rule().to_dict()}), 200


@loyalty_bp.put("/redemption-rule")
@handle_service_errors("update redemption rule")
def update_redemption_rule_route():
    rule = settings_service.update_redemption_rule(json_body())
    return jsonify({"rule": rule.to_dict()}), 200


@loyalty_bp.get("/tiers")
@handle_service_errors("list tiers")
def list_tiers_route():
    return jsonify({"tiers": [t.to_dict() for t in settings_service.list_tiers()]}), 200


@loyalty_bp.put("/tiers")
@handle_service_errors("update tiers")
def update_tiers_route():
    data = json_body()
    tiers = settings_service.update_customer_tiers(data.get("tiers"))
    return jsonify({"tiers": [t.to_dict() for t in tiers]}), 200


@loyalty_bp.get("/expiry-settings")
@handle_service_errors("get expiry settings")
def get_expiry_settings_route():
    return jsonify({"settings": settings_service.get_expiry_settings().to_dict()}), 200


@loyalty_bp.put("/expiry-settings")
@handle_service_errors("update expiry settings")
def update_expiry_settings_route():
    settings = settings_service.update_loyalty_expiry_settings(json_body())
    return jsonify({"settings": settings.to_dict()}), 200


@loyalty_bp.get("/promotions")
@handle_service_errors("list promotions")
def list_promotions_route():
    return jsonify({"promotions": [p.to_dict() for p in settings_service.list_promotions()]}), 200


@loyalty_bp.post("/promotions")
@handle_service_errors("create promotion")
def create_promotion_route():
    promo = settings_service.add_promotion(json_body())
    return jsonify({"promotion": promo.to_dict()}), 201


@loyalty_bp.put("/promotions/<int:promo_id>")
@handle_service_errors("update promotion")
def update_promotion_route(promo_id: int):
    promo = settings_service.update_promotion(promo_id, json_body())
    return jsonify({"promotion": promo.to_dict()}), 200


@loyalty_bp.delete("/promotions/<int:promo_id>")
@handle_service_errors("delete promotion")
def delete_promotion_route(promo_id: int):
    settings_service.delete_promotion(promo_id)
    return jsonify({"deleted": True}), 200


@loyalty_bp.post("/maintenance")
@handle_service_errors("run loyalty maintenance")
def run_maintenance_route():
    """
    Trigger the daily expiry sweep and tier recompute.

    Body: {"force": bool}. Reports {"ran": false} when today's pass already
    happened.
    """
    data = json_body()
    summary = loyalty_service.run_daily_maintenance(force=bool(data.get("force")))
    if summary is None:
        return jsonify({"ran": False}), 200
    return jsonify({"ran": True, "summary": summary}), 200
