# backend/shopsync/routes/system.py
"""
System health endpoint.

Checks database connectivity and that the loyalty configuration has been
seeded (`flask system init`).
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Customer, CustomerTier, EarningRule, Product, Sale
from shopsync.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "customers": db.session.query(Customer).count(),
            "sales": db.session.query(Sale).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_loyalty_config_health() -> dict:
    """Degraded (still operational) when earning rules or tiers are missing."""
    start_time = time.time()
    try:
        rule_count = db.session.query(EarningRule).count()
        tier_count = db.session.query(CustomerTier).count()
        elapsed_ms = (time.time() - start_time) * 1000

        missing = [name for name, count in (("earning rules", rule_count), ("tiers", tier_count)) if count == 0]
        result = {
            "status": "degraded" if missing else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"earning_rules": rule_count, "tiers": tier_count},
        }
        if missing:
            result["warning"] = f"Missing loyalty configuration: {', '.join(missing)}"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Loyalty configuration health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Loyalty configuration error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    loyalty_health = check_loyalty_config_health()

    all_checks = [database_health, loyalty_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "loyalty_config": loyalty_health,
        },
    }
    return response, http_status
