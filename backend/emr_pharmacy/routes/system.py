# backend/emr_pharmacy/routes/system.py
"""
System health and version endpoints.

Health checks cover the database and the tables the pharmacy services
depend on. No authentication is required.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryItem, PayerPricingRule
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        item_count = db.session.query(InventoryItem).count()
        rule_count = db.session.query(PayerPricingRule).filter(
            PayerPricingRule.is_active.is_(True)
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "inventory_items": item_count,
                "active_pricing_rules": rule_count,
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_pricing_health() -> dict:
    """
    Without an active payer-type default, quotes fall back to 0/0 silently.
    Report which payer types have no default rule.
    """
    start_time = time.time()
    try:
        configured = {
            payer_type for (payer_type,) in db.session.query(PayerPricingRule.payer_type).filter(
                PayerPricingRule.is_active.is_(True),
                PayerPricingRule.payer_id.is_(None),
                PayerPricingRule.category.is_(None),
            ).distinct()
        }
        elapsed_ms = (time.time() - start_time) * 1000

        missing = [p for p in ("self_pay", "corporate", "insurance") if p not in configured]
        if missing:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"No default pricing rule for: {', '.join(missing)}",
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Pricing health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Pricing rules unavailable"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    pricing_health = check_pricing_health()

    all_checks = [database_health, pricing_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "pricing": pricing_health,
        }
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info; never exposes secrets or paths."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
