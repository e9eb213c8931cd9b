# Overview: Health and version endpoints.

"""
System health and version endpoints.

/health checks database connectivity and reports the purchase order
counter; /version exposes non-sensitive deployment information.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import User, Vendor, PurchaseOrder
from ..services import sequence_service
from bizzflow.time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "vendors": db.session.query(Vendor).count(),
            "purchase_orders": db.session.query(PurchaseOrder).count(),
            "last_order_sequence": sequence_service.current_value(
                sequence_service.PURCHASE_ORDER_COUNTER
            ),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }
    return response, 200 if healthy else 503


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
