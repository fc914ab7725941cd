# backend/drinkquick/routes/system.py
"""
System health endpoint.

Reports database reachability and basic row counts so deployments can be
probed without credentials.
"""

import time

from flask import Blueprint, current_app

from .. import responses
from ..extensions import db
from ..models import Drink, Order, User
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "drinks": db.session.query(Drink).count(),
            "orders": db.session.query(Order).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    data = {
        "service": "drinkquick",
        "health": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }
    if healthy:
        return responses.success(data)
    return responses.error("Service unavailable", 503, data=data)
