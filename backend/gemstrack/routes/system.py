# backend/gemstrack/routes/system.py
"""
System health endpoint.

Confirms the database answers and the bootstrap rows (categories, rate
rows, sequence counters) exist.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Category, RateEntry, SequenceCounter
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and that `flask system init` has run.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        category_count = db.session.query(Category).count()
        rate_count = db.session.query(RateEntry).count()
        counter_count = db.session.query(SequenceCounter).count()

        elapsed_ms = (time.time() - start_time) * 1000

        details = {
            "categories": category_count,
            "rate_entries": rate_count,
            "sequence_counters": counter_count,
        }
        if not (category_count and rate_count and counter_count):
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Bootstrap data missing; run `flask system init`",
                "details": details,
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
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
    - 200: healthy or degraded (still operational)
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        http_status = 503
    else:
        http_status = 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
        },
    }

    return response, http_status
