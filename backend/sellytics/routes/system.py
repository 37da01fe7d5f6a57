# backend/sellytics/routes/system.py
"""
System health endpoint.

Reports database reachability and how many sale groups are flagged for
reconciliation, so an operator notices partially applied writes.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import SaleGroup, Store
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        flagged = db.session.query(SaleGroup).filter(SaleGroup.needs_reconciliation.is_(True)).count()
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "degraded" if flagged else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stores": store_count,
                "sale_groups_needing_reconciliation": flagged,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy, or degraded (operational but some sales need reconciliation)
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }, http_status
