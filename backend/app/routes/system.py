# backend/app/routes/system.py
"""
System health endpoint.

Reports database connectivity plus a few row counts that show whether
the posting tables are reachable.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Organization, FinancialDocument, FiscalYear
from app.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        organization_count = db.session.query(Organization).count()
        document_count = db.session.query(FinancialDocument).count()
        open_fiscal_years = db.session.query(FiscalYear).filter_by(status="OPEN").count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "organizations": organization_count,
                "documents": document_count,
                "open_fiscal_years": open_fiscal_years,
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
    - 200: database reachable
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status
