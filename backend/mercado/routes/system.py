# backend/mercado/routes/system.py
"""
System health endpoint.

Reports database and session-table health, whether AI advisory is
configured, and setup-required mode (no DATABASE_URL).
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Supermarket, User, SessionToken
from mercado.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        supermarket_count = db.session.query(Supermarket).count()
        user_count = db.session.query(User).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "supermarkets": supermarket_count,
                "users": user_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= utcnow(),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"active_sessions": active_sessions},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session service error"
        }


def check_advisory_health() -> dict:
    """AI advisory is optional: a missing key only degrades the system."""
    if current_app.config.get("GEMINI_API_KEY"):
        return {"status": "healthy", "details": {"model": current_app.config.get("GEMINI_MODEL")}}
    return {"status": "degraded", "warning": "GEMINI_API_KEY not set; AI features disabled"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (AI disabled)
    - 503: database/session checks failing, or setup required
    """
    setup_error = current_app.config.get("SETUP_REQUIRED")
    if setup_error:
        return {"status": "setup_required", "error": setup_error, "timestamp": utcnow().isoformat() + "Z"}, 503

    start_time = time.time()

    database_health = check_database_health()
    session_health = check_session_service_health()
    advisory_health = check_advisory_health()

    all_checks = [database_health, session_health, advisory_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "session_service": session_health,
            "advisory": advisory_health,
        }
    }, http_status
