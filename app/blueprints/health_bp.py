"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready : simple 200 for load balancers
    GET /api/v1/health/live  : database round-trip and app info
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe: always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "HR System Design Wizard",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "notifications_enabled": current_app.config.get("WORKFLOW_NOTIFICATIONS_ENABLED", True),
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
