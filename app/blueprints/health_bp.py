"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready    — simple 200 for load balancers
    GET /api/v1/health/live     — detailed system health (DB, cache)
    GET /api/v1/health/db-diag  — row counts of the core tables
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from app.models import db
from app.services import cache_service

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

_CORE_TABLES = (
    "organizations", "business_lines", "subsidiaries", "sites",
    "processes", "indicators", "site_processes", "user_processes",
    "indicator_values", "value_history", "consolidated_indicator_values",
)


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Cache ────────────────────────────────────────────────────────
    # Optional: a cache failure never fails overall health.
    checks["cache"] = cache_service.health_check()

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "ESG Pilotage Platform",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code


@health_bp.route("/db-diag", methods=["GET"])
def db_diagnostic():
    """
    Quick DB diagnostic — check if key tables exist and are queryable.
    Useful for debugging production 500 errors after deployment.
    """
    results = {}
    for tbl in _CORE_TABLES:
        try:
            row = db.session.execute(db.text(f"SELECT COUNT(*) FROM {tbl}")).scalar()
            results[tbl] = {"status": "ok", "count": row}
        except Exception as exc:
            db.session.rollback()
            results[tbl] = {"status": "error", "detail": str(exc)}
    return jsonify(results), 200
