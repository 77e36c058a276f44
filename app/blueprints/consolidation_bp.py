"""
Consolidation blueprint — roll-ups and performance dashboards.

Endpoints:
    GET  /api/v1/organizations/<org>/consolidated?year=&node_level=&node_name=&preview=
    GET  /api/v1/organizations/<org>/consolidated/<indicator>?year=&node_level=&node_name=&preview=
    POST /api/v1/organizations/<org>/consolidated/refresh     body: {"year"?}
    GET  /api/v1/organizations/<org>/scopes/<scope>/dashboard?year=&preview=

Performance bands are assigned here, never in the calculator:
    performance ≥ 90 → good, 70–89 → medium, < 70 → low, None → null
"""

import logging

from flask import Blueprint, jsonify, request

from app.core.exceptions import NotFoundError, ValidationError
from app.services import consolidation_service
from app.services.performance import scope_dashboard
from app.utils.errors import register_error_handlers
from app.utils.helpers import parse_bool_arg, parse_int_arg

logger = logging.getLogger(__name__)

consolidation_bp = Blueprint("consolidation_bp", __name__, url_prefix="/api/v1/organizations")
register_error_handlers(consolidation_bp)

GOOD_THRESHOLD = 90
MEDIUM_THRESHOLD = 70


def performance_band(performance):
    if performance is None:
        return None
    if performance >= GOOD_THRESHOLD:
        return "good"
    if performance >= MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def _present(row: dict) -> dict:
    return {**row, "performance_band": performance_band(row.get("performance"))}


@consolidation_bp.route("/<org>/consolidated", methods=["GET"])
def list_consolidated(org):
    """Every non-empty node × indicator row for a year.

    Query params: year (required), node_level, node_name, preview
    """
    year = parse_int_arg("year", required=True)
    rows = consolidation_service.list_consolidated(
        org,
        year,
        node_level=request.args.get("node_level") or None,
        node_name=request.args.get("node_name") or None,
        preview=parse_bool_arg("preview"),
    )
    return jsonify({"items": [_present(r) for r in rows], "total": len(rows)}), 200


@consolidation_bp.route("/<org>/consolidated/<indicator>", methods=["GET"])
def get_consolidated(org, indicator):
    year = parse_int_arg("year", required=True)
    row = consolidation_service.consolidate_node(
        org,
        request.args.get("node_level") or "organization",
        request.args.get("node_name") or None,
        indicator,
        year,
        preview=parse_bool_arg("preview"),
    )
    if row is None:
        raise NotFoundError(resource="ConsolidatedIndicatorValue", resource_id=indicator)
    return jsonify(_present(row)), 200


@consolidation_bp.route("/<org>/consolidated/refresh", methods=["POST"])
def refresh_consolidated(org):
    data = request.get_json(silent=True) or {}
    year = data.get("year")
    if year is not None:
        try:
            year = int(year)
        except (TypeError, ValueError) as exc:
            raise ValidationError("year must be an integer", details={"year": year}) from exc
    result = consolidation_service.refresh(org, year)
    return jsonify(result), 200


@consolidation_bp.route("/<org>/scopes/<scope>/dashboard", methods=["GET"])
def get_scope_dashboard(org, scope):
    year = parse_int_arg("year", required=True)
    rows = scope_dashboard(org, scope, year, include_unvalidated=parse_bool_arg("preview"))
    return jsonify({
        "organization_name": org,
        "scope_name": scope,
        "year": year,
        "items": [_present(r) for r in rows],
    }), 200
