"""
Hierarchy blueprint — organization tree and reporting obligations.

Endpoints:
    GET /api/v1/organizations/<org>/hierarchy
    GET /api/v1/organizations/<org>/sites/<site>/ancestry
    GET /api/v1/organizations/<org>/required?year=
    GET /api/v1/organizations/<org>/completion?year=&month=
"""

import logging

from flask import Blueprint, jsonify, request

from app.services import hierarchy_service
from app.services.completion_service import completion_summary
from app.utils.errors import register_error_handlers
from app.utils.helpers import parse_int_arg

logger = logging.getLogger(__name__)

hierarchy_bp = Blueprint("hierarchy_bp", __name__, url_prefix="/api/v1/organizations")
register_error_handlers(hierarchy_bp)


@hierarchy_bp.route("/<org>/hierarchy", methods=["GET"])
def get_hierarchy(org):
    return jsonify(hierarchy_service.list_nodes(org)), 200


@hierarchy_bp.route("/<org>/sites/<site>/ancestry", methods=["GET"])
def get_ancestry(org, site):
    return jsonify({"site": site, "ancestry": hierarchy_service.site_ancestry(org, site)}), 200


@hierarchy_bp.route("/<org>/required", methods=["GET"])
def get_required(org):
    """Required (scope, process, indicator) triples for a year.

    Query params: year (required), scope (optional)
    """
    year = parse_int_arg("year", required=True)
    scope = request.args.get("scope") or None
    triples = hierarchy_service.required_set(org, year, scope_name=scope)
    return jsonify({
        "organization_name": org,
        "year": year,
        "items": [
            {"scope_name": s, "process_code": p, "indicator_code": i}
            for s, p, i in triples
        ],
        "total": len(triples),
    }), 200


@hierarchy_bp.route("/<org>/completion", methods=["GET"])
def get_completion(org):
    year = parse_int_arg("year", required=True)
    month = parse_int_arg("month")
    return jsonify({
        "organization_name": org,
        "year": year,
        "month": month,
        "scopes": completion_summary(org, year, month),
    }), 200
