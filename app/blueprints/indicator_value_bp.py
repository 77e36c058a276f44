"""
Indicator value blueprint — data entry and review workflow.

Endpoints:
    GET  /api/v1/organizations/<org>/values?year=&month=&scope=&process=
    PUT  /api/v1/organizations/<org>/values                  (by id or by key)
    GET  /api/v1/organizations/<org>/values/<id>
    GET  /api/v1/organizations/<org>/values/<id>/history
    POST /api/v1/organizations/<org>/values/submit
    POST /api/v1/organizations/<org>/values/validate
    POST /api/v1/organizations/<org>/values/reject

The acting identity comes from the X-User header (or ``actor`` in the body).
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.core.exceptions import ValidationError
from app.services import indicator_value_service as ivs
from app.services import value_workflow
from app.services.permission import load_actor
from app.utils.errors import register_error_handlers
from app.utils.helpers import current_user, parse_ids, parse_int_arg

logger = logging.getLogger(__name__)

indicator_value_bp = Blueprint("indicator_value_bp", __name__, url_prefix="/api/v1/organizations")
register_error_handlers(indicator_value_bp)

_KEY_FIELDS = ("scope_name", "process_code", "indicator_code", "year", "month")


def _serialize(placeholder, actor=None) -> dict:
    data = placeholder.to_dict()
    if isinstance(placeholder, ivs.Recorded):
        data["available_actions"] = value_workflow.available_actions(placeholder.value, actor)
    return data


# ═════════════════════════════════════════════════════════════════════════
# Data entry
# ═════════════════════════════════════════════════════════════════════════


@indicator_value_bp.route("/<org>/values", methods=["GET"])
def list_values(org):
    """Recorded values plus required-but-missing placeholders.

    Query params: year (required), month, scope, process (repeatable)
    """
    year = parse_int_arg("year", required=True)
    month = parse_int_arg("month")
    scope = request.args.get("scope") or None
    processes = request.args.getlist("process") or None

    actor = load_actor(current_user(), org)
    items = ivs.list_values(org, year, month=month, scope_name=scope, process_codes=processes)
    return jsonify({
        "items": [_serialize(p, actor) for p in items],
        "total": len(items),
        "missing": sum(1 for p in items if isinstance(p, ivs.Required)),
    }), 200


@indicator_value_bp.route("/<org>/values", methods=["PUT"])
def put_value(org):
    """Set a value.

    Body: {"id": 12, "value": 10.5}
       or {"scope_name", "process_code", "indicator_code", "year", "month", "value"}
    """
    data = request.get_json(silent=True) or {}
    if "value" not in data:
        raise ValidationError("value is required", details={"value": "required"})

    actor = load_actor(current_user(), org)
    if data.get("id") is not None:
        target = ivs.Recorded(ivs.get_value(org, data["id"]))
    else:
        missing = [f for f in _KEY_FIELDS if data.get(f) in (None, "")]
        if missing:
            raise ValidationError(
                "id or the full value key is required",
                details={f: "required" for f in missing},
            )
        target = ivs.get_or_create_placeholder(
            org,
            data["scope_name"],
            data["process_code"],
            data["indicator_code"],
            data["year"],
            data["month"],
        )

    row = ivs.set_value(target, data["value"], actor)
    return jsonify(_serialize(ivs.Recorded(row), actor)), 200


@indicator_value_bp.route("/<org>/values/<int:value_id>", methods=["GET"])
def get_value(org, value_id):
    actor = load_actor(current_user(), org)
    return jsonify(_serialize(ivs.Recorded(ivs.get_value(org, value_id)), actor)), 200


@indicator_value_bp.route("/<org>/values/<int:value_id>/history", methods=["GET"])
def get_history(org, value_id):
    entries = ivs.value_history(org, value_id)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Review workflow
# ═════════════════════════════════════════════════════════════════════════


@indicator_value_bp.route("/<org>/values/submit", methods=["POST"])
def submit_values(org):
    """Body: {"ids": [...]}"""
    data = request.get_json(silent=True) or {}
    ids = parse_ids(data)
    result = value_workflow.submit(org, ids, load_actor(current_user(), org))
    return jsonify(result), 200


@indicator_value_bp.route("/<org>/values/validate", methods=["POST"])
def validate_values(org):
    """Body: {"ids": [...], "comment"?}"""
    data = request.get_json(silent=True) or {}
    ids = parse_ids(data)
    result = value_workflow.validate(org, ids, load_actor(current_user(), org), comment=data.get("comment"))
    return jsonify(result), 200


@indicator_value_bp.route("/<org>/values/reject", methods=["POST"])
def reject_values(org):
    """Body: {"ids": [...], "comment"} — comment is mandatory."""
    data = request.get_json(silent=True) or {}
    # reject() checks the comment before the ids
    result = value_workflow.reject(
        org, data.get("ids") or [], load_actor(current_user(), org), comment=data.get("comment")
    )
    return jsonify(result), 200
