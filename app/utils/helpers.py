"""Shared request helpers for the API blueprints.

current_user:    acting identity from X-User (no auth enforcement)
parse_int_arg:   integer query parameter, raises ValidationError on bad input
parse_bool_arg:  "true/1/yes" style flags
parse_ids:       id list from a JSON body
"""
import logging

from flask import request

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def current_user():
    """Best-effort current user extraction (no auth enforcement).

    Order: X-User header, X-Forwarded-User header, ``actor`` in the JSON body.
    """
    data = request.get_json(silent=True) or {}
    return (
        request.headers.get("X-User", "")
        or request.headers.get("X-Forwarded-User", "")
        or (data.get("actor") if isinstance(data, dict) else "")
        or "anonymous"
    ).strip()


def parse_int_arg(name, *, required=False, default=None):
    """Read an integer query parameter.

    Missing and not required → ``default``. Non-integer → ValidationError.
    """
    raw = request.args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{name} is required", details={name: "required"})
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer", details={name: raw}) from exc


def parse_bool_arg(name, default=False):
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def parse_ids(data):
    """Extract a non-empty ``ids`` list from a JSON body."""
    ids = data.get("ids") if isinstance(data, dict) else None
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty list", details={"ids": "required"})
    return ids
