"""
Indicator Value Store

Holds exactly one authoritative record per
(scope, process, indicator, year, month) and exposes required-but-missing
keys as typed placeholders instead of persisting empty rows.

Placeholders:
    Recorded(value)   — a persisted IndicatorValue row
    Required(...)     — a key the scope must report but nobody has entered yet

Usage:
    from app.services.indicator_value_service import get_or_create_placeholder, set_value

    target = get_or_create_placeholder("Acme", "Acme-North", "ENV", "GHG01", 2024, 1)
    row = set_value(target, "100", actor)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from app.models import db
from app.models.catalog import Indicator, Process
from app.models.indicator_value import (
    EDITABLE_STATUSES,
    IndicatorValue,
    ValueHistory,
    write_history,
)
from app.services import hierarchy_service
from app.services.permission import Actor, check_allowed

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2999


# ── Placeholder union ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Recorded:
    value: IndicatorValue

    @property
    def key(self) -> tuple:
        return self.value.key

    def to_dict(self) -> dict:
        return {"kind": "recorded", **self.value.to_dict()}


@dataclass(frozen=True)
class Required:
    organization_name: str
    scope_name: str
    process_code: str
    indicator_code: str
    year: int
    month: int

    @property
    def key(self) -> tuple:
        return (self.scope_name, self.process_code, self.indicator_code, self.year, self.month)

    def to_dict(self) -> dict:
        return {
            "kind": "required",
            "id": None,
            "organization_name": self.organization_name,
            "scope_name": self.scope_name,
            "process_code": self.process_code,
            "indicator_code": self.indicator_code,
            "year": self.year,
            "month": self.month,
            "value": None,
            "status": None,
        }


Placeholder = Union[Recorded, Required]


# ── Validation helpers ───────────────────────────────────────────────────────


def parse_value(raw) -> float | None:
    """Empty string / None → None; anything else must be a finite number."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError("value must be numeric", details={"value": raw})
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == "":
            return None
    try:
        parsed = float(raw)
    except (TypeError, ValueError):
        raise ValidationError("value must be numeric", details={"value": raw})
    if not math.isfinite(parsed):
        raise ValidationError("value must be numeric", details={"value": raw})
    return parsed


def validate_period(year, month) -> tuple[int, int]:
    errors = {}
    try:
        year = int(year)
        if not MIN_YEAR <= year <= MAX_YEAR:
            errors["year"] = f"must be between {MIN_YEAR} and {MAX_YEAR}"
    except (TypeError, ValueError):
        errors["year"] = "must be an integer"
    try:
        month = int(month)
        if not 1 <= month <= 12:
            errors["month"] = "must be between 1 and 12"
    except (TypeError, ValueError):
        errors["month"] = "must be an integer"
    if errors:
        raise ValidationError("Invalid reporting period", details=errors)
    return year, month


def _find(organization_name, scope_name, process_code, indicator_code, year, month):
    return db.session.execute(
        select(IndicatorValue).where(
            IndicatorValue.organization_name == organization_name,
            IndicatorValue.scope_name == scope_name,
            IndicatorValue.process_code == process_code,
            IndicatorValue.indicator_code == indicator_code,
            IndicatorValue.year == year,
            IndicatorValue.month == month,
        )
    ).scalar_one_or_none()


def _check_catalog(process_code: str, indicator_code: str) -> None:
    """The indicator must exist and belong to the process it is reported under."""
    indicator = db.session.execute(
        select(Indicator).where(Indicator.code == indicator_code)
    ).scalar_one_or_none()
    if indicator is None:
        raise NotFoundError(resource="Indicator", resource_id=indicator_code)
    process = db.session.execute(
        select(Process).where(Process.code == process_code)
    ).scalar_one_or_none()
    if process is None:
        raise NotFoundError(resource="Process", resource_id=process_code)
    if indicator_code not in (process.indicator_codes or []):
        raise ValidationError(
            f"Indicator {indicator_code} is not reported under process {process_code}",
            details={"indicator_code": indicator_code, "process_code": process_code},
        )


# ── Reads ────────────────────────────────────────────────────────────────────


def get_value(organization_name: str, value_id: int) -> IndicatorValue:
    """Return a value owned by the organization.

    Raises:
        NotFoundError: Missing id or id owned by another organization.
    """
    row = db.session.execute(
        select(IndicatorValue).where(
            IndicatorValue.id == value_id,
            IndicatorValue.organization_name == organization_name,
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(
            resource="IndicatorValue", resource_id=value_id, organization_name=organization_name
        )
    return row


def get_or_create_placeholder(
    organization_name: str,
    scope_name: str,
    process_code: str,
    indicator_code: str,
    year: int,
    month: int,
) -> Placeholder:
    """Recorded(row) when the key exists, else an unpersisted Required."""
    year, month = validate_period(year, month)
    row = _find(organization_name, scope_name, process_code, indicator_code, year, month)
    if row is not None:
        return Recorded(row)
    return Required(organization_name, scope_name, process_code, indicator_code, year, month)


def list_values(
    organization_name: str,
    year: int,
    month: int | None = None,
    scope_name: str | None = None,
    process_codes=None,
) -> list[Placeholder]:
    """Every recorded row of the period plus a Required for each required key
    without one. Sorted by (scope, process, indicator, month)."""
    hierarchy_service.get_organization(organization_name)
    months = [month] if month is not None else list(range(1, 13))
    if month is not None:
        validate_period(year, month)

    stmt = select(IndicatorValue).where(
        IndicatorValue.organization_name == organization_name,
        IndicatorValue.year == year,
    )
    if month is not None:
        stmt = stmt.where(IndicatorValue.month == month)
    if scope_name is not None:
        stmt = stmt.where(IndicatorValue.scope_name == scope_name)
    if process_codes:
        stmt = stmt.where(IndicatorValue.process_code.in_(list(process_codes)))

    by_key = {row.key: Recorded(row) for row in db.session.execute(stmt).scalars()}

    for scope, process_code, indicator_code in hierarchy_service.required_set(
        organization_name, year, scope_name=scope_name
    ):
        if process_codes and process_code not in process_codes:
            continue
        for m in months:
            key = (scope, process_code, indicator_code, year, m)
            if key not in by_key:
                by_key[key] = Required(organization_name, scope, process_code, indicator_code, year, m)

    return [by_key[k] for k in sorted(by_key, key=lambda k: (k[0], k[1], k[2], k[4]))]


def value_history(organization_name: str, value_id: int) -> list[ValueHistory]:
    """History rows of a value, oldest first."""
    get_value(organization_name, value_id)
    return db.session.execute(
        select(ValueHistory)
        .where(ValueHistory.indicator_value_id == value_id)
        .order_by(ValueHistory.created_at, ValueHistory.id)
    ).scalars().all()


# ── Writes ───────────────────────────────────────────────────────────────────


def _insert(target: Required, value: float | None, actor: Actor) -> IndicatorValue | None:
    """Insert a draft row. Returns None when another writer won the key."""
    row = IndicatorValue(
        organization_name=target.organization_name,
        scope_name=target.scope_name,
        scope_type=hierarchy_service.scope_type_of(target.organization_name, target.scope_name),
        process_code=target.process_code,
        indicator_code=target.indicator_code,
        year=target.year,
        month=target.month,
        value=value,
        status="draft",
        created_by=actor.email,
        updated_by=actor.email,
    )
    try:
        db.session.add(row)
        db.session.flush()  # unique key decides the race
    except IntegrityError:
        db.session.rollback()
        logger.info(
            "Concurrent insert on %s, falling back to update",
            target.key,
            extra={"organization_name": target.organization_name},
        )
        return None

    write_history(
        value_id=row.id,
        organization_name=row.organization_name,
        change_type="create",
        changed_by=actor.email,
        new_value=value,
        new_status="draft",
    )
    return row


def _update(row: IndicatorValue, value: float | None, actor: Actor) -> IndicatorValue:
    old_value, old_status = row.value, row.status
    if old_status not in EDITABLE_STATUSES:
        raise InvalidTransitionError(row.id, "edit", old_status, "only draft or rejected values can be edited")

    result = db.session.execute(
        update(IndicatorValue)
        .where(
            IndicatorValue.id == row.id,
            IndicatorValue.status.in_(EDITABLE_STATUSES),
        )
        .values(
            value=value,
            status="draft",
            updated_by=actor.email,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.refresh(row)
        raise InvalidTransitionError(row.id, "edit", row.status, "value changed concurrently")

    write_history(
        value_id=row.id,
        organization_name=row.organization_name,
        change_type="update",
        changed_by=actor.email,
        old_value=old_value,
        new_value=value,
        old_status=old_status,
        new_status="draft",
    )
    db.session.flush()
    db.session.refresh(row)
    return row


def set_value(target, new_value, actor: Actor) -> IndicatorValue:
    """
    Record a value for a key, creating the row on first write.

    Args:
        target: A value id, a Recorded or a Required placeholder.
        new_value: Number, numeric string, or empty/None to clear.
        actor: Must hold the contributor role on the process and scope.

    Returns:
        The persisted row, status ``draft``.

    Raises:
        ValidationError: Non-numeric value, invalid period, or an indicator
            the process does not own.
        InvalidTransitionError: Row is submitted or validated.
        ForbiddenError: Actor is not a contributor.
        NotFoundError: Unknown value id, scope, process or indicator.
    """
    value = parse_value(new_value)

    if isinstance(target, Required):
        validate_period(target.year, target.month)
        if not hierarchy_service.is_valid_scope(target.organization_name, target.scope_name):
            raise NotFoundError(
                resource="Scope", resource_id=target.scope_name,
                organization_name=target.organization_name,
            )
        _check_catalog(target.process_code, target.indicator_code)
        check_allowed(actor, target.organization_name, target.scope_name, target.process_code, "edit")
        row = _insert(target, value, actor)
        change = "create"
        if row is None:
            row = _find(
                target.organization_name, target.scope_name, target.process_code,
                target.indicator_code, target.year, target.month,
            )
            row = _update(row, value, actor)
            change = "update"
    else:
        if isinstance(target, Recorded):
            row = target.value
        else:
            organization_name = actor.organization_name
            if organization_name is None:
                raise NotFoundError(resource="IndicatorValue", resource_id=target)
            row = get_value(organization_name, target)
        check_allowed(actor, row.organization_name, row.scope_name, row.process_code, "edit")
        row = _update(row, value, actor)
        change = "update"

    db.session.commit()
    logger.info(
        "Indicator value %s: id=%s key=%s value=%s",
        change, row.id, row.key, value,
        extra={"organization_name": row.organization_name, "action": "edit"},
    )
    return row
