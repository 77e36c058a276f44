"""
Completion summary: how much of the required reporting each scope has filled.

A required key is filled when its row exists with a non-null value, whatever
its status; draft, submitted and rejected rows are reported here as work in
progress even though consolidation ignores them.
"""

from __future__ import annotations

from collections import Counter

from sqlalchemy import select

from app.models import db
from app.models.catalog import ScopeProcess
from app.models.indicator_value import VALUE_STATUSES, IndicatorValue
from app.services import hierarchy_service
from app.services.indicator_value_service import validate_period


def completion_rate(filled: int, required: int) -> float:
    if required <= 0:
        return 0.0
    return round(filled / required * 100, 1)


def completion_summary(organization_name: str, year: int, month: int | None = None) -> list[dict]:
    """
    Per-scope completion for a year (or a single month).

    Returns:
        [{"scope_name", "scope_type", "active_processes", "required",
          "filled", "by_status": {draft, submitted, validated, rejected},
          "completion_rate"}]

    Raises:
        NotFoundError: Unknown organization.
        ValidationError: Month outside 1..12.
    """
    if month is not None:
        year, month = validate_period(year, month)
    months = [month] if month is not None else list(range(1, 13))

    required = hierarchy_service.required_set(organization_name, year)
    required_by_scope: dict[str, set] = {}
    for scope, process_code, indicator_code in required:
        keys = required_by_scope.setdefault(scope, set())
        for m in months:
            keys.add((process_code, indicator_code, m))

    stmt = select(IndicatorValue).where(
        IndicatorValue.organization_name == organization_name,
        IndicatorValue.year == year,
    )
    if month is not None:
        stmt = stmt.where(IndicatorValue.month == month)
    rows = db.session.execute(stmt).scalars().all()

    assignments = db.session.execute(
        select(ScopeProcess).where(
            ScopeProcess.organization_name == organization_name,
            ScopeProcess.is_active.is_(True),
        )
    ).scalars().all()
    active = Counter(a.scope_name for a in assignments if a.covers_year(year))

    summary = []
    for scope in hierarchy_service.scopes_of(organization_name):
        name = scope["scope_name"]
        keys = required_by_scope.get(name, set())
        scope_rows = [
            r for r in rows
            if r.scope_name == name and (r.process_code, r.indicator_code, r.month) in keys
        ]
        by_status = Counter(r.status for r in scope_rows)
        filled = sum(1 for r in scope_rows if r.value is not None)
        summary.append({
            "scope_name": name,
            "scope_type": scope["scope_type"],
            "year": year,
            "month": month,
            "active_processes": active.get(name, 0),
            "required": len(keys),
            "filled": filled,
            "by_status": {status: by_status.get(status, 0) for status in VALUE_STATUSES},
            "completion_rate": completion_rate(filled, len(keys)),
        })
    return summary
