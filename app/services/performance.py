"""
Performance Calculator

Annotates annual figures with variation against the previous year and
performance against the organization's target. Pure numeric helpers plus
``scope_dashboard`` which reads raw (non-consolidated) values for one scope.

Qualitative bands are a presentation concern and live in the HTTP layer.
"""

from __future__ import annotations

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.catalog import Indicator, IndicatorTarget
from app.models.indicator_value import IndicatorValue
from app.services import hierarchy_service
from app.services.consolidation_engine import annual_total

__all__ = [
    "annual_total",
    "compute_variation",
    "compute_performance",
    "monthly_average",
    "target_for",
    "scope_dashboard",
]


def compute_variation(current: float | None, previous: float | None) -> float | None:
    """(current - previous) / previous × 100; None when either side is missing or previous is 0."""
    if current is None or previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


def compute_performance(current: float | None, target: float | None) -> float | None:
    """current / target × 100 for a positive target. Not clamped."""
    if current is None or target is None or target <= 0:
        return None
    return current / target * 100


def monthly_average(months) -> float | None:
    present = [m for m in months if m is not None]
    if not present:
        return None
    return sum(present) / len(present)


def target_for(organization_name: str, indicator_code: str, year: int) -> float | None:
    return db.session.execute(
        select(IndicatorTarget.target_value).where(
            IndicatorTarget.organization_name == organization_name,
            IndicatorTarget.indicator_code == indicator_code,
            IndicatorTarget.year == year,
        )
    ).scalar_one_or_none()


def _monthly_grid(rows) -> dict:
    grid: dict[tuple[str, str], list] = {}
    for row in rows:
        months = grid.setdefault((row.process_code, row.indicator_code), [None] * 12)
        months[row.month - 1] = row.value
    return grid


def scope_dashboard(
    organization_name: str,
    scope_name: str,
    year: int,
    include_unvalidated: bool = False,
) -> list[dict]:
    """
    Raw per-process/indicator performance rows of one scope.

    Each row: months, total (per the indicator's method), monthly average,
    target, previous-year total, variation, performance. Only validated
    values count unless ``include_unvalidated``.

    Raises:
        NotFoundError: Unknown organization or scope.
    """
    if not hierarchy_service.is_valid_scope(organization_name, scope_name):
        raise NotFoundError(resource="Scope", resource_id=scope_name, organization_name=organization_name)

    def _rows(y):
        stmt = select(IndicatorValue).where(
            IndicatorValue.organization_name == organization_name,
            IndicatorValue.scope_name == scope_name,
            IndicatorValue.year == y,
        )
        if include_unvalidated:
            stmt = stmt.where(IndicatorValue.value.is_not(None))
        else:
            stmt = stmt.where(IndicatorValue.status == "validated")
        return db.session.execute(stmt).scalars().all()

    current = _monthly_grid(_rows(year))
    previous = _monthly_grid(_rows(year - 1))

    # Keys required this year appear even before any value is entered.
    for scope, process_code, indicator_code in hierarchy_service.required_set(
        organization_name, year, scope_name=scope_name
    ):
        current.setdefault((process_code, indicator_code), [None] * 12)

    codes = {code for _, code in current}
    indicators = {
        ind.code: ind
        for ind in db.session.execute(select(Indicator).where(Indicator.code.in_(codes))).scalars()
    } if codes else {}

    result = []
    for (process_code, indicator_code), months in sorted(current.items()):
        indicator = indicators.get(indicator_code)
        method = indicator.consolidation_method if indicator else "sum"
        total = annual_total(method, months)
        prev_months = previous.get((process_code, indicator_code))
        previous_total = annual_total(method, prev_months) if prev_months else None
        target = target_for(organization_name, indicator_code, year)
        result.append({
            "scope_name": scope_name,
            "process_code": process_code,
            "indicator_code": indicator_code,
            "indicator_name": indicator.name if indicator else None,
            "unit": indicator.unit if indicator else None,
            "axis": indicator.axis if indicator else None,
            "consolidation_method": method,
            "year": year,
            "months": months,
            "total_value": total,
            "monthly_average": monthly_average(months),
            "target_value": target,
            "previous_value": previous_total,
            "variation": compute_variation(total, previous_total),
            "performance": compute_performance(total, target),
        })
    return result
