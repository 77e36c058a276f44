"""
Consolidation Engine — pure aggregation.

Folds leaf contributions (one per persisted value) into twelve monthly
figures and an annual total according to the indicator's consolidation
method. No database access; consolidation_service feeds it and caches the
result.

Values a site stores under several processes for the same month are first
added into one site value, so every method below works across sites.

Methods:
    sum      flow metric, None counted as 0 inside a month that has data
    last     stock metric, latest-updated contribution of the month
    average  mean of non-null contributions
    max/min  extreme of non-null contributions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.core.exceptions import ValidationError
from app.models.catalog import CONSOLIDATION_METHODS


@dataclass(frozen=True)
class LeafContribution:
    scope_name: str
    month: int
    value: float | None
    updated_at: datetime | None = None


@dataclass
class ConsolidationResult:
    method: str
    months: list = field(default_factory=lambda: [None] * 12)
    total: float | None = None
    site_names: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "consolidation_method": self.method,
            "months": list(self.months),
            "total_value": self.total,
            "site_names": list(self.site_names),
        }


def _sort_key(c: LeafContribution):
    # None timestamps sort first
    return (c.updated_at is not None, c.updated_at or datetime.min)


def _merge_sites(contributions: list[LeafContribution]) -> list[LeafContribution]:
    """One contribution per site: non-null values added, latest updated_at kept."""
    by_site: dict[str, list[LeafContribution]] = {}
    for c in contributions:
        by_site.setdefault(c.scope_name, []).append(c)

    merged = []
    for scope_name, parts in by_site.items():
        if len(parts) == 1:
            merged.append(parts[0])
            continue
        filled = [p.value for p in parts if p.value is not None]
        stamps = [p.updated_at for p in parts if p.updated_at is not None]
        merged.append(LeafContribution(
            scope_name=scope_name,
            month=parts[0].month,
            value=sum(filled) if filled else None,
            updated_at=max(stamps) if stamps else None,
        ))
    return merged


def _fold_month(method: str, contributions: list[LeafContribution]) -> float | None:
    if not contributions:
        return None
    if method == "sum":
        return sum(c.value or 0.0 for c in contributions)

    filled = [c for c in contributions if c.value is not None]
    if not filled:
        return None
    if method == "last":
        return max(filled, key=_sort_key).value

    values = [c.value for c in filled]
    if method == "average":
        return sum(values) / len(values)
    if method == "max":
        return max(values)
    return min(values)


def annual_total(method: str, months) -> float | None:
    """Annual figure of twelve monthly values.

    sum → sum of months, last → latest non-null month, average → mean of
    non-null months, max/min → extreme of non-null months. All-None → None.
    """
    present = [(i, m) for i, m in enumerate(months) if m is not None]
    if not present:
        return None
    values = [m for _, m in present]
    if method == "sum":
        return sum(values)
    if method == "last":
        return present[-1][1]
    if method == "average":
        return sum(values) / len(values)
    if method == "max":
        return max(values)
    if method == "min":
        return min(values)
    raise ValidationError(f"Unknown consolidation method: {method}", details={"method": method})


def consolidate(method: str, contributions) -> ConsolidationResult | None:
    """
    Aggregate leaf contributions of one node/indicator/year.

    Returns:
        ConsolidationResult, or None when no scope contributed a non-null
        value (an empty node yields no row).

    Raises:
        ValidationError: Unknown method or month outside 1..12.
    """
    if method not in CONSOLIDATION_METHODS:
        raise ValidationError(f"Unknown consolidation method: {method}", details={"method": method})

    by_month: dict[int, list[LeafContribution]] = {m: [] for m in range(1, 13)}
    for c in contributions:
        if c.month not in by_month:
            raise ValidationError("month must be between 1 and 12", details={"month": c.month})
        by_month[c.month].append(c)

    site_names = sorted({
        c.scope_name for month in by_month.values() for c in month if c.value is not None
    })
    if not site_names:
        return None

    months = [_fold_month(method, _merge_sites(by_month[m])) for m in range(1, 13)]
    # For "last" each month already holds its latest-updated value, so the
    # annual stock is simply the most recent month with data.
    total = annual_total(method, months)

    return ConsolidationResult(method=method, months=months, total=total, site_names=site_names)
