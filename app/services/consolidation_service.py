"""
Consolidation Service

Reads leaf values beneath a node, runs the pure consolidation engine and
keeps the result in ``consolidated_indicator_values``.

Cache rules:
  - A missing, stale or expired row is recomputed on read.
  - A recomputation with no contributing scope deletes the cached row.
  - Validating a value marks stale every covering node row for the value's
    year and the following year (whose previous_value depends on it).
  - Preview reads include unvalidated values and are never cached.

Usage:
    from app.services import consolidation_service as cs

    row = cs.consolidate_node("Acme", "organization", "Acme", "GHG01", 2024)
    rows = cs.list_consolidated("Acme", 2024, node_level="business_line")
    cs.refresh("Acme", year=2024)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.catalog import Indicator
from app.models.consolidation import CONSOLIDATION_NODE_LEVELS, ConsolidatedIndicatorValue
from app.models.indicator_value import IndicatorValue
from app.services import hierarchy_service
from app.services.consolidation_engine import ConsolidationResult, LeafContribution, consolidate
from app.services.performance import compute_performance, compute_variation, target_for

logger = logging.getLogger(__name__)


# ── Private helpers ──────────────────────────────────────────────────────────


def _get_indicator(indicator_code: str) -> Indicator:
    indicator = db.session.execute(
        select(Indicator).where(Indicator.code == indicator_code)
    ).scalar_one_or_none()
    if indicator is None:
        raise NotFoundError(resource="Indicator", resource_id=indicator_code)
    return indicator


def _resolve_node(organization_name: str, node_level: str, node_name: str | None) -> tuple[str, str]:
    if node_level not in CONSOLIDATION_NODE_LEVELS:
        raise ValidationError(
            "node_level must be one of: organization, business_line, subsidiary",
            details={"node_level": node_level},
        )
    if node_level == "organization":
        node_name = node_name or organization_name
    elif not node_name:
        raise ValidationError("node_name is required", details={"node_name": "required"})
    return node_level, node_name


def _leaf_contributions(
    organization_name: str,
    node_level: str,
    node_name: str,
    indicator_code: str,
    year: int,
    preview: bool,
) -> list[LeafContribution]:
    scopes = hierarchy_service.sites_under_node(organization_name, node_level, node_name)
    if node_level == "organization":
        scopes = scopes + [organization_name]
    if not scopes:
        return []

    stmt = select(IndicatorValue).where(
        IndicatorValue.organization_name == organization_name,
        IndicatorValue.indicator_code == indicator_code,
        IndicatorValue.year == year,
        IndicatorValue.scope_name.in_(scopes),
    )
    if preview:
        stmt = stmt.where(IndicatorValue.value.is_not(None))
    else:
        stmt = stmt.where(IndicatorValue.status == "validated")

    return [
        LeafContribution(r.scope_name, r.month, r.value, r.updated_at)
        for r in db.session.execute(stmt).scalars()
    ]


def _compute(
    organization_name: str,
    node_level: str,
    node_name: str,
    indicator: Indicator,
    year: int,
    preview: bool,
) -> ConsolidationResult | None:
    leaves = _leaf_contributions(organization_name, node_level, node_name, indicator.code, year, preview)
    return consolidate(indicator.consolidation_method, leaves)


def _annotate(organization_name, node_level, node_name, indicator, year, result, preview) -> dict:
    previous = _compute(organization_name, node_level, node_name, indicator, year - 1, preview)
    previous_total = previous.total if previous else None
    target = target_for(organization_name, indicator.code, year)
    return {
        "organization_name": organization_name,
        "node_level": node_level,
        "node_name": node_name,
        "indicator_code": indicator.code,
        "year": year,
        **result.to_dict(),
        "target_value": target,
        "previous_value": previous_total,
        "variation": compute_variation(result.total, previous_total),
        "performance": compute_performance(result.total, target),
    }


def _cached_row(organization_name, node_level, node_name, indicator_code, year):
    return db.session.execute(
        select(ConsolidatedIndicatorValue).where(
            ConsolidatedIndicatorValue.organization_name == organization_name,
            ConsolidatedIndicatorValue.node_level == node_level,
            ConsolidatedIndicatorValue.node_name == node_name,
            ConsolidatedIndicatorValue.indicator_code == indicator_code,
            ConsolidatedIndicatorValue.year == year,
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _is_fresh(row: ConsolidatedIndicatorValue) -> bool:
    if row.is_stale:
        return False
    ttl = current_app.config.get("CONSOLIDATION_CACHE_TTL", 0) if has_app_context() else 0
    if not ttl or row.computed_at is None:
        return True
    computed_at = row.computed_at
    if computed_at.tzinfo is None:
        computed_at = computed_at.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) - computed_at < timedelta(seconds=ttl)


def _store(annotated: dict | None, organization_name, node_level, node_name, indicator_code, year):
    """Upsert (or delete, when empty) the cached row. Commits."""
    row = _cached_row(organization_name, node_level, node_name, indicator_code, year)
    if annotated is None:
        if row is not None:
            db.session.delete(row)
            db.session.commit()
        return None

    if row is None:
        row = ConsolidatedIndicatorValue(
            organization_name=organization_name,
            node_level=node_level,
            node_name=node_name,
            indicator_code=indicator_code,
            year=year,
        )
        db.session.add(row)

    row.consolidation_method = annotated["consolidation_method"]
    row.months = annotated["months"]
    row.total_value = annotated["total_value"]
    row.site_names = annotated["site_names"]
    row.target_value = annotated["target_value"]
    row.previous_value = annotated["previous_value"]
    row.variation = annotated["variation"]
    row.performance = annotated["performance"]
    row.is_stale = False
    row.computed_at = datetime.now(timezone.utc)

    try:
        db.session.commit()
    except IntegrityError:
        # Another reader cached the same key first; its result is equivalent.
        db.session.rollback()
        row = _cached_row(organization_name, node_level, node_name, indicator_code, year)
    return row


# ── Public API ───────────────────────────────────────────────────────────────


def consolidate_node(
    organization_name: str,
    node_level: str,
    node_name: str | None,
    indicator_code: str,
    year: int,
    preview: bool = False,
) -> dict | None:
    """
    Consolidated, annotated figures of one indicator at one node.

    Args:
        node_level: organization | business_line | subsidiary.
        preview: Include unvalidated non-null values; never cached.

    Returns:
        Row dict (months, total_value, site_names, target_value,
        previous_value, variation, performance, ...) or None when no scope
        beneath the node reported the indicator.

    Raises:
        NotFoundError: Unknown organization, node or indicator.
        ValidationError: Bad node_level.
    """
    node_level, node_name = _resolve_node(organization_name, node_level, node_name)
    indicator = _get_indicator(indicator_code)

    if not preview:
        cached = _cached_row(organization_name, node_level, node_name, indicator_code, year)
        if cached is not None and _is_fresh(cached):
            return cached.to_dict()

    result = _compute(organization_name, node_level, node_name, indicator, year, preview)
    annotated = None
    if result is not None:
        annotated = _annotate(organization_name, node_level, node_name, indicator, year, result, preview)

    if preview:
        if annotated is not None:
            annotated["preview"] = True
        return annotated

    row = _store(annotated, organization_name, node_level, node_name, indicator_code, year)
    logger.debug(
        "Recomputed %s:%s %s %s",
        node_level, node_name, indicator_code, year,
        extra={"organization_name": organization_name},
    )
    return row.to_dict() if row is not None else None


def reported_indicators(organization_name: str, year: int) -> list[str]:
    """Catalog indicators with at least one stored value in the year."""
    return sorted(
        db.session.execute(
            select(IndicatorValue.indicator_code)
            .join(Indicator, Indicator.code == IndicatorValue.indicator_code)
            .where(
                IndicatorValue.organization_name == organization_name,
                IndicatorValue.year == year,
            )
            .distinct()
        ).scalars()
    )


def list_consolidated(
    organization_name: str,
    year: int,
    node_level: str | None = None,
    node_name: str | None = None,
    indicator_code: str | None = None,
    preview: bool = False,
) -> list[dict]:
    """Every non-empty node × indicator row of the organization for a year."""
    nodes = hierarchy_service.consolidation_nodes(organization_name)
    if node_level is not None:
        if node_level not in CONSOLIDATION_NODE_LEVELS:
            raise ValidationError(
                "node_level must be one of: organization, business_line, subsidiary",
                details={"node_level": node_level},
            )
        nodes = [n for n in nodes if n[0] == node_level]
    if node_name is not None:
        nodes = [n for n in nodes if n[1] == node_name]
        if not nodes:
            raise NotFoundError(resource=node_level or "Node", resource_id=node_name)

    codes = [indicator_code] if indicator_code else reported_indicators(organization_name, year)
    rows = []
    for level, name in nodes:
        for code in codes:
            row = consolidate_node(organization_name, level, name, code, year, preview=preview)
            if row is not None:
                rows.append(row)
    return rows


def refresh(organization_name: str, year: int | None = None) -> dict:
    """Drop and recompute every cached row of the organization (optionally one year)."""
    hierarchy_service.get_organization(organization_name)
    if year is None:
        years = sorted(
            db.session.execute(
                select(IndicatorValue.year)
                .where(IndicatorValue.organization_name == organization_name)
                .distinct()
            ).scalars()
        )
    else:
        years = [year]

    stmt = delete(ConsolidatedIndicatorValue).where(
        ConsolidatedIndicatorValue.organization_name == organization_name
    )
    if year is not None:
        stmt = stmt.where(ConsolidatedIndicatorValue.year == year)
    db.session.execute(stmt)
    db.session.commit()

    count = sum(len(list_consolidated(organization_name, y)) for y in years)
    logger.info(
        "Consolidation refreshed: years=%s rows=%d",
        years, count,
        extra={"organization_name": organization_name, "action": "refresh"},
    )
    return {"organization_name": organization_name, "years": years, "rows": count}


def mark_stale(organization_name: str, indicator_code: str | None = None, year: int | None = None) -> int:
    """Flag cached rows stale. Does not commit."""
    stmt = update(ConsolidatedIndicatorValue).where(
        ConsolidatedIndicatorValue.organization_name == organization_name
    )
    if indicator_code is not None:
        stmt = stmt.where(ConsolidatedIndicatorValue.indicator_code == indicator_code)
    if year is not None:
        stmt = stmt.where(ConsolidatedIndicatorValue.year == year)
    result = db.session.execute(
        stmt.values(is_stale=True).execution_options(synchronize_session=False)
    )
    return result.rowcount


def invalidate_for_values(organization_name: str, values) -> int:
    """Mark stale the cached rows of every node covering the given values,
    for their year and the following year. Does not commit."""
    conditions = []
    for value in values:
        nodes = hierarchy_service.covering_nodes(organization_name, value.scope_name)
        for level, name in nodes:
            conditions.append(and_(
                ConsolidatedIndicatorValue.node_level == level,
                ConsolidatedIndicatorValue.node_name == name,
                ConsolidatedIndicatorValue.indicator_code == value.indicator_code,
                ConsolidatedIndicatorValue.year.in_([value.year, value.year + 1]),
            ))
    if not conditions:
        return 0
    result = db.session.execute(
        update(ConsolidatedIndicatorValue)
        .where(ConsolidatedIndicatorValue.organization_name == organization_name, or_(*conditions))
        .values(is_stale=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
