"""
Catalog Service — administrator operations on the reporting referential.

Creates organizations, hierarchy nodes, processes, indicators, process
assignments, user roles and targets. The value lifecycle only reads these;
every write here invalidates the organization's cached hierarchy and
required sets, and marks affected consolidated rows stale.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import InvalidHierarchyError, NotFoundError, ValidationError
from app.models import db
from app.models.catalog import (
    CONSOLIDATION_METHODS,
    INDICATOR_AXES,
    INDICATOR_FREQUENCIES,
    INDICATOR_TYPES,
    USER_PROCESS_ROLES,
    Indicator,
    IndicatorTarget,
    Process,
    ScopeProcess,
    UserProcess,
)
from app.models.organization import ORGANIZATION_TYPES, BusinessLine, Organization, Site, Subsidiary
from app.services import cache_service, hierarchy_service
from app.services.consolidation_service import mark_stale
from app.services.indicator_value_service import parse_value, validate_period

logger = logging.getLogger(__name__)


def _require(value, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", details={field: "required"})
    return str(value).strip()


def _one_of(value, allowed, field: str):
    if value is not None and value not in allowed:
        raise ValidationError(
            f"{field} must be one of: {', '.join(sorted(allowed))}", details={field: value}
        )
    return value


def _exists(model, **filters) -> bool:
    return db.session.execute(select(model.id).filter_by(**filters)).first() is not None


def _catalog_changed(organization_name: str) -> None:
    mark_stale(organization_name)
    db.session.commit()
    cache_service.invalidate_organization_cache(organization_name)


# ── Hierarchy ────────────────────────────────────────────────────────────────


def create_organization(name, organization_type="simple", description="") -> Organization:
    name = _require(name, "name")
    _one_of(organization_type, ORGANIZATION_TYPES, "organization_type")
    if _exists(Organization, name=name):
        raise ValidationError(f"Organization '{name}' already exists", details={"name": "duplicate"})
    org = Organization(name=name, organization_type=organization_type, description=description or "")
    db.session.add(org)
    db.session.commit()
    cache_service.invalidate_organization_cache(name)
    logger.info("Organization created", extra={"organization_name": name})
    return org


def create_business_line(organization_name, name, description="") -> BusinessLine:
    hierarchy_service.get_organization(organization_name)
    name = _require(name, "name")
    if _exists(BusinessLine, name=name):
        raise ValidationError(f"Business line '{name}' already exists", details={"name": "duplicate"})
    node = BusinessLine(organization_name=organization_name, name=name, description=description or "")
    db.session.add(node)
    _catalog_changed(organization_name)
    return node


def create_subsidiary(organization_name, name, business_line_name=None, description="") -> Subsidiary:
    hierarchy_service.get_organization(organization_name)
    name = _require(name, "name")
    if _exists(Subsidiary, name=name):
        raise ValidationError(f"Subsidiary '{name}' already exists", details={"name": "duplicate"})
    if business_line_name and not _exists(
        BusinessLine, name=business_line_name, organization_name=organization_name
    ):
        raise InvalidHierarchyError(name, f"business line '{business_line_name}' not found in {organization_name}")
    node = Subsidiary(
        organization_name=organization_name,
        name=name,
        business_line_name=business_line_name,
        description=description or "",
    )
    db.session.add(node)
    _catalog_changed(organization_name)
    return node


def create_site(
    organization_name,
    name,
    business_line_name=None,
    subsidiary_name=None,
    address=None,
    city=None,
    country=None,
) -> Site:
    """
    Create a site. Declared parents must resolve inside the organization.

    Raises:
        InvalidHierarchyError: Unknown parent or business line disagreeing
            with the subsidiary's business line.
    """
    hierarchy_service.get_organization(organization_name)
    name = _require(name, "name")
    if _exists(Site, name=name):
        raise ValidationError(f"Site '{name}' already exists", details={"name": "duplicate"})

    if subsidiary_name:
        sub = db.session.execute(
            select(Subsidiary).where(
                Subsidiary.name == subsidiary_name,
                Subsidiary.organization_name == organization_name,
            )
        ).scalar_one_or_none()
        if sub is None:
            raise InvalidHierarchyError(name, f"subsidiary '{subsidiary_name}' not found in {organization_name}")
        if business_line_name and sub.business_line_name and business_line_name != sub.business_line_name:
            raise InvalidHierarchyError(
                name, f"business line '{business_line_name}' conflicts with subsidiary '{subsidiary_name}'"
            )
    if business_line_name and not _exists(
        BusinessLine, name=business_line_name, organization_name=organization_name
    ):
        raise InvalidHierarchyError(name, f"business line '{business_line_name}' not found in {organization_name}")

    site = Site(
        organization_name=organization_name,
        name=name,
        business_line_name=business_line_name,
        subsidiary_name=subsidiary_name,
        address=address,
        city=city,
        country=country,
    )
    db.session.add(site)
    _catalog_changed(organization_name)
    logger.info("Site created: %s", name, extra={"organization_name": organization_name})
    return site


# ── Processes & indicators ───────────────────────────────────────────────────


def create_indicator(
    code,
    name,
    unit="",
    consolidation_method="sum",
    axis=None,
    indicator_type="primary",
    frequency="monthly",
    formula=None,
    description="",
) -> Indicator:
    code = _require(code, "code")
    name = _require(name, "name")
    _one_of(consolidation_method, CONSOLIDATION_METHODS, "consolidation_method")
    _one_of(axis, INDICATOR_AXES, "axis")
    _one_of(indicator_type, INDICATOR_TYPES, "indicator_type")
    _one_of(frequency, INDICATOR_FREQUENCIES, "frequency")
    if _exists(Indicator, code=code):
        raise ValidationError(f"Indicator '{code}' already exists", details={"code": "duplicate"})
    indicator = Indicator(
        code=code,
        name=name,
        unit=unit or "",
        consolidation_method=consolidation_method,
        axis=axis,
        indicator_type=indicator_type,
        frequency=frequency,
        formula=formula,
        description=description or "",
    )
    db.session.add(indicator)
    db.session.commit()
    cache_service.invalidate_required_sets()
    return indicator


def create_process(code, name, indicator_codes=(), description="") -> Process:
    code = _require(code, "code")
    name = _require(name, "name")
    if _exists(Process, code=code):
        raise ValidationError(f"Process '{code}' already exists", details={"code": "duplicate"})
    process = Process(code=code, name=name, indicator_codes=list(indicator_codes), description=description or "")
    db.session.add(process)
    db.session.commit()
    cache_service.invalidate_required_sets()
    return process


def _get_process(process_code) -> Process:
    process = db.session.execute(select(Process).where(Process.code == process_code)).scalar_one_or_none()
    if process is None:
        raise NotFoundError(resource="Process", resource_id=process_code)
    return process


# ── Assignments ──────────────────────────────────────────────────────────────


def assign_process_to_scope(
    organization_name,
    scope_name,
    process_code,
    start_year=None,
    end_year=None,
    is_active=True,
) -> ScopeProcess:
    """Make a process required for a site (or the organization itself). Idempotent."""
    org = hierarchy_service.get_organization(organization_name)
    _get_process(process_code)
    if scope_name != org.name and not _exists(Site, name=scope_name, organization_name=organization_name):
        raise NotFoundError(resource="Site", resource_id=scope_name, organization_name=organization_name)

    assignment = db.session.execute(
        select(ScopeProcess).where(
            ScopeProcess.organization_name == organization_name,
            ScopeProcess.scope_name == scope_name,
            ScopeProcess.process_code == process_code,
        )
    ).scalar_one_or_none()
    if assignment is None:
        assignment = ScopeProcess(
            organization_name=organization_name,
            scope_name=scope_name,
            scope_type=hierarchy_service.scope_type_of(organization_name, scope_name),
            process_code=process_code,
        )
        db.session.add(assignment)
    assignment.is_active = is_active
    assignment.start_year = start_year
    assignment.end_year = end_year
    _catalog_changed(organization_name)
    return assignment


def assign_user_process(
    organization_name,
    email,
    process_code,
    role,
    scope_name=None,
    is_active=True,
) -> UserProcess:
    """Grant a contributor/validator role on a process, optionally for one scope only."""
    hierarchy_service.get_organization(organization_name)
    _get_process(process_code)
    email = _require(email, "email")
    _one_of(role, USER_PROCESS_ROLES, "role")
    if role is None:
        raise ValidationError("role is required", details={"role": "required"})

    grant = db.session.execute(
        select(UserProcess).where(
            UserProcess.organization_name == organization_name,
            UserProcess.email == email,
            UserProcess.process_code == process_code,
            UserProcess.role == role,
            UserProcess.scope_name.is_(None) if scope_name is None else UserProcess.scope_name == scope_name,
        )
    ).scalar_one_or_none()
    if grant is None:
        grant = UserProcess(
            organization_name=organization_name,
            email=email,
            process_code=process_code,
            role=role,
            scope_name=scope_name,
        )
        db.session.add(grant)
    grant.is_active = is_active
    db.session.commit()
    logger.info(
        "Role %s granted on %s", role, process_code,
        extra={"organization_name": organization_name, "actor": email},
    )
    return grant


def set_target(organization_name, indicator_code, year, target_value) -> IndicatorTarget:
    """Create or replace the yearly target; marks consolidated rows of that year stale."""

    hierarchy_service.get_organization(organization_name)
    if not _exists(Indicator, code=indicator_code):
        raise NotFoundError(resource="Indicator", resource_id=indicator_code)
    year, _ = validate_period(year, 1)
    value = parse_value(target_value)

    target = db.session.execute(
        select(IndicatorTarget).where(
            IndicatorTarget.organization_name == organization_name,
            IndicatorTarget.indicator_code == indicator_code,
            IndicatorTarget.year == year,
        )
    ).scalar_one_or_none()
    if target is None:
        target = IndicatorTarget(organization_name=organization_name, indicator_code=indicator_code, year=year)
        db.session.add(target)
    target.target_value = value
    mark_stale(organization_name, indicator_code=indicator_code, year=year)
    db.session.commit()
    return target
