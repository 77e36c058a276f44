"""
Hierarchy Resolver.

Resolves an organization's tree (business lines → subsidiaries → sites) and
the set of (scope, process, indicator) triples each scope is required to
report for a year.

Rules:
  - A site whose declared ancestry does not resolve inside its organization
    is logged and excluded; it never aborts the resolution of its siblings.
  - Resolved chains and required sets are cached per organization and
    invalidated by catalog_service on any hierarchy or assignment change.

Usage:
    from app.services import hierarchy_service as hs

    hs.site_ancestry("Acme", "Acme-North")
    hs.sites_under_node("Acme", "business_line", "Energy")
    hs.required_set("Acme", 2024)
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import InvalidHierarchyError, NotFoundError, ValidationError
from app.models import db
from app.models.catalog import Indicator, Process, ScopeProcess
from app.models.organization import BusinessLine, Organization, Site, Subsidiary
from app.services import cache_service

logger = logging.getLogger(__name__)


# ── Private helpers ──────────────────────────────────────────────────────────


def get_organization(organization_name: str) -> Organization:
    """Return the organization or raise NotFoundError."""
    org = db.session.execute(
        select(Organization).where(Organization.name == organization_name)
    ).scalar_one_or_none()
    if org is None:
        raise NotFoundError(resource="Organization", resource_id=organization_name)
    return org


def _resolve_chain(site: Site, business_lines: dict, subsidiaries: dict) -> list[dict]:
    """Build ``[site, subsidiary?, business_line?, organization]`` for one site.

    Raises:
        InvalidHierarchyError: If a declared parent is unknown in the
            organization or the declared business line disagrees with the
            subsidiary's own business line.
    """
    chain = [{"level": "site", "name": site.name}]
    business_line_name = site.business_line_name

    if site.subsidiary_name:
        sub = subsidiaries.get(site.subsidiary_name)
        if sub is None:
            raise InvalidHierarchyError(
                site.name, f"subsidiary '{site.subsidiary_name}' not found in {site.organization_name}"
            )
        if sub.business_line_name:
            if business_line_name and business_line_name != sub.business_line_name:
                raise InvalidHierarchyError(
                    site.name,
                    f"business line '{business_line_name}' conflicts with subsidiary "
                    f"'{sub.name}' (business line '{sub.business_line_name}')",
                )
            business_line_name = sub.business_line_name
        chain.append({"level": "subsidiary", "name": sub.name})

    if business_line_name:
        if business_line_name not in business_lines:
            raise InvalidHierarchyError(
                site.name, f"business line '{business_line_name}' not found in {site.organization_name}"
            )
        chain.append({"level": "business_line", "name": business_line_name})

    chain.append({"level": "organization", "name": site.organization_name})
    return chain


def _load_hierarchy(organization_name: str) -> dict:
    """Resolve every site of the organization. JSON-serialisable for the cache."""
    business_lines = {
        bl.name: bl
        for bl in db.session.execute(
            select(BusinessLine).where(BusinessLine.organization_name == organization_name)
        ).scalars()
    }
    subsidiaries = {
        sub.name: sub
        for sub in db.session.execute(
            select(Subsidiary).where(Subsidiary.organization_name == organization_name)
        ).scalars()
    }
    sites = db.session.execute(
        select(Site).where(Site.organization_name == organization_name).order_by(Site.name)
    ).scalars().all()

    chains: dict[str, list[dict]] = {}
    invalid: list[dict] = []
    for site in sites:
        try:
            chains[site.name] = _resolve_chain(site, business_lines, subsidiaries)
        except InvalidHierarchyError as exc:
            logger.warning(
                "Excluding site with invalid hierarchy: %s",
                exc,
                extra={"organization_name": organization_name},
            )
            invalid.append({"name": site.name, "reason": exc.reason})

    return {
        "business_lines": sorted(business_lines),
        "subsidiaries": sorted(subsidiaries),
        "chains": chains,
        "invalid_sites": invalid,
    }


def _hierarchy(organization_name: str) -> dict:
    get_organization(organization_name)
    return cache_service.get_cached(
        cache_service.hierarchy_key(organization_name),
        ttl=cache_service.HIERARCHY_TTL,
        loader=lambda: _load_hierarchy(organization_name),
    )


# ── Public API ───────────────────────────────────────────────────────────────


def list_nodes(organization_name: str) -> dict:
    """Return every node beneath an organization.

    Returns:
        {"organization", "business_lines", "subsidiaries", "sites",
         "invalid_sites"} — sites with unresolvable ancestry are listed
        separately and excluded from ``sites``.

    Raises:
        NotFoundError: Unknown organization.
    """
    org = get_organization(organization_name)
    resolved = _hierarchy(organization_name)
    valid = set(resolved["chains"])

    business_lines = db.session.execute(
        select(BusinessLine)
        .where(BusinessLine.organization_name == organization_name)
        .order_by(BusinessLine.name)
    ).scalars().all()
    subsidiaries = db.session.execute(
        select(Subsidiary)
        .where(Subsidiary.organization_name == organization_name)
        .order_by(Subsidiary.name)
    ).scalars().all()
    sites = db.session.execute(
        select(Site).where(Site.organization_name == organization_name).order_by(Site.name)
    ).scalars().all()

    return {
        "organization": org.to_dict(),
        "business_lines": [bl.to_dict() for bl in business_lines],
        "subsidiaries": [sub.to_dict() for sub in subsidiaries],
        "sites": [s.to_dict() for s in sites if s.name in valid],
        "invalid_sites": resolved["invalid_sites"],
    }


def site_ancestry(organization_name: str, site_name: str) -> list[dict]:
    """Ordered chain from the site up to its organization.

    Raises:
        NotFoundError: Unknown organization, or site not in this organization.
        InvalidHierarchyError: Site exists but its ancestry does not resolve.
    """
    resolved = _hierarchy(organization_name)
    chain = resolved["chains"].get(site_name)
    if chain is not None:
        return chain
    for entry in resolved["invalid_sites"]:
        if entry["name"] == site_name:
            raise InvalidHierarchyError(site_name, entry["reason"])
    raise NotFoundError(resource="Site", resource_id=site_name)


def sites_under_node(organization_name: str, node_level: str, node_name: str | None = None) -> list[str]:
    """Names of the valid sites beneath a consolidation node, sorted.

    Args:
        node_level: organization | business_line | subsidiary.
        node_name: Node name; defaults to the organization for level
            "organization".

    Raises:
        ValidationError: Unknown node level.
        NotFoundError: Unknown organization or node.
    """
    resolved = _hierarchy(organization_name)
    if node_level == "organization":
        if node_name not in (None, organization_name):
            raise NotFoundError(resource="Organization", resource_id=node_name)
        return sorted(resolved["chains"])

    if node_level == "business_line":
        known = resolved["business_lines"]
    elif node_level == "subsidiary":
        known = resolved["subsidiaries"]
    else:
        raise ValidationError(
            f"node_level must be one of: organization, business_line, subsidiary",
            details={"node_level": node_level},
        )
    if node_name not in known:
        raise NotFoundError(resource=node_level, resource_id=node_name)

    return sorted(
        site
        for site, chain in resolved["chains"].items()
        if any(n["level"] == node_level and n["name"] == node_name for n in chain)
    )


def consolidation_nodes(organization_name: str) -> list[tuple[str, str]]:
    """Every (node_level, node_name) of the organization, organization first."""
    resolved = _hierarchy(organization_name)
    nodes = [("organization", organization_name)]
    nodes += [("business_line", name) for name in resolved["business_lines"]]
    nodes += [("subsidiary", name) for name in resolved["subsidiaries"]]
    return nodes


def covering_nodes(organization_name: str, scope_name: str) -> list[tuple[str, str]]:
    """Consolidation nodes whose roll-up includes the given scope."""
    if scope_name == organization_name:
        return [("organization", organization_name)]
    chain = _hierarchy(organization_name)["chains"].get(scope_name)
    if chain is None:
        return []
    return [(n["level"], n["name"]) for n in chain if n["level"] != "site"]


def scope_type_of(organization_name: str, scope_name: str) -> str:
    return "organization" if scope_name == organization_name else "site"


def is_valid_scope(organization_name: str, scope_name: str) -> bool:
    if scope_name == organization_name:
        return True
    return scope_name in _hierarchy(organization_name)["chains"]


def _load_required_set(organization_name: str, year: int) -> list[list[str]]:
    assignments = db.session.execute(
        select(ScopeProcess).where(
            ScopeProcess.organization_name == organization_name,
            ScopeProcess.is_active.is_(True),
        )
    ).scalars().all()
    assignments = [a for a in assignments if a.covers_year(year)]
    if not assignments:
        return []

    process_codes = {a.process_code for a in assignments}
    processes = {
        p.code: p
        for p in db.session.execute(
            select(Process).where(Process.code.in_(process_codes))
        ).scalars()
    }
    wanted = {code for p in processes.values() for code in (p.indicator_codes or [])}
    known_indicators = set(
        db.session.execute(
            select(Indicator.code).where(Indicator.code.in_(wanted))
        ).scalars()
    ) if wanted else set()

    triples = set()
    for a in assignments:
        if not is_valid_scope(organization_name, a.scope_name):
            logger.warning(
                "Ignoring process %s assigned to unresolved scope %s",
                a.process_code, a.scope_name,
                extra={"organization_name": organization_name},
            )
            continue
        process = processes.get(a.process_code)
        if process is None:
            continue
        for code in process.indicator_codes or []:
            if code in known_indicators:
                triples.add((a.scope_name, a.process_code, code))
    return [list(t) for t in sorted(triples)]


def required_set(organization_name: str, year: int, scope_name: str | None = None) -> list[tuple[str, str, str]]:
    """(scope, process_code, indicator_code) triples that must be reported in ``year``.

    The union of indicator codes owned by every active process assigned to
    each scope. Indicator codes missing from the catalog are ignored.

    Raises:
        NotFoundError: Unknown organization.
    """
    get_organization(organization_name)
    rows = cache_service.get_cached(
        cache_service.required_set_key(organization_name, year),
        ttl=cache_service.REQUIRED_SET_TTL,
        loader=lambda: _load_required_set(organization_name, year),
    ) or []
    triples = [tuple(r) for r in rows]
    if scope_name is not None:
        triples = [t for t in triples if t[0] == scope_name]
    return triples


def scopes_of(organization_name: str, year: int | None = None) -> list[dict]:
    """Every reporting scope: valid sites, plus the organization itself when it
    reports without sub-structure or has organization-level assignments."""
    org = get_organization(organization_name)
    resolved = _hierarchy(organization_name)
    scopes = [{"scope_name": name, "scope_type": "site"} for name in sorted(resolved["chains"])]

    org_assigned = db.session.execute(
        select(ScopeProcess.id).where(
            ScopeProcess.organization_name == organization_name,
            ScopeProcess.scope_name == organization_name,
        )
    ).first() is not None
    if not org.has_substructure or org_assigned:
        scopes.insert(0, {"scope_name": organization_name, "scope_type": "organization"})
    return scopes
