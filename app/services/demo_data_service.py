"""
Demo data seeding for local development.

Creates the "Acme" group (two business lines, one subsidiary, three sites),
an environmental catalog, role assignments and a few months of values taken
through the full review workflow, then warms the consolidated cache.

Safe to run multiple times — does nothing if Acme already exists.
Call this from the ``flask seed-demo`` CLI command.
"""

import logging

from sqlalchemy import select

from app.models import db
from app.models.organization import Organization
from app.services import catalog_service, consolidation_service, value_workflow
from app.services.indicator_value_service import get_or_create_placeholder, set_value
from app.services.permission import load_actor

logger = logging.getLogger(__name__)

DEMO_ORG = "Acme"
CONTRIBUTOR = "contributor@acme.example"
VALIDATOR = "validator@acme.example"

_INDICATORS = [
    {"code": "GHG01", "name": "Scope 1 GHG emissions", "unit": "tCO2e",
     "consolidation_method": "sum", "axis": "environmental"},
    {"code": "ENE01", "name": "Electricity consumption", "unit": "MWh",
     "consolidation_method": "sum", "axis": "environmental"},
    {"code": "HC01", "name": "Headcount", "unit": "FTE",
     "consolidation_method": "last", "axis": "social"},
    {"code": "TRI01", "name": "Training hours per employee", "unit": "h",
     "consolidation_method": "average", "axis": "social"},
]

_PROCESSES = [
    {"code": "ENV", "name": "Environment", "indicator_codes": ["GHG01", "ENE01"]},
    {"code": "HR", "name": "Human resources", "indicator_codes": ["HC01", "TRI01"]},
]

# site → {indicator: monthly value for Jan..Mar}
_VALUES = {
    "Acme-North": {"GHG01": [100, 95, 90], "ENE01": [410, 400, 380], "HC01": [120, 121, 123], "TRI01": [4, 6, 5]},
    "Acme-South": {"GHG01": [150, 140, 155], "ENE01": [520, 515, 530], "HC01": [80, 80, 82], "TRI01": [3, 2, 4]},
    "Acme-Lyon": {"GHG01": [60, 62, 58], "ENE01": [210, 205, 199], "HC01": [45, 46, 46], "TRI01": [8, 7, 9]},
}


def seed_demo_data(year=2024):
    """Seed the Acme demo organization. Returns a summary dict."""
    exists = db.session.execute(
        select(Organization.id).where(Organization.name == DEMO_ORG)
    ).first()
    if exists:
        logger.info("Demo organization already present, skipping", extra={"organization_name": DEMO_ORG})
        return {"created": False}

    catalog_service.create_organization(DEMO_ORG, "group", "Demo group")
    catalog_service.create_business_line(DEMO_ORG, "Energy")
    catalog_service.create_business_line(DEMO_ORG, "Services")
    catalog_service.create_subsidiary(DEMO_ORG, "Acme France", business_line_name="Services")
    catalog_service.create_site(DEMO_ORG, "Acme-North", business_line_name="Energy", city="Lille", country="FR")
    catalog_service.create_site(DEMO_ORG, "Acme-South", business_line_name="Energy", city="Marseille", country="FR")
    catalog_service.create_site(DEMO_ORG, "Acme-Lyon", subsidiary_name="Acme France", city="Lyon", country="FR")

    for ind in _INDICATORS:
        catalog_service.create_indicator(**ind)
    for proc in _PROCESSES:
        catalog_service.create_process(**proc)

    for site in _VALUES:
        for proc in _PROCESSES:
            catalog_service.assign_process_to_scope(DEMO_ORG, site, proc["code"], start_year=year - 1)
    for proc in _PROCESSES:
        catalog_service.assign_user_process(DEMO_ORG, CONTRIBUTOR, proc["code"], "contributor")
        catalog_service.assign_user_process(DEMO_ORG, VALIDATOR, proc["code"], "validator")
    catalog_service.set_target(DEMO_ORG, "GHG01", year, 3000)
    catalog_service.set_target(DEMO_ORG, "ENE01", year, 15000)

    contributor = load_actor(CONTRIBUTOR, DEMO_ORG)
    validator = load_actor(VALIDATOR, DEMO_ORG)
    process_of = {code: p["code"] for p in _PROCESSES for code in p["indicator_codes"]}

    ids = []
    for site, indicators in _VALUES.items():
        for code, months in indicators.items():
            for month, value in enumerate(months, start=1):
                target = get_or_create_placeholder(DEMO_ORG, site, process_of[code], code, year, month)
                ids.append(set_value(target, value, contributor).id)

    value_workflow.submit(DEMO_ORG, ids, contributor)
    value_workflow.validate(DEMO_ORG, ids, validator, comment="Demo data")
    refreshed = consolidation_service.refresh(DEMO_ORG, year)

    summary = {"created": True, "values": len(ids), "consolidated_rows": refreshed["rows"]}
    logger.info("Demo data seeded", extra={"organization_name": DEMO_ORG})
    return summary
