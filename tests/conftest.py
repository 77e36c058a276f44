"""
Shared pytest fixtures for the ESG Pilotage test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - acme: the Acme group (2 business lines, 1 subsidiary, 3 sites) with
      ENV/HR processes, indicators and contributor/validator roles
    - contributor / validator: Actor objects for the Acme roles
    - record: helper that enters a value and walks it to a given status
"""

import pytest

from app import create_app
from app.models import db as _db
from app.services import cache_service, catalog_service, value_workflow
from app.services.indicator_value_service import get_or_create_placeholder, set_value
from app.services.permission import load_actor

ORG = "Acme"
CONTRIBUTOR = "contributor@acme.test"
VALIDATOR = "validator@acme.test"

PROCESS_OF = {"GHG01": "ENV", "ENE01": "ENV", "HC01": "HR", "TRI01": "HR"}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Tables are recreated per test; cached hierarchies would outlive them.
        cache_service.clear_all()
        yield
        cache_service.clear_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Domain fixtures ──────────────────────────────────────────────────────


def build_acme():
    """Create the Acme group through the catalog service."""
    catalog_service.create_organization(ORG, "group")
    catalog_service.create_business_line(ORG, "Energy")
    catalog_service.create_business_line(ORG, "Services")
    catalog_service.create_subsidiary(ORG, "Acme France", business_line_name="Services")
    catalog_service.create_site(ORG, "Acme-North", business_line_name="Energy")
    catalog_service.create_site(ORG, "Acme-South", business_line_name="Energy")
    catalog_service.create_site(ORG, "Acme-Lyon", subsidiary_name="Acme France")

    catalog_service.create_indicator("GHG01", "Scope 1 emissions", unit="tCO2e",
                                     consolidation_method="sum", axis="environmental")
    catalog_service.create_indicator("ENE01", "Peak power demand", unit="kW",
                                     consolidation_method="max", axis="environmental")
    catalog_service.create_indicator("HC01", "Headcount", unit="FTE",
                                     consolidation_method="last", axis="social")
    catalog_service.create_indicator("TRI01", "Training hours", unit="h",
                                     consolidation_method="average", axis="social")
    catalog_service.create_process("ENV", "Environment", ["GHG01", "ENE01"])
    catalog_service.create_process("HR", "Human resources", ["HC01", "TRI01"])

    for site in ("Acme-North", "Acme-South", "Acme-Lyon"):
        catalog_service.assign_process_to_scope(ORG, site, "ENV")
        catalog_service.assign_process_to_scope(ORG, site, "HR")
    for process in ("ENV", "HR"):
        catalog_service.assign_user_process(ORG, CONTRIBUTOR, process, "contributor")
        catalog_service.assign_user_process(ORG, VALIDATOR, process, "validator")


@pytest.fixture()
def acme():
    build_acme()
    return ORG


@pytest.fixture()
def contributor(acme):
    return load_actor(CONTRIBUTOR, acme)


@pytest.fixture()
def validator(acme):
    return load_actor(VALIDATOR, acme)


@pytest.fixture()
def record(acme, contributor, validator):
    """Enter a value for an Acme site and walk it to ``status``.

    Usage: row = record("Acme-North", "GHG01", 2024, 1, 100)
    """

    def _record(scope, indicator, year, month, value, status="validated"):
        target = get_or_create_placeholder(acme, scope, PROCESS_OF[indicator], indicator, year, month)
        row = set_value(target, value, contributor)
        if status in ("submitted", "validated", "rejected"):
            value_workflow.submit(acme, [row.id], contributor)
        if status == "validated":
            value_workflow.validate(acme, [row.id], validator)
        elif status == "rejected":
            value_workflow.reject(acme, [row.id], validator, comment="Check the meter")
        _db.session.refresh(row)
        return row

    return _record
