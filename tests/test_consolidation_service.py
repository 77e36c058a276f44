"""
Consolidation service tests:
  - roll-ups at organization, business line and subsidiary nodes
  - only validated values contribute; preview includes unvalidated
  - cached rows go stale on validation and are recomputed lazily
  - refresh rebuilds the cache
"""

import pytest
from sqlalchemy import select

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.consolidation import ConsolidatedIndicatorValue
from app.models.indicator_value import IndicatorValue
from app.services import catalog_service, value_workflow
from app.services import consolidation_service as cs
from app.services import indicator_value_service as ivs
from app.services.permission import load_actor


def _cached(org, level, name, code, year):
    return db.session.execute(
        select(ConsolidatedIndicatorValue).where(
            ConsolidatedIndicatorValue.organization_name == org,
            ConsolidatedIndicatorValue.node_level == level,
            ConsolidatedIndicatorValue.node_name == name,
            ConsolidatedIndicatorValue.indicator_code == code,
            ConsolidatedIndicatorValue.year == year,
        ).execution_options(populate_existing=True)
    ).scalar_one_or_none()


class TestAcmeScenario:
    def test_january_emissions_at_organization(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        record("Acme-South", "GHG01", 2024, 1, 150)

        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        assert row["months"][0] == 250.0
        assert row["site_names"] == ["Acme-North", "Acme-South"]
        assert row["total_value"] == 250.0
        assert row["consolidation_method"] == "sum"

    def test_business_line_and_subsidiary_nodes(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        record("Acme-South", "GHG01", 2024, 1, 150)
        record("Acme-Lyon", "GHG01", 2024, 1, 60)

        energy = cs.consolidate_node(acme, "business_line", "Energy", "GHG01", 2024)
        services = cs.consolidate_node(acme, "business_line", "Services", "GHG01", 2024)
        france = cs.consolidate_node(acme, "subsidiary", "Acme France", "GHG01", 2024)
        assert energy["months"][0] == 250.0
        assert services["months"][0] == 60.0
        assert france["site_names"] == ["Acme-Lyon"]

    def test_submitted_value_contributes_nothing(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        record("Acme-South", "GHG01", 2024, 1, 150, status="submitted")
        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        assert row["months"][0] == 100.0
        assert row["site_names"] == ["Acme-North"]

    def test_preview_includes_unvalidated_and_is_not_cached(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        record("Acme-South", "GHG01", 2024, 1, 150, status="draft")
        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2024, preview=True)
        assert row["months"][0] == 250.0
        assert row["preview"] is True
        assert _cached(acme, "organization", "Acme", "GHG01", 2024) is None

    def test_empty_node_has_no_row(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        assert cs.consolidate_node(acme, "business_line", "Services", "GHG01", 2024) is None

    def test_average_ignores_null_site(self, acme, record):
        record("Acme-North", "TRI01", 2024, 3, 10)
        record("Acme-South", "TRI01", 2024, 3, "", status="draft")
        row = cs.consolidate_node(acme, "organization", None, "TRI01", 2024)
        assert row["months"][2] == 10.0


class TestAnnotations:
    def test_variation_and_performance(self, acme, record):
        record("Acme-North", "GHG01", 2023, 1, 200)
        record("Acme-North", "GHG01", 2024, 1, 250)
        catalog_service.set_target(acme, "GHG01", 2024, 500)
        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        assert row["previous_value"] == 200.0
        assert row["variation"] == pytest.approx(25.0)
        assert row["target_value"] == 500.0
        assert row["performance"] == pytest.approx(50.0)

    def test_no_target_no_performance(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 250)
        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        assert row["performance"] is None
        assert row["variation"] is None


class TestCache:
    def test_row_is_cached(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        cached = _cached(acme, "organization", "Acme", "GHG01", 2024)
        assert cached is not None
        assert cached.is_stale is False

    def test_validation_marks_covering_rows_stale(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        cs.list_consolidated(acme, 2024)
        assert _cached(acme, "business_line", "Energy", "GHG01", 2024) is not None

        record("Acme-South", "GHG01", 2024, 1, 150)
        assert _cached(acme, "organization", "Acme", "GHG01", 2024).is_stale is True
        assert _cached(acme, "business_line", "Energy", "GHG01", 2024).is_stale is True

        row = cs.consolidate_node(acme, "business_line", "Energy", "GHG01", 2024)
        assert row["months"][0] == 250.0
        assert _cached(acme, "business_line", "Energy", "GHG01", 2024).is_stale is False

    def test_validation_marks_next_year_stale(self, acme, record):
        record("Acme-North", "GHG01", 2025, 1, 90)
        cs.consolidate_node(acme, "organization", None, "GHG01", 2025)
        record("Acme-North", "GHG01", 2024, 1, 100)
        assert _cached(acme, "organization", "Acme", "GHG01", 2025).is_stale is True
        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2025)
        assert row["previous_value"] == 100.0

    def test_target_change_marks_year_stale(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        catalog_service.set_target(acme, "GHG01", 2024, 200)
        row = cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        assert row["performance"] == pytest.approx(50.0)

    def test_node_without_validated_values_drops_cached_row(self, acme, record):
        row = record("Acme-North", "GHG01", 2024, 1, 100)
        cs.consolidate_node(acme, "organization", None, "GHG01", 2024)
        # Simulate an administrative re-open of the only validated value
        db.session.execute(
            ConsolidatedIndicatorValue.__table__.update().values(is_stale=True)
        )
        row.status = "draft"
        db.session.commit()
        assert cs.consolidate_node(acme, "organization", None, "GHG01", 2024) is None
        assert _cached(acme, "organization", "Acme", "GHG01", 2024) is None

    def test_refresh_rebuilds(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        record("Acme-Lyon", "HC01", 2024, 1, 45)
        result = cs.refresh(acme, 2024)
        assert result["years"] == [2024]
        # GHG01: organization + Energy; HC01: organization + Services + Acme France
        assert result["rows"] == 5

    def test_list_filters_by_level(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        rows = cs.list_consolidated(acme, 2024, node_level="business_line")
        assert [(r["node_level"], r["node_name"]) for r in rows] == [("business_line", "Energy")]


class TestErrors:
    def test_unknown_indicator(self, acme):
        with pytest.raises(NotFoundError):
            cs.consolidate_node(acme, "organization", None, "XXX", 2024)

    def test_bad_level(self, acme):
        with pytest.raises(ValidationError):
            cs.consolidate_node(acme, "site", "Acme-North", "GHG01", 2024)

    def test_node_name_required_below_organization(self, acme):
        with pytest.raises(ValidationError):
            cs.consolidate_node(acme, "business_line", None, "GHG01", 2024)

    def test_unknown_node(self, acme):
        with pytest.raises(NotFoundError):
            cs.consolidate_node(acme, "subsidiary", "Acme Italia", "GHG01", 2024)


class TestWorkflowIntegration:
    def test_reject_resubmit_validate_feeds_rollup(self, acme, record, contributor, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="rejected")
        ivs.set_value(row.id, 110, contributor)
        value_workflow.submit(acme, [row.id], contributor)
        value_workflow.validate(acme, [row.id], validator)
        assert cs.consolidate_node(acme, "organization", None, "GHG01", 2024)["months"][0] == 110.0


class TestSiteContributions:
    def test_site_reporting_under_two_processes_counts_once(self, acme, record):
        catalog_service.create_process("OPS", "Operations", ["TRI01"])
        catalog_service.assign_process_to_scope(acme, "Acme-North", "OPS")
        catalog_service.assign_user_process(acme, "contributor@acme.test", "OPS", "contributor")
        catalog_service.assign_user_process(acme, "validator@acme.test", "OPS", "validator")
        contributor = load_actor("contributor@acme.test", acme)
        validator = load_actor("validator@acme.test", acme)

        record("Acme-North", "TRI01", 2024, 1, 10)
        record("Acme-South", "TRI01", 2024, 1, 40)
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "OPS", "TRI01", 2024, 1)
        row = ivs.set_value(target, 10, contributor)
        value_workflow.submit(acme, [row.id], contributor)
        value_workflow.validate(acme, [row.id], validator)

        result = cs.consolidate_node(acme, "organization", None, "TRI01", 2024)
        # North = 10 + 10, South = 40
        assert result["months"][0] == 30.0
        assert result["site_names"] == ["Acme-North", "Acme-South"]

    def test_value_outside_catalog_is_not_listed(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100)
        db.session.add(IndicatorValue(
            organization_name=acme, scope_name="Acme-North", process_code="ENV",
            indicator_code="RETIRED", year=2024, month=1, value=5.0, status="validated",
        ))
        db.session.commit()

        assert cs.reported_indicators(acme, 2024) == ["GHG01"]
        rows = cs.list_consolidated(acme, 2024)
        assert {r["indicator_code"] for r in rows} == {"GHG01"}
