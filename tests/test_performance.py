"""
Performance calculator — variation, performance, scope dashboards.
"""

import pytest

from app.core.exceptions import NotFoundError
from app.services import catalog_service
from app.services.performance import (
    compute_performance,
    compute_variation,
    monthly_average,
    scope_dashboard,
)


class TestPureCalculators:
    def test_variation(self):
        assert compute_variation(110.0, 100.0) == pytest.approx(10.0)
        assert compute_variation(90.0, 100.0) == pytest.approx(-10.0)

    @pytest.mark.parametrize("current, previous", [(10.0, 0), (10.0, None), (None, 10.0)])
    def test_variation_undefined(self, current, previous):
        assert compute_variation(current, previous) is None

    def test_performance(self):
        assert compute_performance(45.0, 50.0) == pytest.approx(90.0)

    def test_performance_not_clamped(self):
        assert compute_performance(150.0, 100.0) == pytest.approx(150.0)

    @pytest.mark.parametrize("target", [None, 0, -5])
    def test_performance_without_positive_target(self, target):
        assert compute_performance(10.0, target) is None

    def test_monthly_average(self):
        assert monthly_average([2.0, None, 4.0]) == 3.0
        assert monthly_average([None, None]) is None


class TestScopeDashboard:
    def test_validated_rows_with_target_and_previous(self, acme, record):
        record("Acme-North", "GHG01", 2023, 1, 200)
        record("Acme-North", "GHG01", 2024, 1, 100)
        record("Acme-North", "GHG01", 2024, 2, 80)
        catalog_service.set_target(acme, "GHG01", 2024, 200)

        rows = {r["indicator_code"]: r for r in scope_dashboard(acme, "Acme-North", 2024)}
        ghg = rows["GHG01"]
        assert ghg["months"][:2] == [100.0, 80.0]
        assert ghg["total_value"] == 180.0
        assert ghg["monthly_average"] == 90.0
        assert ghg["previous_value"] == 200.0
        assert ghg["variation"] == pytest.approx(-10.0)
        assert ghg["performance"] == pytest.approx(90.0)

    def test_unvalidated_ignored_unless_preview(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        rows = {r["indicator_code"]: r for r in scope_dashboard(acme, "Acme-North", 2024)}
        assert rows["GHG01"]["total_value"] is None

        rows = {r["indicator_code"]: r for r in scope_dashboard(acme, "Acme-North", 2024, include_unvalidated=True)}
        assert rows["GHG01"]["total_value"] == 100.0

    def test_required_indicators_listed_empty(self, acme):
        rows = scope_dashboard(acme, "Acme-North", 2024)
        assert {r["indicator_code"] for r in rows} == {"GHG01", "ENE01", "HC01", "TRI01"}
        assert all(r["performance"] is None for r in rows)

    def test_stock_metric_uses_last_month(self, acme, record):
        record("Acme-North", "HC01", 2024, 1, 120)
        record("Acme-North", "HC01", 2024, 3, 125)
        rows = {r["indicator_code"]: r for r in scope_dashboard(acme, "Acme-North", 2024)}
        assert rows["HC01"]["total_value"] == 125.0

    def test_unknown_scope(self, acme):
        with pytest.raises(NotFoundError):
            scope_dashboard(acme, "Atlantis", 2024)
