"""Completion summary per scope."""

from app.services import catalog_service
from app.services.completion_service import completion_rate, completion_summary


def test_completion_rate():
    assert completion_rate(1, 4) == 25.0
    assert completion_rate(1, 3) == 33.3
    assert completion_rate(0, 0) == 0.0


def test_month_summary(acme, record):
    record("Acme-North", "GHG01", 2024, 1, 100)
    record("Acme-North", "HC01", 2024, 1, 120, status="submitted")
    record("Acme-North", "TRI01", 2024, 1, "", status="draft")

    summary = {s["scope_name"]: s for s in completion_summary(acme, 2024, month=1)}
    north = summary["Acme-North"]
    assert north["required"] == 4
    assert north["filled"] == 2
    assert north["completion_rate"] == 50.0
    assert north["active_processes"] == 2
    assert north["by_status"] == {"draft": 1, "submitted": 1, "validated": 1, "rejected": 0}

    assert summary["Acme-South"]["filled"] == 0
    assert summary["Acme-South"]["completion_rate"] == 0.0


def test_year_summary_counts_twelve_months(acme):
    summary = {s["scope_name"]: s for s in completion_summary(acme, 2024)}
    assert summary["Acme-Lyon"]["required"] == 48


def test_inactive_process_not_required(acme):
    catalog_service.assign_process_to_scope(acme, "Acme-South", "HR", is_active=False)
    summary = {s["scope_name"]: s for s in completion_summary(acme, 2024, month=1)}
    assert summary["Acme-South"]["required"] == 2
    assert summary["Acme-South"]["active_processes"] == 1
