"""
Indicator value store tests:
  - one row per (scope, process, indicator, year, month)
  - Recorded / Required placeholders
  - numeric parsing and period validation
  - edit rules: draft/rejected only, rejected returns to draft
  - history trail and organization isolation
"""

import pytest
from sqlalchemy import func, select

from app.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from app.models import db
from app.models.indicator_value import IndicatorValue
from app.services import indicator_value_service as ivs
from app.services import catalog_service, value_workflow
from app.services.permission import load_actor


def _count_rows():
    return db.session.execute(select(func.count(IndicatorValue.id))).scalar()


class TestParseValue:
    @pytest.mark.parametrize("raw, expected", [
        ("12.5", 12.5),
        (" 7 ", 7.0),
        (3, 3.0),
        ("", None),
        (None, None),
        ("   ", None),
    ])
    def test_accepted(self, raw, expected):
        assert ivs.parse_value(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "nan", "inf", True, [1]])
    def test_rejected(self, raw):
        with pytest.raises(ValidationError):
            ivs.parse_value(raw)

    def test_period_bounds(self):
        assert ivs.validate_period("2024", "3") == (2024, 3)
        with pytest.raises(ValidationError):
            ivs.validate_period(2024, 13)
        with pytest.raises(ValidationError):
            ivs.validate_period("soon", 1)


class TestPlaceholders:
    def test_missing_key_is_required(self, acme):
        p = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        assert isinstance(p, ivs.Required)
        assert p.to_dict()["id"] is None
        assert _count_rows() == 0

    def test_existing_key_is_recorded(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        row = ivs.set_value(target, 100, contributor)
        p = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        assert isinstance(p, ivs.Recorded)
        assert p.value.id == row.id

    def test_list_values_mixes_recorded_and_required(self, acme, record):
        record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        items = ivs.list_values(acme, 2024, month=1, scope_name="Acme-North")
        # 4 required indicators for Acme-North, one recorded
        assert len(items) == 4
        kinds = {(p.key[2], type(p).__name__) for p in items}
        assert ("GHG01", "Recorded") in kinds
        assert ("HC01", "Required") in kinds

    def test_list_values_filters_process(self, acme):
        items = ivs.list_values(acme, 2024, month=1, process_codes=["HR"])
        assert {p.key[1] for p in items} == {"HR"}
        assert len(items) == 6  # 3 sites × 2 HR indicators


class TestSetValue:
    def test_first_write_creates_draft(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        row = ivs.set_value(target, "100", contributor)
        assert row.status == "draft"
        assert row.value == 100.0
        assert row.created_by == "contributor@acme.test"

    def test_stale_required_placeholder_updates_existing_row(self, acme, contributor):
        first = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        second = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        ivs.set_value(first, 100, contributor)
        row = ivs.set_value(second, 120, contributor)
        assert row.value == 120.0
        assert _count_rows() == 1

    def test_clear_value(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        row = ivs.set_value(row.id, "", contributor)
        assert row.value is None

    def test_non_numeric_rejected_without_write(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        with pytest.raises(ValidationError):
            ivs.set_value(target, "lots", contributor)
        assert _count_rows() == 0

    def test_submitted_value_is_locked(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        with pytest.raises(InvalidTransitionError):
            ivs.set_value(row.id, 90, contributor)

    def test_validated_value_is_locked(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100)
        with pytest.raises(InvalidTransitionError):
            ivs.set_value(ivs.Recorded(row), 90, contributor)

    def test_rejected_value_returns_to_draft(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="rejected")
        row = ivs.set_value(row.id, 95, contributor)
        assert row.status == "draft"
        assert row.value == 95.0

    def test_validator_cannot_edit(self, acme, validator):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "GHG01", 2024, 1)
        with pytest.raises(ForbiddenError):
            ivs.set_value(target, 100, validator)
        assert _count_rows() == 0

    def test_unknown_scope_not_found(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Atlantis", "ENV", "GHG01", 2024, 1)
        with pytest.raises(NotFoundError):
            ivs.set_value(target, 100, contributor)

    def test_unknown_indicator_not_found(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "BOGUS", 2024, 1)
        with pytest.raises(NotFoundError):
            ivs.set_value(target, 5, contributor)
        assert _count_rows() == 0

    def test_unknown_process_not_found(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "OPS", "GHG01", 2024, 1)
        with pytest.raises(NotFoundError):
            ivs.set_value(target, 5, contributor)
        assert _count_rows() == 0

    def test_indicator_of_another_process_rejected(self, acme, contributor):
        target = ivs.get_or_create_placeholder(acme, "Acme-North", "ENV", "HC01", 2024, 1)
        with pytest.raises(ValidationError):
            ivs.set_value(target, 5, contributor)
        assert _count_rows() == 0

    def test_history_trail(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="rejected")
        ivs.set_value(row.id, 95, contributor)
        entries = ivs.value_history(acme, row.id)
        assert [e.change_type for e in entries] == ["create", "submit", "reject", "update"]
        assert entries[-1].old_value == 100.0
        assert entries[-1].new_value == 95.0
        assert entries[2].comment == "Check the meter"


class TestOrganizationIsolation:
    def test_value_of_other_org_not_found(self, acme, record):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        catalog_service.create_organization("Globex")
        with pytest.raises(NotFoundError):
            ivs.get_value("Globex", row.id)

    def test_actor_of_other_org_cannot_touch(self, acme, record):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        outsider = load_actor("contributor@acme.test", "Globex")
        with pytest.raises(NotFoundError):
            ivs.set_value(row.id, 1, outsider)
        with pytest.raises(NotFoundError):
            value_workflow.submit("Globex", [row.id], outsider)
