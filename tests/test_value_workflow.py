"""
Value workflow tests — bulk submit / validate / reject:
  - eligible rows transition, ineligible rows are skipped, never fatal
  - reject requires a comment and leaves status unchanged without one
  - role check on every row before any mutation
  - full loop: reject → edit → submit → validate
"""

import pytest

from app.core.exceptions import ForbiddenError, MissingReasonError, NotFoundError, ValidationError
from app.models import db
from app.services import indicator_value_service as ivs
from app.services import value_workflow
from app.services.permission import Actor, Grant


class TestSubmit:
    def test_submit_draft(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        result = value_workflow.submit(acme, [row.id], contributor)
        assert result["affected"] == 1
        assert result["nothing_to_submit"] is False
        db.session.refresh(row)
        assert row.status == "submitted"
        assert row.submitted_by == "contributor@acme.test"
        assert row.submitted_at is not None

    def test_null_value_is_nothing_to_submit(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, "", status="draft")
        result = value_workflow.submit(acme, [row.id], contributor)
        assert result["nothing_to_submit"] is True
        assert result["skipped_ids"] == [row.id]
        db.session.refresh(row)
        assert row.status == "draft"

    def test_non_draft_is_nothing_to_submit(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100)
        result = value_workflow.submit(acme, [row.id], contributor)
        assert result["nothing_to_submit"] is True
        db.session.refresh(row)
        assert row.status == "validated"

    def test_mixed_batch_skips_ineligible(self, acme, record, contributor):
        a = record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        b = record("Acme-South", "GHG01", 2024, 1, 150, status="submitted")
        c = record("Acme-Lyon", "GHG01", 2024, 1, "", status="draft")
        result = value_workflow.submit(acme, [a.id, b.id, c.id], contributor)
        assert result["affected_ids"] == [a.id]
        assert result["skipped_ids"] == sorted([b.id, c.id])

    def test_empty_ids_rejected(self, acme, contributor):
        with pytest.raises(ValidationError):
            value_workflow.submit(acme, [], contributor)

    def test_unknown_id_not_found(self, acme, contributor):
        with pytest.raises(NotFoundError):
            value_workflow.submit(acme, [999], contributor)


class TestValidateReject:
    def test_validate_submitted(self, acme, record, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        result = value_workflow.validate(acme, [row.id], validator, comment="Looks right")
        assert result["affected"] == 1
        db.session.refresh(row)
        assert row.status == "validated"
        assert row.validated_by == "validator@acme.test"
        assert row.comment == "Looks right"

    def test_validate_draft_is_skipped(self, acme, record, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="draft")
        result = value_workflow.validate(acme, [row.id], validator)
        assert result["affected"] == 0
        assert result["skipped"] == 1

    def test_reject_without_comment(self, acme, record, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        for comment in (None, "", "   "):
            with pytest.raises(MissingReasonError):
                value_workflow.reject(acme, [row.id], validator, comment)
        db.session.refresh(row)
        assert row.status == "submitted"

    def test_reject_stores_comment(self, acme, record, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        value_workflow.reject(acme, [row.id], validator, "  Invoice missing  ")
        db.session.refresh(row)
        assert row.status == "rejected"
        assert row.comment == "Invoice missing"


class TestRoles:
    def test_contributor_cannot_validate(self, acme, record, contributor):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        with pytest.raises(ForbiddenError):
            value_workflow.validate(acme, [row.id], contributor)
        db.session.refresh(row)
        assert row.status == "submitted"

    def test_one_forbidden_row_blocks_whole_batch(self, acme, record):
        env = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        hr = record("Acme-North", "HC01", 2024, 1, 120, status="submitted")
        env_only = Actor("env@acme.test", acme, (Grant("ENV", "validator"),))
        with pytest.raises(ForbiddenError):
            value_workflow.validate(acme, [env.id, hr.id], env_only)
        db.session.refresh(env)
        assert env.status == "submitted"

    def test_scope_restricted_validator(self, acme, record):
        north = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        south = record("Acme-South", "GHG01", 2024, 1, 150, status="submitted")
        north_only = Actor("north@acme.test", acme, (Grant("ENV", "validator", "Acme-North"),))
        assert value_workflow.validate(acme, [north.id], north_only)["affected"] == 1
        with pytest.raises(ForbiddenError):
            value_workflow.validate(acme, [south.id], north_only)

    def test_available_actions_filtered_by_role(self, acme, record, contributor, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="submitted")
        assert set(value_workflow.available_actions(row)) == {"validate", "reject"}
        assert value_workflow.available_actions(row, contributor) == []
        assert set(value_workflow.available_actions(row, validator)) == {"validate", "reject"}


class TestFullLoop:
    def test_reject_edit_submit_validate(self, acme, record, contributor, validator):
        row = record("Acme-North", "GHG01", 2024, 1, 100, status="rejected")
        ivs.set_value(row.id, 104, contributor)
        value_workflow.submit(acme, [row.id], contributor)
        value_workflow.validate(acme, [row.id], validator)
        db.session.refresh(row)
        assert row.status == "validated"
        assert row.value == 104.0
