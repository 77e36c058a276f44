"""
Process-scoped role check — pure guard plus actor loading.
"""

import pytest

from app.core.exceptions import ForbiddenError
from app.services import catalog_service
from app.services.permission import (
    Actor,
    Grant,
    allowed_actions,
    check_allowed,
    is_allowed,
    load_actor,
)


def _actor(*grants, org="Acme"):
    return Actor(email="u@acme.test", organization_name=org, grants=tuple(grants))


class TestIsAllowed:
    def test_contributor_may_edit_and_submit(self):
        actor = _actor(Grant("ENV", "contributor"))
        assert is_allowed(actor, "Acme", "Acme-North", "ENV", "edit")
        assert is_allowed(actor, "Acme", "Acme-North", "ENV", "submit")
        assert not is_allowed(actor, "Acme", "Acme-North", "ENV", "validate")
        assert not is_allowed(actor, "Acme", "Acme-North", "ENV", "reject")

    def test_validator_may_validate_and_reject_only(self):
        actor = _actor(Grant("ENV", "validator"))
        assert allowed_actions(actor, "Acme", "Acme-North", "ENV") == {"validate", "reject"}

    def test_role_is_per_process(self):
        actor = _actor(Grant("ENV", "contributor"))
        assert not is_allowed(actor, "Acme", "Acme-North", "HR", "edit")

    def test_scope_restricted_grant(self):
        actor = _actor(Grant("ENV", "contributor", scope_name="Acme-North"))
        assert is_allowed(actor, "Acme", "Acme-North", "ENV", "edit")
        assert not is_allowed(actor, "Acme", "Acme-South", "ENV", "edit")

    def test_other_organization_denied(self):
        actor = _actor(Grant("ENV", "validator"), org="Globex")
        assert not is_allowed(actor, "Acme", "Acme-North", "ENV", "validate")

    def test_unknown_action_denied(self):
        actor = _actor(Grant("ENV", "contributor"), Grant("ENV", "validator"))
        assert not is_allowed(actor, "Acme", "Acme-North", "ENV", "delete")

    def test_check_allowed_raises(self):
        with pytest.raises(ForbiddenError) as exc:
            check_allowed(_actor(), "Acme", "Acme-North", "ENV", "validate")
        assert exc.value.action == "validate"
        assert exc.value.process_code == "ENV"


class TestLoadActor:
    def test_loads_active_grants(self, acme):
        actor = load_actor("validator@acme.test", acme)
        assert actor.organization_name == "Acme"
        assert {(g.process_code, g.role) for g in actor.grants} == {("ENV", "validator"), ("HR", "validator")}

    def test_inactive_grant_ignored(self, acme):
        catalog_service.assign_user_process(acme, "validator@acme.test", "HR", "validator", is_active=False)
        actor = load_actor("validator@acme.test", acme)
        assert {g.process_code for g in actor.grants} == {"ENV"}

    def test_unknown_user_has_no_organization(self, acme):
        actor = load_actor("stranger@acme.test", acme)
        assert actor.organization_name is None
        assert actor.grants == ()
        assert not is_allowed(actor, acme, "Acme-North", "ENV", "edit")
