"""
Process-Scoped Role Check

Maps each value action to the role it needs and answers whether an actor
holds that role on a process, optionally restricted to a scope.

Usage:
    from app.services.permission import load_actor, check_allowed

    actor = load_actor("alice@acme.test", "Acme")

    # Raises ForbiddenError if not allowed
    check_allowed(actor, "Acme", "Acme-North", "ENV", "submit")

    # Boolean check, no database access
    if is_allowed(actor, "Acme", "Acme-North", "ENV", "validate"):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select

from app.core.exceptions import ForbiddenError
from app.models import db
from app.models.catalog import UserProcess

ACTION_ROLE = {
    "edit": "contributor",
    "submit": "contributor",
    "validate": "validator",
    "reject": "validator",
}


@dataclass(frozen=True)
class Grant:
    process_code: str
    role: str
    scope_name: str | None = None  # None = all scopes


@dataclass(frozen=True)
class Actor:
    """Acting identity plus the process roles it holds in one organization."""

    email: str
    organization_name: str | None = None
    grants: tuple[Grant, ...] = field(default_factory=tuple)


def load_actor(email: str, organization_name: str) -> Actor:
    """Build an Actor from the active user_processes rows of an organization."""
    rows = db.session.execute(
        select(UserProcess).where(
            UserProcess.email == email,
            UserProcess.organization_name == organization_name,
            UserProcess.is_active.is_(True),
        )
    ).scalars().all()
    return Actor(
        email=email,
        organization_name=organization_name if rows else None,
        grants=tuple(Grant(r.process_code, r.role, r.scope_name) for r in rows),
    )


def is_allowed(
    actor: Actor,
    organization_name: str,
    scope_name: str,
    process_code: str,
    action: str,
) -> bool:
    """
    Check if the actor may perform an action on a value.

    Args:
        actor: Acting identity with its grants.
        organization_name: Organization owning the value.
        scope_name: Site (or organization) the value belongs to.
        process_code: Process the value is reported under.
        action: edit | submit | validate | reject

    Returns:
        True if the actor has a grant with the required role on the
        process, unrestricted or restricted to this scope.
    """
    required = ACTION_ROLE.get(action)
    if required is None:
        return False
    if actor.organization_name != organization_name:
        return False

    for grant in actor.grants:
        if grant.process_code != process_code or grant.role != required:
            continue
        if grant.scope_name is None or grant.scope_name == scope_name:
            return True

    return False


def check_allowed(
    actor: Actor,
    organization_name: str,
    scope_name: str,
    process_code: str,
    action: str,
) -> None:
    """
    Assert the actor may perform the action; raise ForbiddenError if not.

    Raises:
        ForbiddenError: If the actor lacks the required role.
    """
    if not is_allowed(actor, organization_name, scope_name, process_code, action):
        raise ForbiddenError(actor.email, action, process_code, scope_name)


def allowed_actions(actor: Actor, organization_name: str, scope_name: str, process_code: str) -> set[str]:
    """The union of actions the actor may perform on a given value."""
    return {
        action
        for action in ACTION_ROLE
        if is_allowed(actor, organization_name, scope_name, process_code, action)
    }
