"""
Indicator Value Workflow Service

Manages bulk status transitions of indicator values with:
  - Transition validation (VALUE_TRANSITIONS)
  - Role check on every targeted row before anything is touched
  - Conditional per-row UPDATE guarded by the expected status
  - Value history trail
  - Consolidation cache invalidation on validation

3 bulk transitions:
  submit, validate, reject
(rejected → draft happens through indicator_value_service.set_value)

Business Rule: a row that changed status between read and write is counted
as skipped, never as an error; one ineligible row never aborts the batch.

Usage:
    from app.services.value_workflow import submit, validate, reject

    result = reject("Acme", [12, 13], actor, comment="Meter reading missing")
    # {"action": "reject", "affected": 2, "skipped": 0, ...}
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update

from app.core.exceptions import MissingReasonError, NotFoundError, ValidationError
from app.models import db
from app.models.indicator_value import VALUE_TRANSITIONS, IndicatorValue, write_history
from app.services.consolidation_service import invalidate_for_values
from app.services.permission import Actor, allowed_actions, check_allowed

logger = logging.getLogger(__name__)


def validate_value_transition(value: IndicatorValue, action: str) -> dict:
    """Validate whether an action is valid for the value's current state."""
    rule = VALUE_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": value.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if value.status not in rule["from"]:
        return {"valid": False, "from": value.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{value.status}'"}

    if action == "submit" and value.value is None:
        return {"valid": False, "from": value.status, "to": rule["to"],
                "reason": "Cannot submit an empty value"}

    return {"valid": True, "from": value.status, "to": rule["to"], "reason": None}


def available_actions(value: IndicatorValue, actor: Actor | None = None) -> list[str]:
    """Legal actions from the value's current state, optionally filtered by the actor's roles."""
    actions = [a for a in VALUE_TRANSITIONS if validate_value_transition(value, a)["valid"]]
    if actor is not None:
        permitted = allowed_actions(actor, value.organization_name, value.scope_name, value.process_code)
        actions = [a for a in actions if a in permitted]
    return actions


def _load_targets(organization_name: str, value_ids) -> list[IndicatorValue]:
    """Fetch every targeted row; an id outside the organization is NotFound."""
    try:
        ids = sorted({int(v) for v in value_ids})
    except (TypeError, ValueError):
        raise ValidationError("ids must be a list of integers", details={"ids": value_ids})
    if not ids:
        raise ValidationError("ids must not be empty", details={"ids": []})

    rows = db.session.execute(
        select(IndicatorValue).where(
            IndicatorValue.id.in_(ids),
            IndicatorValue.organization_name == organization_name,
        )
    ).scalars().all()
    found = {r.id for r in rows}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundError(
            resource="IndicatorValue", resource_id=missing[0], organization_name=organization_name
        )
    return sorted(rows, key=lambda r: r.id)


def _apply(
    organization_name: str,
    value_ids,
    actor: Actor,
    action: str,
    stamp: dict,
    comment: str | None = None,
) -> dict:
    """
    Shared bulk transition.

    Order: load (NotFound) → role check on all rows (Forbidden) → per-row
    eligibility → conditional UPDATE → history → single commit.
    """
    rows = _load_targets(organization_name, value_ids)

    # 1. Permission check, before any mutation
    for row in rows:
        check_allowed(actor, organization_name, row.scope_name, row.process_code, action)

    rule = VALUE_TRANSITIONS[action]
    affected: list[IndicatorValue] = []
    skipped_ids: list[int] = []

    for row in rows:
        # 2. Validate transition
        if not validate_value_transition(row, action)["valid"]:
            skipped_ids.append(row.id)
            continue

        # 3. Conditional update; a concurrent writer makes rowcount 0
        conditions = [IndicatorValue.id == row.id, IndicatorValue.status == row.status]
        if action == "submit":
            conditions.append(IndicatorValue.value.is_not(None))
        result = db.session.execute(
            update(IndicatorValue)
            .where(*conditions)
            .values(status=rule["to"], **stamp)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            skipped_ids.append(row.id)
            continue

        # 4. History trail
        write_history(
            value_id=row.id,
            organization_name=organization_name,
            change_type=action,
            changed_by=actor.email,
            old_value=row.value,
            new_value=row.value,
            old_status=row.status,
            new_status=rule["to"],
            comment=comment,
        )
        affected.append(row)

    # 5. Side effects
    if action == "validate" and affected:
        invalidate_for_values(organization_name, affected)

    db.session.commit()
    for row in affected:
        db.session.refresh(row)

    result = {
        "action": action,
        "affected": len(affected),
        "skipped": len(skipped_ids),
        "affected_ids": [r.id for r in affected],
        "skipped_ids": sorted(skipped_ids),
    }
    logger.info(
        "Bulk %s: affected=%d skipped=%d",
        action, result["affected"], result["skipped"],
        extra={"organization_name": organization_name, "action": action, "actor": actor.email},
    )
    return result


def submit(organization_name: str, value_ids, actor: Actor) -> dict:
    """
    Submit draft values for validation.

    Only rows with status ``draft`` and a non-null value are eligible.

    Returns:
        {"action", "affected", "skipped", "affected_ids", "skipped_ids",
         "nothing_to_submit"}

    Raises:
        NotFoundError, ForbiddenError, ValidationError
    """
    now = datetime.now(timezone.utc)
    result = _apply(
        organization_name, value_ids, actor, "submit",
        stamp={"submitted_by": actor.email, "submitted_at": now, "updated_by": actor.email, "updated_at": now},
    )
    result["nothing_to_submit"] = result["affected"] == 0
    return result


def validate(organization_name: str, value_ids, actor: Actor, comment: str | None = None) -> dict:
    """Validate submitted values; marks covering consolidated rows stale."""
    now = datetime.now(timezone.utc)
    stamp = {"validated_by": actor.email, "validated_at": now, "updated_by": actor.email, "updated_at": now}
    if comment is not None and comment.strip():
        stamp["comment"] = comment.strip()
    return _apply(organization_name, value_ids, actor, "validate", stamp=stamp, comment=stamp.get("comment"))


def reject(organization_name: str, value_ids, actor: Actor, comment: str | None) -> dict:
    """
    Reject submitted values back to their contributors.

    Raises:
        MissingReasonError: Blank comment; raised before any row is read.
    """
    if comment is None or not str(comment).strip():
        raise MissingReasonError("reject")
    comment = str(comment).strip()
    now = datetime.now(timezone.utc)
    return _apply(
        organization_name, value_ids, actor, "reject",
        stamp={
            "validated_by": actor.email,
            "validated_at": now,
            "comment": comment,
            "updated_by": actor.email,
            "updated_at": now,
        },
        comment=comment,
    )
