"""
ESG Pilotage Platform
Indicator value domain models.

Models:
    - IndicatorValue: one monthly measurement of one indicator for one scope
    - ValueHistory: immutable, append-only trail of value edits and transitions

Lifecycle (VALUE_TRANSITIONS):
    draft -> submitted -> validated | rejected
    rejected -> draft (through a new edit)
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

VALUE_STATUSES = ("draft", "submitted", "validated", "rejected")

EDITABLE_STATUSES = frozenset({"draft", "rejected"})

VALUE_TRANSITIONS = {
    "edit": {"from": ["draft", "rejected"], "to": "draft"},
    "submit": {"from": ["draft"], "to": "submitted"},
    "validate": {"from": ["submitted"], "to": "validated"},
    "reject": {"from": ["submitted"], "to": "rejected"},
}

HISTORY_CHANGE_TYPES = frozenset({"create", "update", "submit", "validate", "reject"})


class IndicatorValue(db.Model):
    """
    Authoritative record for ``(scope, process, indicator, year, month)``.

    ``scope_name`` holds the site name, or the organization name for
    organizations reporting without sub-structure. The composite unique
    constraint is the only concurrency control: inserts race on it and
    transitions are conditional updates guarded by ``status``.
    """

    __tablename__ = "indicator_values"

    id = db.Column(db.Integer, primary_key=True)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
    )
    scope_name = db.Column(db.String(200), nullable=False)
    scope_type = db.Column(db.String(20), nullable=False, default="site", comment="site | organization")
    process_code = db.Column(db.String(50), nullable=False)
    indicator_code = db.Column(db.String(50), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False, comment="1-12")

    value = db.Column(db.Float, nullable=True)
    status = db.Column(
        db.String(20),
        nullable=False,
        default="draft",
        comment="draft | submitted | validated | rejected",
    )
    comment = db.Column(db.Text, nullable=True)

    submitted_by = db.Column(db.String(200), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    validated_by = db.Column(db.String(200), nullable=True)
    validated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.String(200), nullable=True)
    updated_by = db.Column(db.String(200), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "organization_name", "scope_name", "process_code",
            "indicator_code", "year", "month",
            name="uq_indicator_value_key",
        ),
        db.Index("ix_indicator_values_org_year", "organization_name", "year"),
        db.Index("ix_indicator_values_indicator_year", "indicator_code", "year", "status"),
    )

    @property
    def key(self) -> tuple:
        return (self.scope_name, self.process_code, self.indicator_code, self.year, self.month)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_name": self.organization_name,
            "scope_name": self.scope_name,
            "scope_type": self.scope_type,
            "process_code": self.process_code,
            "indicator_code": self.indicator_code,
            "year": self.year,
            "month": self.month,
            "value": self.value,
            "status": self.status,
            "comment": self.comment,
            "submitted_by": self.submitted_by,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "validated_by": self.validated_by,
            "validated_at": self.validated_at.isoformat() if self.validated_at else None,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return (
            f"<IndicatorValue {self.id}: {self.scope_name}/{self.indicator_code} "
            f"{self.year}-{self.month:02d} {self.status}>"
        )


class ValueHistory(db.Model):
    """
    Immutable trail: one row per edit or status transition of a value.
    Rows are never updated or deleted.
    """

    __tablename__ = "value_history"

    id = db.Column(db.Integer, primary_key=True)
    indicator_value_id = db.Column(
        db.Integer,
        db.ForeignKey("indicator_values.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_name = db.Column(db.String(200), nullable=False, index=True)
    change_type = db.Column(
        db.String(20),
        nullable=False,
        comment="create | update | submit | validate | reject",
    )
    old_value = db.Column(db.Float, nullable=True)
    new_value = db.Column(db.Float, nullable=True)
    old_status = db.Column(db.String(20), nullable=True)
    new_status = db.Column(db.String(20), nullable=True)
    changed_by = db.Column(db.String(200), nullable=False, default="system")
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "indicator_value_id": self.indicator_value_id,
            "change_type": self.change_type,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "changed_by": self.changed_by,
            "comment": self.comment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ValueHistory {self.id}: {self.change_type} on value {self.indicator_value_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_history(
    *,
    value_id: int,
    organization_name: str,
    change_type: str,
    changed_by: str = "system",
    old_value: float | None = None,
    new_value: float | None = None,
    old_status: str | None = None,
    new_status: str | None = None,
    comment: str | None = None,
) -> ValueHistory:
    """
    Append a single history row. Does not commit; callers keep
    transaction control.
    """
    entry = ValueHistory(
        indicator_value_id=value_id,
        organization_name=organization_name,
        change_type=change_type,
        old_value=old_value,
        new_value=new_value,
        old_status=old_status,
        new_status=new_status,
        changed_by=changed_by or "system",
        comment=comment,
    )
    db.session.add(entry)
    return entry
