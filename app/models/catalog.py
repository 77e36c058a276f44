"""
ESG Pilotage Platform
Catalog and assignment models.

Models:
    - Process: reporting scope of a department, owns indicator codes
    - Indicator: metric definition incl. its consolidation method
    - ScopeProcess: which processes a site (or organization) must report
    - UserProcess: which processes a user contributes to / validates
    - IndicatorTarget: yearly target value per organization and indicator
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

CONSOLIDATION_METHODS = frozenset({"sum", "last", "average", "max", "min"})

INDICATOR_AXES = frozenset({"environmental", "social", "governance"})
INDICATOR_TYPES = frozenset({"primary", "computed"})
INDICATOR_FREQUENCIES = frozenset({"monthly", "quarterly", "annual"})

USER_PROCESS_ROLES = frozenset({"contributor", "validator"})

SCOPE_TYPES = frozenset({"site", "organization"})


# ── Process ──────────────────────────────────────────────────────────────────


class Process(db.Model):
    __tablename__ = "processes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    indicator_codes = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "indicator_codes": list(self.indicator_codes or []),
        }

    def __repr__(self):
        return f"<Process {self.code}>"


# ── Indicator ────────────────────────────────────────────────────────────────


class Indicator(db.Model):
    """
    Metric definition.

    ``consolidation_method`` drives both the roll-up across sites and the
    annual figure used for variation/performance. ``formula`` is a
    display-only descriptor and is never evaluated.
    """

    __tablename__ = "indicators"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    unit = db.Column(db.String(50), default="")
    consolidation_method = db.Column(
        db.String(20),
        nullable=False,
        default="sum",
        comment="sum | last | average | max | min",
    )
    axis = db.Column(
        db.String(20),
        nullable=True,
        comment="environmental | social | governance",
    )
    indicator_type = db.Column(db.String(20), default="primary", comment="primary | computed")
    frequency = db.Column(db.String(20), default="monthly", comment="monthly | quarterly | annual")
    formula = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "consolidation_method": self.consolidation_method,
            "axis": self.axis,
            "indicator_type": self.indicator_type,
            "frequency": self.frequency,
            "formula": self.formula,
        }

    def __repr__(self):
        return f"<Indicator {self.code} ({self.consolidation_method})>"


# ── ScopeProcess ─────────────────────────────────────────────────────────────


class ScopeProcess(db.Model):
    """
    Assignment of a process to a reporting scope.

    ``scope_name`` is a site name, or the organization name itself when the
    organization reports without sub-structure. ``start_year``/``end_year``
    bound the years for which the assignment makes values required.
    """

    __tablename__ = "site_processes"

    id = db.Column(db.Integer, primary_key=True)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scope_name = db.Column(db.String(200), nullable=False, index=True)
    scope_type = db.Column(db.String(20), nullable=False, default="site", comment="site | organization")
    process_code = db.Column(
        db.String(50),
        db.ForeignKey("processes.code", ondelete="CASCADE"),
        nullable=False,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    start_year = db.Column(db.Integer, nullable=True)
    end_year = db.Column(db.Integer, nullable=True)

    __table_args__ = (
        db.UniqueConstraint(
            "organization_name", "scope_name", "process_code",
            name="uq_site_process_scope",
        ),
    )

    def covers_year(self, year: int) -> bool:
        if self.start_year is not None and year < self.start_year:
            return False
        if self.end_year is not None and year > self.end_year:
            return False
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "organization_name": self.organization_name,
            "scope_name": self.scope_name,
            "scope_type": self.scope_type,
            "process_code": self.process_code,
            "is_active": self.is_active,
            "start_year": self.start_year,
            "end_year": self.end_year,
        }


# ── UserProcess ──────────────────────────────────────────────────────────────


class UserProcess(db.Model):
    """
    Role assignment of a user (by email) on a process.

    ``scope_name`` NULL means the role applies to every scope of the
    organization; otherwise it is restricted to that site.
    """

    __tablename__ = "user_processes"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, index=True)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    process_code = db.Column(
        db.String(50),
        db.ForeignKey("processes.code", ondelete="CASCADE"),
        nullable=False,
    )
    role = db.Column(db.String(20), nullable=False, comment="contributor | validator")
    scope_name = db.Column(db.String(200), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_user_processes_org_email", "organization_name", "email"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "organization_name": self.organization_name,
            "process_code": self.process_code,
            "role": self.role,
            "scope_name": self.scope_name,
            "is_active": self.is_active,
        }


# ── IndicatorTarget ──────────────────────────────────────────────────────────


class IndicatorTarget(db.Model):
    __tablename__ = "indicator_targets"

    id = db.Column(db.Integer, primary_key=True)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
    )
    indicator_code = db.Column(
        db.String(50),
        db.ForeignKey("indicators.code", ondelete="CASCADE"),
        nullable=False,
    )
    year = db.Column(db.Integer, nullable=False)
    target_value = db.Column(db.Float, nullable=True)

    __table_args__ = (
        db.UniqueConstraint(
            "organization_name", "indicator_code", "year",
            name="uq_indicator_target",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_name": self.organization_name,
            "indicator_code": self.indicator_code,
            "year": self.year,
            "target_value": self.target_value,
        }
