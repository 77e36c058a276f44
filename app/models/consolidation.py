"""
ESG Pilotage Platform
Consolidated indicator cache.

ConsolidatedIndicatorValue is a derived projection of ``indicator_values``;
it is never authoritative and can be dropped and rebuilt at any time.
Rows are keyed by (organization, node_level, node_name, indicator, year) and
flagged ``is_stale`` when a contributing value is validated.
"""

from datetime import datetime, timezone

from app.models import db

MONTH_COLUMNS = (
    "m01", "m02", "m03", "m04", "m05", "m06",
    "m07", "m08", "m09", "m10", "m11", "m12",
)

CONSOLIDATION_NODE_LEVELS = frozenset({"organization", "business_line", "subsidiary"})


class ConsolidatedIndicatorValue(db.Model):
    __tablename__ = "consolidated_indicator_values"

    id = db.Column(db.Integer, primary_key=True)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
    )
    node_level = db.Column(
        db.String(20),
        nullable=False,
        comment="organization | business_line | subsidiary",
    )
    node_name = db.Column(db.String(200), nullable=False)
    indicator_code = db.Column(db.String(50), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    consolidation_method = db.Column(db.String(20), nullable=False)

    m01 = db.Column(db.Float, nullable=True)
    m02 = db.Column(db.Float, nullable=True)
    m03 = db.Column(db.Float, nullable=True)
    m04 = db.Column(db.Float, nullable=True)
    m05 = db.Column(db.Float, nullable=True)
    m06 = db.Column(db.Float, nullable=True)
    m07 = db.Column(db.Float, nullable=True)
    m08 = db.Column(db.Float, nullable=True)
    m09 = db.Column(db.Float, nullable=True)
    m10 = db.Column(db.Float, nullable=True)
    m11 = db.Column(db.Float, nullable=True)
    m12 = db.Column(db.Float, nullable=True)

    total_value = db.Column(db.Float, nullable=True)
    target_value = db.Column(db.Float, nullable=True)
    previous_value = db.Column(db.Float, nullable=True)
    variation = db.Column(db.Float, nullable=True)
    performance = db.Column(db.Float, nullable=True)
    site_names = db.Column(db.JSON, nullable=False, default=list)

    is_stale = db.Column(db.Boolean, nullable=False, default=False)
    computed_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "organization_name", "node_level", "node_name", "indicator_code", "year",
            name="uq_consolidated_key",
        ),
        db.Index("ix_consolidated_org_year", "organization_name", "year"),
    )

    @property
    def months(self) -> list:
        return [getattr(self, col) for col in MONTH_COLUMNS]

    @months.setter
    def months(self, values):
        for col, val in zip(MONTH_COLUMNS, values):
            setattr(self, col, val)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_name": self.organization_name,
            "node_level": self.node_level,
            "node_name": self.node_name,
            "indicator_code": self.indicator_code,
            "year": self.year,
            "consolidation_method": self.consolidation_method,
            "months": self.months,
            "total_value": self.total_value,
            "target_value": self.target_value,
            "previous_value": self.previous_value,
            "variation": self.variation,
            "performance": self.performance,
            "site_names": list(self.site_names or []),
            "is_stale": self.is_stale,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
        }

    def __repr__(self):
        return (
            f"<ConsolidatedIndicatorValue {self.node_level}:{self.node_name} "
            f"{self.indicator_code} {self.year}>"
        )
