"""
ESG Pilotage Platform
Organization hierarchy models.

Models:
    - Organization: tenant root (simple | with_subsidiaries | group)
    - BusinessLine: optional first level under an organization
    - Subsidiary: optional second level, may hang under a business line
    - Site: leaf reporting unit

Nodes are keyed by a unique ``name``; parents are referenced by name, the
same way the reporting tables reference them. Administrators create and edit
these rows; the lifecycle and consolidation services only read them.
"""

from datetime import datetime, timezone

from app.models import db

ORGANIZATION_TYPES = frozenset({"simple", "with_subsidiaries", "group"})

NODE_LEVELS = ("organization", "business_line", "subsidiary", "site")


# ── Organization ─────────────────────────────────────────────────────────────


class Organization(db.Model):
    """Top of the reporting tree; every other row is scoped by its name."""

    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    organization_type = db.Column(
        db.String(30),
        nullable=False,
        default="simple",
        comment="simple | with_subsidiaries | group",
    )
    description = db.Column(db.Text, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def has_substructure(self) -> bool:
        return self.organization_type != "simple"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "organization_type": self.organization_type,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Organization {self.name} ({self.organization_type})>"


# ── BusinessLine ─────────────────────────────────────────────────────────────


class BusinessLine(db.Model):
    __tablename__ = "business_lines"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description = db.Column(db.Text, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "level": "business_line",
            "name": self.name,
            "organization_name": self.organization_name,
            "description": self.description,
        }

    def __repr__(self):
        return f"<BusinessLine {self.name}>"


# ── Subsidiary ───────────────────────────────────────────────────────────────


class Subsidiary(db.Model):
    __tablename__ = "subsidiaries"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    business_line_name = db.Column(db.String(200), nullable=True, index=True)
    description = db.Column(db.Text, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "level": "subsidiary",
            "name": self.name,
            "organization_name": self.organization_name,
            "business_line_name": self.business_line_name,
            "description": self.description,
        }

    def __repr__(self):
        return f"<Subsidiary {self.name}>"


# ── Site ─────────────────────────────────────────────────────────────────────


class Site(db.Model):
    """Leaf reporting unit. Parent fields are optional and name-based."""

    __tablename__ = "sites"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    organization_name = db.Column(
        db.String(200),
        db.ForeignKey("organizations.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    business_line_name = db.Column(db.String(200), nullable=True, index=True)
    subsidiary_name = db.Column(db.String(200), nullable=True, index=True)
    address = db.Column(db.String(300), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    country = db.Column(db.String(120), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "level": "site",
            "name": self.name,
            "organization_name": self.organization_name,
            "business_line_name": self.business_line_name,
            "subsidiary_name": self.subsidiary_name,
            "address": self.address,
            "city": self.city,
            "country": self.country,
        }

    def __repr__(self):
        return f"<Site {self.name}>"
