"""ESG core: hierarchy, catalog, indicator values, history, consolidated cache

Revision ID: a0e1s2g3c401
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "a0e1s2g3c401"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── Hierarchy ────────────────────────────────────────────────────────
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("organization_type", sa.String(30), nullable=False, server_default="simple"),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "business_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "subsidiaries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("business_line_name", sa.String(200), nullable=True, index=True),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("business_line_name", sa.String(200), nullable=True, index=True),
        sa.Column("subsidiary_name", sa.String(200), nullable=True, index=True),
        sa.Column("address", sa.String(300)),
        sa.Column("city", sa.String(120)),
        sa.Column("country", sa.String(120)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ── Catalog ──────────────────────────────────────────────────────────
    op.create_table(
        "processes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("indicator_codes", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "indicators",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("unit", sa.String(50), server_default=""),
        sa.Column("consolidation_method", sa.String(20), nullable=False, server_default="sum"),
        sa.Column("axis", sa.String(20)),
        sa.Column("indicator_type", sa.String(20), server_default="primary"),
        sa.Column("frequency", sa.String(20), server_default="monthly"),
        sa.Column("formula", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "site_processes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("scope_name", sa.String(200), nullable=False, index=True),
        sa.Column("scope_type", sa.String(20), nullable=False, server_default="site"),
        sa.Column("process_code", sa.String(50), sa.ForeignKey("processes.code", ondelete="CASCADE"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("start_year", sa.Integer()),
        sa.Column("end_year", sa.Integer()),
        sa.UniqueConstraint("organization_name", "scope_name", "process_code", name="uq_site_process_scope"),
    )
    op.create_table(
        "user_processes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(200), nullable=False, index=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("process_code", sa.String(50), sa.ForeignKey("processes.code", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("scope_name", sa.String(200)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_processes_org_email", "user_processes", ["organization_name", "email"])
    op.create_table(
        "indicator_targets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False),
        sa.Column("indicator_code", sa.String(50), sa.ForeignKey("indicators.code", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("target_value", sa.Float()),
        sa.UniqueConstraint("organization_name", "indicator_code", "year", name="uq_indicator_target"),
    )

    # ── Values ───────────────────────────────────────────────────────────
    op.create_table(
        "indicator_values",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False),
        sa.Column("scope_name", sa.String(200), nullable=False),
        sa.Column("scope_type", sa.String(20), nullable=False, server_default="site"),
        sa.Column("process_code", sa.String(50), nullable=False),
        sa.Column("indicator_code", sa.String(50), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("value", sa.Float()),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("comment", sa.Text()),
        sa.Column("submitted_by", sa.String(200)),
        sa.Column("submitted_at", sa.DateTime(timezone=True)),
        sa.Column("validated_by", sa.String(200)),
        sa.Column("validated_at", sa.DateTime(timezone=True)),
        sa.Column("created_by", sa.String(200)),
        sa.Column("updated_by", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "organization_name", "scope_name", "process_code", "indicator_code", "year", "month",
            name="uq_indicator_value_key",
        ),
    )
    op.create_index("ix_indicator_values_org_year", "indicator_values", ["organization_name", "year"])
    op.create_index("ix_indicator_values_indicator_year", "indicator_values", ["indicator_code", "year", "status"])

    op.create_table(
        "value_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("indicator_value_id", sa.Integer(), sa.ForeignKey("indicator_values.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("organization_name", sa.String(200), nullable=False, index=True),
        sa.Column("change_type", sa.String(20), nullable=False),
        sa.Column("old_value", sa.Float()),
        sa.Column("new_value", sa.Float()),
        sa.Column("old_status", sa.String(20)),
        sa.Column("new_status", sa.String(20)),
        sa.Column("changed_by", sa.String(200), nullable=False, server_default="system"),
        sa.Column("comment", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # ── Consolidated cache ───────────────────────────────────────────────
    op.create_table(
        "consolidated_indicator_values",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_name", sa.String(200), sa.ForeignKey("organizations.name", ondelete="CASCADE"), nullable=False),
        sa.Column("node_level", sa.String(20), nullable=False),
        sa.Column("node_name", sa.String(200), nullable=False),
        sa.Column("indicator_code", sa.String(50), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("consolidation_method", sa.String(20), nullable=False),
        *[sa.Column(f"m{m:02d}", sa.Float()) for m in range(1, 13)],
        sa.Column("total_value", sa.Float()),
        sa.Column("target_value", sa.Float()),
        sa.Column("previous_value", sa.Float()),
        sa.Column("variation", sa.Float()),
        sa.Column("performance", sa.Float()),
        sa.Column("site_names", sa.JSON(), nullable=False),
        sa.Column("is_stale", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "organization_name", "node_level", "node_name", "indicator_code", "year",
            name="uq_consolidated_key",
        ),
    )
    op.create_index("ix_consolidated_org_year", "consolidated_indicator_values", ["organization_name", "year"])


def downgrade():
    op.drop_index("ix_consolidated_org_year", table_name="consolidated_indicator_values")
    op.drop_table("consolidated_indicator_values")
    op.drop_table("value_history")
    op.drop_index("ix_indicator_values_indicator_year", table_name="indicator_values")
    op.drop_index("ix_indicator_values_org_year", table_name="indicator_values")
    op.drop_table("indicator_values")
    op.drop_table("indicator_targets")
    op.drop_index("ix_user_processes_org_email", table_name="user_processes")
    op.drop_table("user_processes")
    op.drop_table("site_processes")
    op.drop_table("indicators")
    op.drop_table("processes")
    op.drop_table("sites")
    op.drop_table("subsidiaries")
    op.drop_table("business_lines")
    op.drop_table("organizations")
