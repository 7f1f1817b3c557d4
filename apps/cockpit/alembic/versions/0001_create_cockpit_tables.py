"""create campaign, line item and history tables

Revision ID: 0001_create_cockpit_tables
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_create_cockpit_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ---- campaigns ----
    op.create_table(
        "campaigns",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False, server_default="EUR"),
        sa.Column("kpi_type", sa.Text(), nullable=False, server_default="CPC"),
        sa.Column("target_kpi", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("cpm_sold_cap", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("budget_total", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )

    # ---- line_items (replaced wholesale on apply) ----
    op.create_table(
        "line_items",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("spend", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("cpm_revenue", sa.Numeric(), nullable=False),
        sa.Column("margin_pct", sa.Numeric(), nullable=False),
        sa.Column("kpi_actual", sa.Numeric(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(
            ["campaign_id"], ["campaigns.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint("campaign_id", "position"),
    )

    # ---- campaign_history (append-only audit trail) ----
    op.create_table(
        "campaign_history",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
        sa.Column("margin_goal", sa.Text(), nullable=True),
        sa.Column("budget_spent", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("margin_pct", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("cpm_revenue_actual", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column("gain_realized", sa.Numeric(), nullable=False, server_default="0"),
        sa.Column(
            "details_json",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["campaign_id"], ["campaigns.id"], ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_campaign_history_campaign_created",
        "campaign_history",
        ["campaign_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_campaign_history_campaign_created", table_name="campaign_history")
    op.drop_table("campaign_history")
    op.drop_table("line_items")
    op.drop_table("campaigns")
