"""issues + issue-derived appliance state

Revision ID: 0002_issues_and_appliance_state
Revises: 0001_init
Create Date: 2026-10-08
"""
from alembic import op
import sqlalchemy as sa


revision = "0002_issues_and_appliance_state"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "issues",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("appliance_id", sa.Integer(), sa.ForeignKey("appliances.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("urgency", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("reported_date", sa.Date(), nullable=False),
        sa.Column("reported_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=True),
        sa.Column("resolved_date", sa.Date(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column(
            "maintenance_record_id",
            sa.Integer(),
            sa.ForeignKey("maintenance_records.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_issues_appliance_id", "issues", ["appliance_id"])
    op.create_index("ix_issues_status", "issues", ["status"])
    op.create_index("ix_issues_urgency", "issues", ["urgency"])
    op.create_index("ix_issues_reported_date", "issues", ["reported_date"])

    with op.batch_alter_table("appliances") as b:
        b.add_column(sa.Column("has_open_issues", sa.Boolean(), nullable=False, server_default=sa.false()))
        b.add_column(sa.Column("urgency_level", sa.String(length=20), nullable=True))

    # legacy statuses are rewritten once here; the app never writes them again
    op.execute("UPDATE appliances SET status = 'needs_repair' WHERE status = 'maintenance'")
    op.execute("UPDATE appliances SET status = 'out_of_service' WHERE status = 'broken'")


def downgrade():
    op.execute("UPDATE appliances SET status = 'maintenance' WHERE status IN ('needs_repair', 'under_repair')")
    op.execute("UPDATE appliances SET status = 'broken' WHERE status = 'out_of_service'")

    with op.batch_alter_table("appliances") as b:
        b.drop_column("urgency_level")
        b.drop_column("has_open_issues")

    op.drop_table("issues")
