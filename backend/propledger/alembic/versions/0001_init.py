"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-01
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("property_type", sa.String(length=100), nullable=True),
        sa.Column("monthly_rent", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_properties_user_id", "properties", ["user_id"])

    op.create_table(
        "appliances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=True),
        sa.Column("installation_date", sa.Date(), nullable=True),
        # working|maintenance|broken at this revision
        sa.Column("status", sa.String(length=20), nullable=False, server_default="working"),
        sa.Column("last_maintenance", sa.Date(), nullable=True),
        sa.Column("last_maintenance_cost", sa.Float(), nullable=True),
        sa.Column("maintenance_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_maintenance_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_appliances_property_id", "appliances", ["property_id"])

    op.create_table(
        "maintenance_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("appliance_id", sa.Integer(), sa.ForeignKey("appliances.id", ondelete="CASCADE"), nullable=False),
        sa.Column("maintenance_type", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("technician_name", sa.String(length=120), nullable=True),
        sa.Column("technician_company", sa.String(length=160), nullable=True),
        sa.Column("maintenance_date", sa.Date(), nullable=False),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("parts_replaced_json", sa.Text(), nullable=True),
        sa.Column("warranty_until", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_maintenance_records_appliance_id", "maintenance_records", ["appliance_id"])
    op.create_index(
        "ix_maintenance_records_appliance_date",
        "maintenance_records",
        ["appliance_id", "maintenance_date"],
    )

    op.create_table(
        "rent_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("reference_number", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="paid"),
        sa.Column("late_fee_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_rent_payments_property_id", "rent_payments", ["property_id"])
    op.create_index("ix_rent_payments_payment_date", "rent_payments", ["payment_date"])


def downgrade():
    op.drop_table("rent_payments")
    op.drop_table("maintenance_records")
    op.drop_table("appliances")
    op.drop_table("properties")
    op.drop_table("users")
