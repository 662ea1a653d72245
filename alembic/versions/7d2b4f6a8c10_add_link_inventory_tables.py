"""Add link_inventory and link_inventory_transactions

Revision ID: 7d2b4f6a8c10
Revises: 3c5e7a9b1d2f
Create Date: 2026-10-18 18:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "7d2b4f6a8c10"
down_revision = "3c5e7a9b1d2f"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "link_inventory",
        sa.Column("link_type", sa.String(100), primary_key=True),
        sa.Column("category", sa.String(100), nullable=False, server_default="Mastery Links"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("bronze_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("silver_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("gold_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(32), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_link_inventory_category", "link_inventory", ["category"])

    op.create_table(
        "link_inventory_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("link_type", sa.String(100), nullable=False),
        sa.Column("quality", sa.String(10), nullable=False),
        sa.Column("change_type", sa.String(10), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_count", sa.Integer(), nullable=False),
        sa.Column("new_count", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(32), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_inventory_tx_type_time",
        "link_inventory_transactions",
        ["link_type", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("ix_inventory_tx_type_time", table_name="link_inventory_transactions")
    op.drop_table("link_inventory_transactions")
    op.drop_index("ix_link_inventory_category", table_name="link_inventory")
    op.drop_table("link_inventory")
