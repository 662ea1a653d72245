"""Initial LinkKeeper schema: members, link_history, distribution_lists, admin_log

Revision ID: 3c5e7a9b1d2f
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3c5e7a9b1d2f"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("discord_id", sa.String(32), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("join_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_officer", sa.Boolean(), server_default=sa.false()),
        sa.Column("weekly_boss_participation", sa.Boolean(), server_default=sa.false()),
        sa.Column("omni_absence_count", sa.Integer(), server_default="0"),
        sa.Column("omni_participation_dates", JSONType, nullable=True),
        sa.Column("last_omni_participation", sa.DateTime(timezone=True), nullable=True),
        sa.Column("compensation_owed", sa.Boolean(), server_default=sa.false()),
        sa.Column("rank", sa.String(20), server_default="Book Worm"),
        sa.Column("silver_eligible", sa.Boolean(), server_default=sa.false()),
        sa.Column("gold_eligible", sa.Boolean(), server_default=sa.false()),
        sa.Column("days_in_guild", sa.Integer(), server_default="0"),
        sa.Column("added_by", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )

    op.create_table(
        "link_history",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("discord_id", sa.String(32), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("date_received", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_compensation", sa.Boolean(), server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_link_history_member_time", "link_history", ["discord_id", "date_received"])
    op.create_index("ix_link_history_time", "link_history", ["date_received"])

    op.create_table(
        "distribution_lists",
        sa.Column("tier", sa.String(10), primary_key=True),
        sa.Column("eligible_members", JSONType, nullable=True),
        sa.Column("completed_members", JSONType, nullable=True),
        sa.Column("inactive_members", JSONType, nullable=True),
        sa.Column("compensation_queue", JSONType, nullable=True),
        sa.Column("max_absence_count", sa.Integer(), nullable=False),
        sa.Column("current_cycle_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_reset_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("actor_id", sa.String(32), nullable=True),
        sa.Column("action_type", sa.String(30), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(50), nullable=True),
        sa.Column("before_snapshot", JSONType, nullable=True),
        sa.Column("after_snapshot", JSONType, nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_admin_log_timestamp", "admin_log", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_admin_log_timestamp", table_name="admin_log")
    op.drop_table("admin_log")
    op.drop_table("distribution_lists")
    op.drop_index("ix_link_history_time", table_name="link_history")
    op.drop_index("ix_link_history_member_time", table_name="link_history")
    op.drop_table("link_history")
    op.drop_table("members")
