"""create timetable entries

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("teacher_id", sa.Integer(), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_minute", sa.Integer(), nullable=False),
        sa.Column("end_minute", sa.Integer(), nullable=False),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_timetable_entries_day"),
        sa.CheckConstraint("start_minute < end_minute", name="ck_timetable_entries_interval"),
    )
    op.create_index("ix_timetable_entries_batch_id", "timetable_entries", ["batch_id"])
    op.create_index(
        "ix_timetable_entries_batch_day",
        "timetable_entries",
        ["batch_id", "day_of_week", "is_active"],
    )
    op.create_index(
        "ix_timetable_entries_teacher_day",
        "timetable_entries",
        ["teacher_id", "day_of_week", "is_active"],
    )


def downgrade() -> None:
    op.drop_index("ix_timetable_entries_teacher_day", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_batch_day", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_batch_id", table_name="timetable_entries")
    op.drop_table("timetable_entries")
