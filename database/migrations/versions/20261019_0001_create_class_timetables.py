"""create class timetables

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
        "class_timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("college_year", sa.Integer(), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("division", sa.String(length=20), nullable=False),
        sa.Column("lunch_slot_index", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("constraints", sa.JSON(), nullable=False),
        sa.Column("entries", sa.JSON(), nullable=False),
        sa.Column("deleted_entries", sa.JSON(), nullable=False),
        sa.Column("added_entries", sa.JSON(), nullable=False),
        sa.Column("created_by_name", sa.String(length=200), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "department",
            "college_year",
            "semester",
            "division",
            name="uq_class_timetables_class_key",
        ),
    )
    op.create_index("ix_class_timetables_department", "class_timetables", ["department"])


def downgrade() -> None:
    op.drop_index("ix_class_timetables_department", table_name="class_timetables")
    op.drop_table("class_timetables")
