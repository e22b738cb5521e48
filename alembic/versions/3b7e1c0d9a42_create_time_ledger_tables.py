"""create time ledger tables

Revision ID: 3b7e1c0d9a42
Revises:
Create Date: 2026-10-12 09:14:51.204117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7e1c0d9a42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "employees",
        sa.Column("employee_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="EMPLOYEE"),
        sa.Column("hourly_rate", sa.Numeric(12, 4), nullable=True),
        sa.Column("overtime_rate", sa.Numeric(12, 4), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="ck_employees_hourly_rate_nonnegative"),
        sa.CheckConstraint("overtime_rate IS NULL OR overtime_rate >= 0", name="ck_employees_overtime_rate_nonnegative"),
    )
    op.create_index("ix_employees_company_id", "employees", ["company_id"], unique=False)

    op.create_table(
        "projects",
        sa.Column("project_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_projects_company_id", "projects", ["company_id"], unique=False)

    op.create_table(
        "tasks",
        sa.Column("task_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="todo"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["project_id"], ["projects.project_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_tasks_company_id", "tasks", ["company_id"], unique=False)
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)

    op.create_table(
        "time_entries",
        sa.Column("time_entry_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=True),
        sa.Column("task_id", sa.String(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rate", sa.Numeric(12, 4), nullable=True),
        sa.Column("keyboard_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mouse_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("activity_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("activity_level", sa.String(), nullable=True),
        sa.Column("approval_status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("approver_id", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("original_duration", sa.Integer(), nullable=True),
        sa.Column("edited_by", sa.String(), nullable=True),
        sa.Column("edited_at", sa.DateTime(), nullable=True),
        sa.Column("edit_reason", sa.Text(), nullable=True),
        sa.Column("manual", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(), nullable=False, server_default="web"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("end_time IS NULL OR end_time >= start_time", name="ck_time_entries_end_after_start"),
        sa.CheckConstraint("duration IS NULL OR duration >= 0", name="ck_time_entries_duration_nonnegative"),
        sa.CheckConstraint("status IN ('running', 'paused', 'stopped')", name="ck_time_entries_status"),
        sa.CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="ck_time_entries_approval_status",
        ),
    )
    op.create_index("ix_time_entries_time_entry_id", "time_entries", ["time_entry_id"], unique=False)
    op.create_index("ix_time_entries_company_id", "time_entries", ["company_id"], unique=False)
    op.create_index("ix_time_entries_user_id", "time_entries", ["user_id"], unique=False)
    op.create_index("ix_time_entries_project_id", "time_entries", ["project_id"], unique=False)
    op.create_index("ix_time_entries_task_id", "time_entries", ["task_id"], unique=False)
    op.create_index("ix_time_entries_status", "time_entries", ["status"], unique=False)
    op.create_index("ix_time_entries_approval_status", "time_entries", ["approval_status"], unique=False)
    op.create_index(
        "ix_time_entries_user_start",
        "time_entries",
        ["company_id", "user_id", "start_time"],
        unique=False,
    )

    op.create_table(
        "time_entry_breaks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("time_entry_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(), nullable=False, server_default="short"),
        sa.ForeignKeyConstraint(["time_entry_id"], ["time_entries.time_entry_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("time_entry_id", "position", name="uq_time_entry_breaks_position"),
    )
    op.create_index("ix_time_entry_breaks_time_entry_id", "time_entry_breaks", ["time_entry_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_time_entry_breaks_time_entry_id", table_name="time_entry_breaks")
    op.drop_table("time_entry_breaks")

    for name in (
        "ix_time_entries_user_start",
        "ix_time_entries_approval_status",
        "ix_time_entries_status",
        "ix_time_entries_task_id",
        "ix_time_entries_project_id",
        "ix_time_entries_user_id",
        "ix_time_entries_company_id",
        "ix_time_entries_time_entry_id",
    ):
        op.drop_index(name, table_name="time_entries")
    op.drop_table("time_entries")

    op.drop_index("ix_tasks_project_id", table_name="tasks")
    op.drop_index("ix_tasks_company_id", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("ix_projects_company_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_employees_company_id", table_name="employees")
    op.drop_table("employees")
