"""initial schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


project_status = postgresql.ENUM(
    "ONGOING", "COMPLETED", "CANCELLED", "ON_HOLD", name="project_status", create_type=False
)
task_type = postgresql.ENUM("FEATURE", "BUG", "CHORE", "SUPPORT", "RESEARCH", name="task_type", create_type=False)
task_status = postgresql.ENUM(
    "BACKLOG",
    "TODO",
    "IN_PROGRESS",
    "IN_REVIEW",
    "BLOCKED",
    "DONE",
    "CANCELED",
    name="task_status",
    create_type=False,
)
task_priority = postgresql.ENUM("LOW", "MEDIUM", "HIGH", "URGENT", name="task_priority", create_type=False)
task_link_type = postgresql.ENUM("BLOCKS", "RELATES_TO", name="task_link_type", create_type=False)
activity_type = postgresql.ENUM(
    "CREATED", "FIELD_CHANGE", "UPDATED", "ASSIGNED", "UNASSIGNED", name="activity_type", create_type=False
)
requirement_type = postgresql.ENUM(
    "NEW_PROJECT", "FEATURE_REQUEST", "CHANGE_REQUEST", "BUG", name="requirement_type", create_type=False
)
requirement_status = postgresql.ENUM(
    "DRAFT",
    "SUBMITTED",
    "APPROVED",
    "REJECTED",
    "IN_PROGRESS",
    "COMPLETED",
    name="requirement_status",
    create_type=False,
)
requirement_priority = postgresql.ENUM(
    "LOW", "MEDIUM", "HIGH", "URGENT", name="requirement_priority", create_type=False
)

ENUM_TYPES = (
    project_status,
    task_type,
    task_status,
    task_priority,
    task_link_type,
    activity_type,
    requirement_type,
    requirement_status,
    requirement_priority,
)


def _id_column() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _fk(name: str, target: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    for enum_type in ENUM_TYPES:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "clients",
        _id_column(),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("time_display_multiplier", sa.Numeric(6, 2), nullable=True, server_default=sa.text("1.00")),
        sa.Column("show_assignees", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )

    op.create_table(
        "users",
        _id_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="STAFF"),
        _fk("client_id", "clients.id", nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_client_id", "users", ["client_id"])

    op.create_table(
        "projects",
        _id_column(),
        _fk("client_id", "clients.id", nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", project_status, nullable=False, server_default="ONGOING"),
        sa.Column("time_display_multiplier", sa.Numeric(6, 2), nullable=True),
        _fk("created_by_id", "users.id"),
        *_timestamps(),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])
    op.create_index("ix_projects_created_by_id", "projects", ["created_by_id"])

    op.create_table(
        "project_members",
        _id_column(),
        _fk("project_id", "projects.id"),
        _fk("user_id", "users.id"),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_members"),
    )
    op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    op.create_table(
        "modules",
        _id_column(),
        _fk("project_id", "projects.id"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("time_display_multiplier", sa.Numeric(6, 2), nullable=True),
        _fk("created_by_id", "users.id"),
        *_timestamps(),
    )
    op.create_index("ix_modules_project_id", "modules", ["project_id"])

    op.create_table(
        "tasks",
        _id_column(),
        _fk("project_id", "projects.id"),
        _fk("module_id", "modules.id", nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", task_type, nullable=False, server_default="FEATURE"),
        sa.Column("status", task_status, nullable=False, server_default="TODO"),
        sa.Column("priority", task_priority, nullable=False, server_default="MEDIUM"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _fk("created_by_id", "users.id"),
        *_timestamps(),
        sa.CheckConstraint(
            "(status = 'DONE' AND completed_at IS NOT NULL) OR (status <> 'DONE' AND completed_at IS NULL)",
            name="ck_tasks_completed_at_matches_status",
        ),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_module_id", "tasks", ["module_id"])

    op.create_table(
        "task_assignees",
        _id_column(),
        _fk("task_id", "tasks.id"),
        _fk("user_id", "users.id"),
        sa.UniqueConstraint("task_id", "user_id", name="uq_task_assignees"),
    )
    op.create_index("ix_task_assignees_user_id", "task_assignees", ["user_id"])

    op.create_table(
        "work_logs",
        _id_column(),
        _fk("task_id", "tasks.id"),
        _fk("user_id", "users.id"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_min", sa.Numeric(12, 4), nullable=False),
        sa.Column("client_adjusted_duration_min", sa.Numeric(12, 4), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_work_logs_end_after_start"),
        sa.CheckConstraint("duration_min > 0", name="ck_work_logs_duration_positive"),
    )
    op.create_index("ix_work_logs_task_start", "work_logs", ["task_id", "start_time"])
    op.create_index("ix_work_logs_user_start", "work_logs", ["user_id", "start_time"])

    op.create_table(
        "task_activities",
        _id_column(),
        _fk("task_id", "tasks.id"),
        _fk("user_id", "users.id"),
        sa.Column("type", activity_type, nullable=False),
        sa.Column("field", sa.String(length=64), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_task_activities_task_created", "task_activities", ["task_id", "created_at"])

    op.create_table(
        "task_comments",
        _id_column(),
        _fk("task_id", "tasks.id"),
        _fk("user_id", "users.id"),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"])

    op.create_table(
        "task_links",
        _id_column(),
        _fk("source_task_id", "tasks.id"),
        _fk("target_task_id", "tasks.id"),
        sa.Column("type", task_link_type, nullable=False),
        _fk("created_by_id", "users.id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("source_task_id <> target_task_id", name="ck_task_links_not_self"),
        sa.UniqueConstraint("source_task_id", "target_task_id", "type", name="uq_task_links"),
    )
    op.create_index("ix_task_links_target_task_id", "task_links", ["target_task_id"])

    op.create_table(
        "requirements",
        _id_column(),
        sa.Column("type", requirement_type, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", requirement_status, nullable=False, server_default="DRAFT"),
        sa.Column("priority", requirement_priority, nullable=False, server_default="MEDIUM"),
        _fk("client_id", "clients.id", nullable=True),
        _fk("parent_id", "requirements.id", nullable=True),
        _fk("created_by_id", "users.id"),
        *_timestamps(),
        sa.CheckConstraint(
            "type <> 'CHANGE_REQUEST' OR parent_id IS NOT NULL",
            name="ck_requirements_change_request_has_parent",
        ),
    )
    op.create_index("ix_requirements_client_id", "requirements", ["client_id"])
    op.create_index("ix_requirements_parent_id", "requirements", ["parent_id"])

    op.create_table(
        "requirement_activities",
        _id_column(),
        _fk("requirement_id", "requirements.id"),
        _fk("user_id", "users.id"),
        sa.Column("type", activity_type, nullable=False),
        sa.Column("field", sa.String(length=64), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_requirement_activities_requirement_created",
        "requirement_activities",
        ["requirement_id", "created_at"],
    )


def downgrade() -> None:
    for table in (
        "requirement_activities",
        "requirements",
        "task_links",
        "task_comments",
        "task_activities",
        "work_logs",
        "task_assignees",
        "tasks",
        "modules",
        "project_members",
        "projects",
        "users",
        "clients",
    ):
        op.drop_table(table)

    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(op.get_bind(), checkfirst=True)
