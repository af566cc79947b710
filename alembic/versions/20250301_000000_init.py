"""init

Revision ID: 20250301_000000
Revises:
Create Date: 2025-03-01 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20250301_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role_enum = sa.Enum("ADMIN", "MANAGER", "STAFF", name="user_role")
project_status_enum = sa.Enum("PENDING", "IN_PROGRESS", "HOLD", "COMPLETED", name="project_status")
project_priority_enum = sa.Enum("URGENT", "HIGH", "MEDIUM", "LOW", name="project_priority")
work_status_enum = sa.Enum("not_started", "start", "hold", "end", name="work_status")
work_event_type_enum = sa.Enum("start", "hold", "resume", "end", name="work_event_type")


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), onupdate=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("role", user_role_enum, nullable=False, server_default="STAFF"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), onupdate=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("client_name", sa.String(length=200), nullable=True),
        sa.Column("status", project_status_enum, nullable=False, server_default="PENDING"),
        sa.Column("priority", project_priority_enum, nullable=False, server_default="MEDIUM"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("developer_deadline_date", sa.Date(), nullable=True),
        sa.Column("client_deadline_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), onupdate=sa.func.now()),
    )

    op.create_table(
        "project_team_members",
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("work_status", work_status_enum, nullable=False, server_default="not_started"),
        sa.Column("work_running_since", sa.DateTime(), nullable=True),
        sa.Column("work_accumulated_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("work_cycle", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("work_started_at", sa.DateTime(), nullable=True),
        sa.Column("work_ended_at", sa.DateTime(), nullable=True),
        sa.Column("work_done_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "project_work_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_type", work_event_type_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("cycle", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index(
        "ix_project_work_events_pair",
        "project_work_events",
        ["project_id", "user_id", "occurred_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_project_work_events_pair", table_name="project_work_events")
    op.drop_table("project_work_events")
    op.drop_table("project_team_members")
    op.drop_table("projects")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("organizations")

    work_event_type_enum.drop(op.get_bind(), checkfirst=True)
    work_status_enum.drop(op.get_bind(), checkfirst=True)
    project_priority_enum.drop(op.get_bind(), checkfirst=True)
    project_status_enum.drop(op.get_bind(), checkfirst=True)
    user_role_enum.drop(op.get_bind(), checkfirst=True)
