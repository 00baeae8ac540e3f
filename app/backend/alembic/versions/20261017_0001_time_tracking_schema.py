"""time tracking schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


client_role = postgresql.ENUM("owner", "member", name="client_role", create_type=False)
project_role = postgresql.ENUM("owner", "manager", "member", "viewer", name="project_role", create_type=False)
entry_source = postgresql.ENUM("manual", "stopwatch", name="entry_source", create_type=False)


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False)


def upgrade() -> None:
    client_role.create(op.get_bind(), checkfirst=True)
    project_role.create(op.get_bind(), checkfirst=True)
    entry_source.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("subject", sa.String(length=128), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "clients",
        _uuid_pk(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _user_fk("created_by_id"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "client_members",
        _uuid_pk(),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        _user_fk("user_id"),
        sa.Column("role", client_role, nullable=False),
        sa.Column("hourly_rate_cents", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "hourly_rate_cents IS NULL OR hourly_rate_cents >= 0",
            name="ck_client_members_rate_non_negative",
        ),
        sa.UniqueConstraint("client_id", "user_id", name="uq_client_members_client_user"),
    )
    op.create_index("ix_client_members_user_id", "client_members", ["user_id"])

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])

    op.create_table(
        "project_members",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        _user_fk("user_id"),
        sa.Column("role", project_role, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )
    op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    op.create_table(
        "activity_types",
        _uuid_pk(),
        sa.Column("name", sa.String(length=80), nullable=False, unique=True),
        sa.Column("is_billable_default", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "time_entries",
        _uuid_pk(),
        _user_fk("user_id"),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column(
            "activity_type_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("activity_types.id"),
            nullable=False,
        ),
        sa.Column("source", entry_source, nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=False),
        sa.Column("is_billable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("end_at > start_at", name="ck_time_entries_end_after_start"),
        sa.CheckConstraint("duration_minutes >= 0", name="ck_time_entries_duration_non_negative"),
    )
    op.create_index("ix_time_entries_user_start", "time_entries", ["user_id", "start_at"])
    op.create_index("ix_time_entries_project_start", "time_entries", ["project_id", "start_at"])

    op.create_table(
        "time_entry_audits",
        _uuid_pk(),
        sa.Column("time_entry_id", postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk("changed_by_id"),
        sa.Column("field", sa.String(length=64), nullable=False),
        sa.Column("previous_value", sa.String(length=2000), nullable=True),
        sa.Column("new_value", sa.String(length=2000), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_time_entry_audits_entry_changed",
        "time_entry_audits",
        ["time_entry_id", "changed_at"],
    )

    op.create_table(
        "rate_cards",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("hourly_rate_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("hourly_rate_cents >= 0", name="ck_rate_cards_rate_non_negative"),
    )

    op.create_table(
        "project_rate_overrides",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        _user_fk("user_id"),
        sa.Column("hourly_rate_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("hourly_rate_cents >= 0", name="ck_project_rate_overrides_rate_non_negative"),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_rate_overrides_project_user"),
    )

    op.create_table(
        "reports",
        _uuid_pk(),
        _user_fk("generated_by_id"),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("filters", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_reports_generated_by_created", "reports", ["generated_by_id", "created_at"])

    op.create_table(
        "report_snapshots",
        _uuid_pk(),
        sa.Column("report_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("reports.id"), nullable=False),
        sa.Column("summary", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_report_snapshots_report_id", "report_snapshots", ["report_id"])


def downgrade() -> None:
    op.drop_index("ix_report_snapshots_report_id", table_name="report_snapshots")
    op.drop_table("report_snapshots")

    op.drop_index("ix_reports_generated_by_created", table_name="reports")
    op.drop_table("reports")

    op.drop_table("project_rate_overrides")
    op.drop_table("rate_cards")

    op.drop_index("ix_time_entry_audits_entry_changed", table_name="time_entry_audits")
    op.drop_table("time_entry_audits")

    op.drop_index("ix_time_entries_project_start", table_name="time_entries")
    op.drop_index("ix_time_entries_user_start", table_name="time_entries")
    op.drop_table("time_entries")

    op.drop_table("activity_types")

    op.drop_index("ix_project_members_user_id", table_name="project_members")
    op.drop_table("project_members")

    op.drop_index("ix_projects_client_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_client_members_user_id", table_name="client_members")
    op.drop_table("client_members")

    op.drop_table("clients")
    op.drop_table("users")

    entry_source.drop(op.get_bind(), checkfirst=True)
    project_role.drop(op.get_bind(), checkfirst=True)
    client_role.drop(op.get_bind(), checkfirst=True)
