"""Initial volunteer hours schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

signup_status = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    "attended",
    "cancelled",
    name="signup_status",
    create_type=False,
)
verification_method = postgresql.ENUM(
    "qr-code",
    "auto",
    "manual",
    "signup-only",
    name="verification_method",
    create_type=False,
)
project_status = postgresql.ENUM(
    "upcoming",
    "in-progress",
    "completed",
    "cancelled",
    name="project_status",
    create_type=False,
)
audit_actor_type = postgresql.ENUM(
    "ADMIN",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def _created_at_column(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _jsonb_dict_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        nullable=False,
        server_default=sa.text("'{}'::jsonb"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    signup_status.create(bind, checkfirst=True)
    verification_method.create(bind, checkfirst=True)
    project_status.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
    )

    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("creator_id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("verification_method", verification_method, nullable=False),
        sa.Column("status", project_status, nullable=False, server_default=sa.text("'upcoming'")),
        _jsonb_dict_column("published"),
        _jsonb_dict_column("publish_failures"),
        sa.Column("project_timezone", sa.String(length=64), nullable=True),
        _created_at_column(),
        sa.ForeignKeyConstraint(["creator_id"], ["profiles.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_projects_creator_id", "projects", ["creator_id"], unique=False)
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"], unique=False)

    op.create_table(
        "anonymous_signups",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_anonymous_signups_project_id", "anonymous_signups", ["project_id"], unique=False)

    op.create_table(
        "project_signups",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("schedule_id", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("anonymous_id", sa.Uuid(), nullable=True),
        sa.Column("status", signup_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        _created_at_column(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["anonymous_id"], ["anonymous_signups.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_project_signups_project_id", "project_signups", ["project_id"], unique=False)
    op.create_index("ix_project_signups_user_id", "project_signups", ["user_id"], unique=False)
    op.create_index("ix_project_signups_check_out_time", "project_signups", ["check_out_time"], unique=False)

    op.create_table(
        "certificates",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("signup_id", sa.Uuid(), nullable=True),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("schedule_id", sa.String(length=255), nullable=True),
        sa.Column("volunteer_name", sa.String(length=255), nullable=False),
        sa.Column("volunteer_email", sa.String(length=320), nullable=True),
        sa.Column("project_title", sa.String(length=255), nullable=False),
        sa.Column("project_location", sa.String(length=500), nullable=True),
        sa.Column("organization_name", sa.String(length=255), nullable=True),
        sa.Column("creator_id", sa.Uuid(), nullable=True),
        sa.Column("creator_name", sa.String(length=255), nullable=False),
        sa.Column("is_certified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("check_in_method", sa.String(length=32), nullable=False),
        sa.Column("event_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default=sa.text("'platform'")),
        _created_at_column("issued_at"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["signup_id"], ["project_signups.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("signup_id", name="uq_certificates_signup_id"),
    )
    op.create_index("ix_certificates_project_id", "certificates", ["project_id"], unique=False)
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False, server_default=sa.text("'info'")),
        sa.Column("action_url", sa.String(length=1024), nullable=True),
        sa.Column("displayed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at_column(),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)

    op.create_table(
        "notification_settings",
        sa.Column("user_id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("project_updates", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("general", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _created_at_column("ts_utc"),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _jsonb_dict_column("details"),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("notification_settings")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_certificates_user_id", table_name="certificates")
    op.drop_index("ix_certificates_project_id", table_name="certificates")
    op.drop_table("certificates")
    op.drop_index("ix_project_signups_check_out_time", table_name="project_signups")
    op.drop_index("ix_project_signups_user_id", table_name="project_signups")
    op.drop_index("ix_project_signups_project_id", table_name="project_signups")
    op.drop_table("project_signups")
    op.drop_index("ix_anonymous_signups_project_id", table_name="anonymous_signups")
    op.drop_table("anonymous_signups")
    op.drop_index("ix_projects_organization_id", table_name="projects")
    op.drop_index("ix_projects_creator_id", table_name="projects")
    op.drop_table("projects")
    op.drop_table("profiles")
    op.drop_table("organizations")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    project_status.drop(bind, checkfirst=True)
    verification_method.drop(bind, checkfirst=True)
    signup_status.drop(bind, checkfirst=True)
