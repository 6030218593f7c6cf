"""create applications tables

Revision ID: a7c3e91f0b24
Revises:
Create Date: 2026-10-18 12:00:00.000000

This migration:
1. Creates the application_status enum type
2. Creates the vacancies table
3. Creates the applications table with the unique constraint on
   (national_id_normalized, role_normalized) backing duplicate detection
4. Creates application_status_history with ON DELETE CASCADE to applications
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e91f0b24"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

STATUS_VALUES = (
    "New",
    "NotReached",
    "Withdrawn",
    "PreviouslyEmployed",
    "InterviewPassed",
    "CurrentlyEmployed",
    "Selected",
    "Hired",
)


def upgrade() -> None:
    """Create vacancies, applications and application_status_history."""
    status_enum = postgresql.ENUM(*STATUS_VALUES, name="application_status", create_type=False)
    status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "vacancies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=180), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_vacancies_name"),
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.Uuid(), nullable=False),
        # Applicant
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("national_id", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False),
        # Address
        sa.Column("postal_code", sa.String(length=12), nullable=False),
        sa.Column("city", sa.String(length=200), nullable=False),
        sa.Column("neighborhood", sa.String(length=200), nullable=False),
        sa.Column("street", sa.String(length=200), nullable=False),
        sa.Column("commute_mode", sa.String(length=40), nullable=False),
        sa.Column("target_role", sa.String(length=200), nullable=False),
        # Duplicate detection keys
        sa.Column("national_id_normalized", sa.String(length=11), nullable=False),
        sa.Column("role_normalized", sa.String(length=200), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        # Blob store
        sa.Column("attachment_path", sa.String(length=512), nullable=False),
        sa.Column("attachment_url", sa.String(length=2048), nullable=True),
        # Status projection
        sa.Column(
            "current_status",
            status_enum,
            nullable=False,
            server_default="New",
        ),
        sa.Column("status_changed_by", sa.Uuid(), nullable=True),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("attachment_path", name="uq_applications_attachment_path"),
        sa.UniqueConstraint(
            "national_id_normalized",
            "role_normalized",
            name="uq_applications_national_id_role",
        ),
    )
    op.create_index("ix_applications_submitted_at", "applications", ["submitted_at"])
    op.create_index("ix_applications_current_status", "applications", ["current_status"])
    op.create_index("ix_applications_target_role", "applications", ["target_role"])

    op.create_table(
        "application_status_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("application_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("status", status_enum, nullable=False),
        sa.Column("note", sa.String(length=1000), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            name="fk_application_status_history_application_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_application_status_history_application_id",
        "application_status_history",
        ["application_id", "created_at"],
    )


def downgrade() -> None:
    """Drop the applications tables and the status enum."""
    op.drop_index(
        "ix_application_status_history_application_id",
        table_name="application_status_history",
    )
    op.drop_table("application_status_history")

    op.drop_index("ix_applications_target_role", table_name="applications")
    op.drop_index("ix_applications_current_status", table_name="applications")
    op.drop_index("ix_applications_submitted_at", table_name="applications")
    op.drop_table("applications")

    op.drop_table("vacancies")

    postgresql.ENUM(name="application_status").drop(op.get_bind(), checkfirst=True)
