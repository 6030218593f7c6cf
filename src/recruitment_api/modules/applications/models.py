"""
Applications Models

Database models for job applications, their status audit trail and the
vacancies applicants can apply to.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recruitment_api.core.database import Base

# Only a violation of this constraint means "same person, same role"
PERSON_ROLE_CONSTRAINT = "uq_applications_national_id_role"


class ApplicationStatus(str, enum.Enum):
    """Review status of an application. Any status may follow any other."""

    NEW = "New"
    NOT_REACHED = "NotReached"
    WITHDRAWN = "Withdrawn"
    PREVIOUSLY_EMPLOYED = "PreviouslyEmployed"
    INTERVIEW_PASSED = "InterviewPassed"
    CURRENTLY_EMPLOYED = "CurrentlyEmployed"
    SELECTED = "Selected"
    HIRED = "Hired"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


application_status_type = Enum(
    ApplicationStatus,
    name="application_status",
    values_callable=_enum_values,
)


class Application(Base):
    """
    A job application with its attached document.

    The document lives in the blob store under `attachment_path`; the record
    is only ever inserted after that upload succeeded.
    """

    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Applicant
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    national_id: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False)

    # Address
    postal_code: Mapped[str] = mapped_column(String(12), nullable=False)
    city: Mapped[str] = mapped_column(String(200), nullable=False)
    neighborhood: Mapped[str] = mapped_column(String(200), nullable=False)
    street: Mapped[str] = mapped_column(String(200), nullable=False)
    commute_mode: Mapped[str] = mapped_column(String(40), nullable=False)

    # Role applied for, as typed by the applicant
    target_role: Mapped[str] = mapped_column(String(200), nullable=False)

    # Duplicate detection keys
    national_id_normalized: Mapped[str] = mapped_column(String(11), nullable=False)
    role_normalized: Mapped[str] = mapped_column(String(200), nullable=False)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Blob store
    attachment_path: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    attachment_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Current status projection (history is the source of truth)
    current_status: Mapped[ApplicationStatus] = mapped_column(
        application_status_type,
        nullable=False,
        default=ApplicationStatus.NEW,
    )
    status_changed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    history: Mapped[list["StatusHistoryEntry"]] = relationship(
        "StatusHistoryEntry",
        back_populates="application",
        passive_deletes=True,
        order_by="StatusHistoryEntry.created_at.desc()",
    )

    __table_args__ = (
        UniqueConstraint(
            "national_id_normalized",
            "role_normalized",
            name=PERSON_ROLE_CONSTRAINT,
        ),
        Index("ix_applications_submitted_at", "submitted_at"),
        Index("ix_applications_current_status", "current_status"),
        Index("ix_applications_target_role", "target_role"),
    )

    # created_at comes back with the INSERT, no reload after commit
    __mapper_args__ = {"eager_defaults": True}


class StatusHistoryEntry(Base):
    """
    One recorded status change. Rows are never updated; they are removed
    only together with their application.
    """

    __tablename__ = "application_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[ApplicationStatus] = mapped_column(application_status_type, nullable=False)
    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    application: Mapped["Application"] = relationship("Application", back_populates="history")

    __table_args__ = (
        Index("ix_application_status_history_application_id", "application_id", "created_at"),
    )


class Vacancy(Base):
    """An open (or closed) role offered on the application form."""

    __tablename__ = "vacancies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(180), nullable=False, unique=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
