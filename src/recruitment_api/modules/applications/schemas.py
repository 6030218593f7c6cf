"""
Applications Schemas

Pydantic schemas for request validation and response serialization.
The public submission arrives as multipart form data and is validated by
validators.py instead of a request model.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from recruitment_api.modules.applications.models import ApplicationStatus


# ============================================
# Public Schemas
# ============================================


class VacancyResponse(BaseModel):
    """A vacancy as listed on the application form."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    active: bool


class SubmissionResponse(BaseModel):
    """Response after an application was accepted."""

    ok: bool = True
    message: str = (
        "Your application was submitted successfully. Thank you for your interest; "
        "we will contact you if your profile is selected."
    )
    id: UUID


class DuplicateResponse(BaseModel):
    """Body of a 409 duplicate rejection."""

    ok: bool = False
    reason: str = "duplicate"
    message: str
    submitted_at: datetime | None = None
    reapply_after: datetime | None = None


class CleanupResponse(BaseModel):
    """Result of a retention purge run."""

    ok: bool
    removed: int = Field(..., ge=0)
    cutoff: datetime
    message: str | None = None


# ============================================
# Status Workflow Schemas
# ============================================


class StatusChangeRequest(BaseModel):
    """Request body for PUT /admin/applications/{id}/status."""

    status: str = Field(
        ...,
        min_length=1,
        description="Target status",
        json_schema_extra={"example": "InterviewPassed"},
    )
    note: str | None = Field(None, max_length=1000, description="Optional reviewer note")


class StatusHistoryItem(BaseModel):
    """One entry of an application's status history."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    actor_id: UUID
    status: ApplicationStatus
    note: str | None = None
    created_at: datetime


class StatusChangeResponse(BaseModel):
    ok: bool = True
    message: str = "Status updated successfully."
    application_id: UUID
    status: StatusHistoryItem


class StatusHistoryResponse(BaseModel):
    application_id: UUID
    history: list[StatusHistoryItem]


class StatusCatalogResponse(BaseModel):
    statuses: list[ApplicationStatus]


# ============================================
# Admin Browsing Schemas
# ============================================


class ApplicationListItem(BaseModel):
    """Application summary for the admin list view."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str
    city: str
    commute_mode: str
    target_role: str
    current_status: ApplicationStatus
    submitted_at: datetime


class ApplicationListResponse(BaseModel):
    """Paginated list of applications."""

    applications: list[ApplicationListItem]
    total: int = Field(..., ge=0, description="Applications matching the filters")
    page: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class ApplicationDetailResponse(BaseModel):
    """Every stored field of an application."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    national_id: str
    phone: str
    email: str
    postal_code: str
    city: str
    neighborhood: str
    street: str
    commute_mode: str
    target_role: str
    submitted_at: datetime
    attachment_path: str
    attachment_url: str | None = None
    current_status: ApplicationStatus
    status_changed_by: UUID | None = None
    status_changed_at: datetime | None = None
    created_at: datetime


class DeleteResponse(BaseModel):
    ok: bool = True
    message: str


# ============================================
# Vacancy Admin Schemas
# ============================================


class VacancyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=180)
    active: bool = True


class VacancyUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=180)
    active: bool | None = None
