"""
Applications Admin Router

API endpoints for reviewers to browse applications, move them through
the status workflow and manage vacancies. All endpoints require a
Supabase Auth bearer token.

Endpoints:
- GET /admin/statuses - List the status enumeration
- GET /admin/applications - List applications with filters and pagination
- GET /admin/applications/{id} - Get application details
- DELETE /admin/applications/{id} - Delete an application and its attachment
- PUT /admin/applications/{id}/status - Change status (appends history)
- GET /admin/applications/{id}/status - Status history, newest first
- GET /admin/vacancies - List all vacancies
- POST /admin/vacancies - Create a vacancy
- PUT /admin/vacancies/{id} - Rename or (de)activate a vacancy
- DELETE /admin/vacancies/{id} - Delete a vacancy
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from recruitment_api.core.auth import ReviewerUser, get_current_reviewer
from recruitment_api.core.database import get_db
from recruitment_api.core.storage import SupabaseStorage, get_storage
from recruitment_api.modules.applications import service
from recruitment_api.modules.applications.models import ApplicationStatus
from recruitment_api.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationListItem,
    ApplicationListResponse,
    DeleteResponse,
    StatusCatalogResponse,
    StatusChangeRequest,
    StatusChangeResponse,
    StatusHistoryItem,
    StatusHistoryResponse,
    VacancyCreateRequest,
    VacancyResponse,
    VacancyUpdateRequest,
)
from recruitment_api.modules.applications.service import ApplicationServiceError

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_reviewer)])


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: ApplicationServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    ) from e


def _internal_error(e: Exception, action: str) -> HTTPException:
    logger.exception(f"Error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


# ============================================
# Status Catalogue
# ============================================


@router.get(
    "/statuses",
    response_model=StatusCatalogResponse,
    summary="List Statuses",
)
async def list_statuses() -> StatusCatalogResponse:
    """Every status an application can be moved to."""
    return StatusCatalogResponse(statuses=service.list_statuses())


# ============================================
# Application Browsing
# ============================================


@router.get(
    "/applications",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="""
Get a page of applications, newest first.

**Filters:**
- `role`: Exact role as submitted
- `city`: Case-insensitive partial match
- `commute_mode`: Exact commute mode
- `status`: Current status
- `date_from` / `date_to`: Submission day range (inclusive)
- `search`: Partial match on name, e-mail or national ID

**Pagination:**
- `page`: 1-based page number. Default: 1
- `limit`: Records per page (1-100). Default: 20
""",
    responses={401: {"description": "Unauthorized - invalid or missing token"}},
)
async def list_applications(
    role: str | None = Query(None, max_length=180, description="Filter by role"),
    city: str | None = Query(None, max_length=120, description="Filter by city"),
    commute_mode: str | None = Query(None, max_length=40, description="Filter by commute mode"),
    status_filter: ApplicationStatus | None = Query(
        None, alias="status", description="Filter by current status"
    ),
    date_from: date | None = Query(None, description="Submitted on or after this day"),
    date_to: date | None = Query(None, description="Submitted on or before this day"),
    search: str | None = Query(None, min_length=1, max_length=100, description="Search term"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Records per page"),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    try:
        result = await service.admin_get_applications_list(
            db,
            role=role,
            city=city,
            commute_mode=commute_mode,
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            search=search,
            page=page,
            limit=limit,
        )
        return ApplicationListResponse(
            applications=[
                ApplicationListItem.model_validate(app) for app in result["applications"]
            ],
            total=result["total"],
            page=result["page"],
            total_pages=result["total_pages"],
        )
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, "listing applications") from e


@router.get(
    "/applications/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Get Application Details",
    responses={404: {"description": "Application not found"}},
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ApplicationDetailResponse:
    try:
        application = await service.admin_get_application_detail(db, application_id)
        return ApplicationDetailResponse.model_validate(application)
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"getting application {application_id}") from e


@router.delete(
    "/applications/{application_id}",
    response_model=DeleteResponse,
    summary="Delete Application",
    description="Delete the attachment (best effort), the record and its status history.",
    responses={404: {"description": "Application not found"}},
)
async def delete_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    storage: SupabaseStorage = Depends(get_storage),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> DeleteResponse:
    try:
        await service.admin_delete_application(db, storage, application_id)
        logger.info(f"Reviewer {reviewer.id} deleted application {application_id}")
        return DeleteResponse(message="Application deleted successfully.")
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"deleting application {application_id}") from e


# ============================================
# Status Workflow
# ============================================


@router.put(
    "/applications/{application_id}/status",
    response_model=StatusChangeResponse,
    summary="Change Application Status",
    description="""
Move an application to another status. Any status may follow any other.

Each change appends one entry to the status history, recording the
reviewer and an optional note, and updates the application's current
status.
""",
    responses={
        400: {
            "description": "Unknown status",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "INVALID_STATUS",
                            "message": "Invalid status 'Foo'.",
                        }
                    }
                }
            },
        },
        401: {"description": "Unauthorized - invalid or missing token"},
        404: {"description": "Application not found"},
    },
)
async def change_status(
    application_id: UUID,
    data: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> StatusChangeResponse:
    try:
        entry = await service.transition_status(
            db,
            application_id,
            data.status,
            actor_id=reviewer.id,
            note=data.note,
        )
        return StatusChangeResponse(
            application_id=application_id,
            status=StatusHistoryItem.model_validate(entry),
        )
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"changing status of {application_id}") from e


@router.get(
    "/applications/{application_id}/status",
    response_model=StatusHistoryResponse,
    summary="Get Status History",
    responses={404: {"description": "Application not found"}},
)
async def get_status_history(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StatusHistoryResponse:
    try:
        history = await service.get_status_history(db, application_id)
        return StatusHistoryResponse(
            application_id=application_id,
            history=[StatusHistoryItem.model_validate(entry) for entry in history],
        )
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"getting status history of {application_id}") from e


# ============================================
# Vacancies
# ============================================


@router.get(
    "/vacancies",
    response_model=list[VacancyResponse],
    summary="List All Vacancies",
)
async def list_all_vacancies(db: AsyncSession = Depends(get_db)) -> list[VacancyResponse]:
    try:
        vacancies = await service.list_vacancies(db, active_only=False)
        return [VacancyResponse.model_validate(v) for v in vacancies]
    except Exception as e:
        raise _internal_error(e, "listing vacancies") from e


@router.post(
    "/vacancies",
    response_model=VacancyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Vacancy",
    responses={409: {"description": "A vacancy with this name exists"}},
)
async def create_vacancy(
    data: VacancyCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> VacancyResponse:
    try:
        vacancy = await service.admin_create_vacancy(db, data.name, data.active)
        return VacancyResponse.model_validate(vacancy)
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, "creating vacancy") from e


@router.put(
    "/vacancies/{vacancy_id}",
    response_model=VacancyResponse,
    summary="Update Vacancy",
    responses={404: {"description": "Vacancy not found"}},
)
async def update_vacancy(
    vacancy_id: UUID,
    data: VacancyUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> VacancyResponse:
    try:
        vacancy = await service.admin_update_vacancy(
            db, vacancy_id, name=data.name, active=data.active
        )
        return VacancyResponse.model_validate(vacancy)
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"updating vacancy {vacancy_id}") from e


@router.delete(
    "/vacancies/{vacancy_id}",
    response_model=DeleteResponse,
    summary="Delete Vacancy",
    responses={404: {"description": "Vacancy not found"}},
)
async def delete_vacancy(
    vacancy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    try:
        await service.admin_delete_vacancy(db, vacancy_id)
        return DeleteResponse(message="Vacancy deleted successfully.")
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"deleting vacancy {vacancy_id}") from e
