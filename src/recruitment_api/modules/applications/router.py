"""
Applications Router

Public endpoints used by the application form. No authentication; the
submission endpoint is throttled per client.

Endpoints:
- GET /vacancies - List open vacancies
- POST /applications - Submit an application with an attached CV
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from recruitment_api.core.config import settings
from recruitment_api.core.database import get_db
from recruitment_api.core.rate_limit import client_key
from recruitment_api.core.storage import SupabaseStorage, get_storage
from recruitment_api.modules.applications import service
from recruitment_api.modules.applications.schemas import (
    DuplicateResponse,
    SubmissionResponse,
    VacancyResponse,
)
from recruitment_api.modules.applications.service import (
    ApplicationServiceError,
    DuplicateApplicationError,
    SubmittedAttachment,
    ThrottledError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def duplicate_response(e: DuplicateApplicationError) -> JSONResponse:
    """409 body; timing fields are omitted when unknown."""
    body = DuplicateResponse(
        message=e.message,
        submitted_at=e.submitted_at,
        reapply_after=e.reapply_after,
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=body.model_dump(mode="json", exclude_none=True),
    )


async def _read_attachment(upload: UploadFile | None) -> SubmittedAttachment | None:
    """Read at most one byte past the size cap so oversized files are still rejected."""
    if upload is None:
        return None
    data = await upload.read(settings.max_file_bytes + 1)
    content_type = (upload.content_type or "application/octet-stream").split(";", 1)[0]
    return SubmittedAttachment(
        filename=upload.filename,
        content_type=content_type.strip().lower(),
        data=data,
    )


@router.get(
    "/vacancies",
    response_model=list[VacancyResponse],
    summary="List Open Vacancies",
    description="Active vacancies offered on the application form, ordered by name.",
)
async def list_vacancies(db: AsyncSession = Depends(get_db)) -> list[VacancyResponse]:
    try:
        vacancies = await service.list_vacancies(db, active_only=True)
        return [VacancyResponse.model_validate(v) for v in vacancies]
    except Exception as e:
        logger.exception(f"Error listing vacancies: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "Failed to fetch available vacancies.",
            },
        ) from e


@router.post(
    "/applications",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Application",
    description="""
Submit a job application as multipart form data with the CV in the
`attachment` file part (PDF, DOC or DOCX).

**Duplicate Prevention:**
- One application per national ID (CPF) and role within the retention window
- A rejected duplicate reports when the earlier application was sent and
  when a new one will be accepted

**Throttling:**
- Requests are limited per client address (429 when exceeded)
""",
    responses={
        201: {"description": "Application stored", "model": SubmissionResponse},
        400: {
            "description": "Missing or invalid fields, or invalid attachment",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "VALIDATION_ERROR",
                            "message": "Missing required fields: phone, city",
                        }
                    }
                }
            },
        },
        409: {"description": "Duplicate application", "model": DuplicateResponse},
        429: {"description": "Too many requests from this client"},
        500: {"description": "Blob store or record store failure"},
    },
)
async def submit_application(
    request: Request,
    name: str | None = Form(default=None),
    national_id: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    email: str | None = Form(default=None),
    postal_code: str | None = Form(default=None),
    city: str | None = Form(default=None),
    neighborhood: str | None = Form(default=None),
    street: str | None = Form(default=None),
    commute_mode: str | None = Form(default=None),
    target_role: str | None = Form(default=None),
    submitted_at: str | None = Form(default=None),
    attachment: UploadFile | None = File(default=None),
    db: AsyncSession = Depends(get_db),
    storage: SupabaseStorage = Depends(get_storage),
):
    """
    Admit the submission, then store attachment and record.

    Raises:
        HTTPException 400: If validation fails
        HTTPException 429: If the client is throttled
        HTTPException 500: If either store fails
    """
    submission = {
        "name": name,
        "national_id": national_id,
        "phone": phone,
        "email": email,
        "postal_code": postal_code,
        "city": city,
        "neighborhood": neighborhood,
        "street": street,
        "commute_mode": commute_mode,
        "target_role": target_role,
        "submitted_at": submitted_at,
    }

    try:
        admitted = await service.admit_submission(
            db,
            submission,
            await _read_attachment(attachment),
            client_key(request),
        )
        application = await service.commit_submission(db, storage, admitted)

        logger.info(f"Application submitted successfully: id={application.id}")
        return SubmissionResponse(id=application.id)

    except DuplicateApplicationError as e:
        logger.info(f"Duplicate application rejected: {e.error_code}")
        return duplicate_response(e)
    except ThrottledError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.error_code, "message": e.message},
            headers={"Retry-After": str(e.retry_after_seconds)},
        ) from e
    except ApplicationServiceError as e:
        if e.status_code >= 500:
            logger.error(f"Application service error: {e.message}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e
