"""
Applications Internal Router

Maintenance endpoint for an external cron. Protected by the shared
X-CRON-TOKEN secret rather than user authentication.

Endpoints:
- POST /internal/cleanup - Run the retention purge now
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from recruitment_api.core.auth import verify_cleanup_token
from recruitment_api.core.config import settings
from recruitment_api.core.database import async_session_maker
from recruitment_api.core.storage import SupabaseStorage, get_storage
from recruitment_api.modules.applications.jobs import purge_expired_applications
from recruitment_api.modules.applications.schemas import CleanupResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Purge Expired Applications",
    description="""
Delete applications submitted before now minus RETENTION_DAYS, together
with their attachments and status history.

Safe to call repeatedly; a second run with nothing expired removes 0.
On a record-store failure the response is 500 and `removed` reports the
applications deleted before the failure.
""",
    responses={
        401: {"description": "Missing or invalid X-CRON-TOKEN"},
        500: {"description": "Purge aborted", "model": CleanupResponse},
    },
    dependencies=[Depends(verify_cleanup_token)],
)
async def cleanup(storage: SupabaseStorage = Depends(get_storage)):
    result = await purge_expired_applications(
        async_session_maker,
        storage,
        settings.retention_days,
    )
    body = CleanupResponse(
        ok=result.ok,
        removed=result.removed,
        cutoff=result.cutoff,
        message=result.error,
    )

    if not result.ok:
        logger.error(f"Cleanup aborted after removing {result.removed}: {result.error}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
        )

    logger.info(f"Cleanup removed {result.removed} application(s)")
    return body
