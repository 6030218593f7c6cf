from fastapi import APIRouter

from recruitment_api.modules.applications import router as applications_router
from recruitment_api.modules.applications.admin_router import router as admin_router
from recruitment_api.modules.applications.internal_router import router as internal_router

api_router = APIRouter()

api_router.include_router(applications_router, tags=["Applications"])

api_router.include_router(admin_router, prefix="/admin", tags=["Admin - Applications"])

# Mounted at the application root, outside the /api prefix
root_router = APIRouter()

root_router.include_router(internal_router, prefix="/internal", tags=["Internal"])
