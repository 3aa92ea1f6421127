"""API v1 router combining all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import checklist, projects, sync
from app.schemas import ErrorSchema

api_router = APIRouter(
    responses={
        400: {"model": ErrorSchema},
        404: {"model": ErrorSchema},
        422: {"model": ErrorSchema},
    }
)

api_router.include_router(checklist.router, prefix="/checklist", tags=["checklist"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
