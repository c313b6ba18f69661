"""
API v1 - REST endpoints for projects and schedule imports.
"""
from fastapi import APIRouter

from .projects import router as projects_router
from .schedule import router as schedule_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(projects_router, prefix="/projects", tags=["Projects"])
api_router.include_router(schedule_router, prefix="/projects", tags=["Schedule"])
