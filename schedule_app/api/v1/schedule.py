"""
Schedule API Endpoints - XER import and schedule reads.

Implements:
- POST /api/v1/projects/{project_id}/schedule/import - Upload an XER file
- GET /api/v1/projects/{project_id}/schedule - Latest import and stats
- GET /api/v1/projects/{project_id}/schedule/activities - Activities with CPM dates
- GET /api/v1/projects/{project_id}/schedule/wbs - WBS roll-ups
- GET /api/v1/projects/{project_id}/schedule/relationships - Predecessor links
- GET /api/v1/projects/{project_id}/schedule/critical-path - Ordered critical path
- DELETE /api/v1/projects/{project_id}/schedule - Remove the schedule

Domain errors propagate to the app-level handler, which renders
{error, details}.
"""
import io
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from schedule_app.models import get_db
from schedule_app.domain.services import ScheduleImportService

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class ImportResponse(BaseModel):
    """Response for a successful import."""
    success: bool = True
    message: str
    importId: int
    activitiesCount: int
    relationshipsCount: int
    wbsCount: int
    xerProjectName: Optional[str]
    warnings: List[str] = []


class ActivityResponse(BaseModel):
    activity_id: str
    activity_code: Optional[str]
    name: str
    wbs_id: Optional[str]
    status: str
    percent_complete: float
    duration_days: int
    planned_start: Optional[date]
    planned_finish: Optional[date]
    actual_start: Optional[date]
    actual_finish: Optional[date]
    early_start: Optional[date]
    early_finish: Optional[date]
    late_start: Optional[date]
    late_finish: Optional[date]
    total_float: Optional[int]
    free_float: Optional[int]
    is_critical: bool

    class Config:
        from_attributes = True


class WBSResponse(BaseModel):
    wbs_id: str
    parent_wbs_id: Optional[str]
    name: str
    short_name: Optional[str]
    depth: int
    percent_complete: float
    activity_count: int
    has_activities: bool

    class Config:
        from_attributes = True


class RelationshipResponse(BaseModel):
    predecessor_activity_id: str
    successor_activity_id: str
    relationship_type: str
    lag_days: int

    class Config:
        from_attributes = True


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
    deletedImports: int


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/{project_id}/schedule/import",
    response_model=ImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import an XER schedule",
    description="Upload a Primavera P6 XER export. Replaces the project's current schedule."
)
def import_schedule(
    project_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    # Parse the spooled upload in place; only its size is read up front
    stream = file.file
    file_size = file.size
    if file_size is None:
        stream.seek(0, io.SEEK_END)
        file_size = stream.tell()
        stream.seek(0)

    service = ScheduleImportService(db)
    return service.import_schedule(
        project_id=project_id,
        stream=stream,
        file_name=file.filename or "",
        file_size=file_size,
    )


@router.get(
    "/{project_id}/schedule",
    summary="Get schedule summary",
)
def get_schedule(
    project_id: int,
    db: Session = Depends(get_db)
):
    """Latest import metadata, activity counts and date range."""
    return ScheduleImportService(db).get_summary(project_id)


@router.get(
    "/{project_id}/schedule/activities",
    response_model=List[ActivityResponse],
    summary="List schedule activities",
)
def list_activities(
    project_id: int,
    critical_only: bool = Query(False, description="Only return critical activities"),
    db: Session = Depends(get_db)
):
    return ScheduleImportService(db).get_activities(project_id, critical_only=critical_only)


@router.get(
    "/{project_id}/schedule/wbs",
    response_model=List[WBSResponse],
    summary="List WBS nodes with progress roll-ups",
)
def list_wbs(
    project_id: int,
    db: Session = Depends(get_db)
):
    return ScheduleImportService(db).get_wbs(project_id)


@router.get(
    "/{project_id}/schedule/relationships",
    response_model=List[RelationshipResponse],
    summary="List activity relationships",
)
def list_relationships(
    project_id: int,
    db: Session = Depends(get_db)
):
    return ScheduleImportService(db).get_relationships(project_id)


@router.get(
    "/{project_id}/schedule/critical-path",
    response_model=List[ActivityResponse],
    summary="Get the ordered critical path",
)
def get_critical_path(
    project_id: int,
    db: Session = Depends(get_db)
):
    return ScheduleImportService(db).get_critical_path(project_id)


@router.delete(
    "/{project_id}/schedule",
    response_model=DeleteResponse,
    summary="Delete the project's schedule",
)
def delete_schedule(
    project_id: int,
    db: Session = Depends(get_db)
):
    deleted = ScheduleImportService(db).delete_schedule(project_id)
    return DeleteResponse(message="Schedule deleted successfully", deletedImports=deleted)
