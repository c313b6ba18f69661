"""
Project API Endpoints - Minimal project registry for schedule imports.

Implements:
- POST /api/v1/projects - Create a project
- GET /api/v1/projects - List projects
- GET /api/v1/projects/{project_id} - Get a project
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from schedule_app.models import get_db
from schedule_app.infrastructure.repositories import ProjectRepository

router = APIRouter()


class ProjectCreate(BaseModel):
    """Request model for creating a project."""
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[date] = None


class ProjectResponse(BaseModel):
    id: int
    uuid: str
    name: str
    code: str
    description: Optional[str]
    start_date: Optional[date]
    current_schedule_import_id: Optional[int]

    class Config:
        from_attributes = True


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db)
):
    repo = ProjectRepository(db)
    project = repo.create(
        name=project_data.name,
        code=project_data.code,
        description=project_data.description,
        start_date=project_data.start_date,
    )
    db.commit()
    db.refresh(project)
    return project


@router.get("", response_model=List[ProjectResponse], summary="List projects")
def list_projects(db: Session = Depends(get_db)):
    return ProjectRepository(db).get_all()


@router.get("/{project_id}", response_model=ProjectResponse, summary="Get a project")
def get_project(project_id: int, db: Session = Depends(get_db)):
    return ProjectRepository(db).get_or_raise(project_id)
