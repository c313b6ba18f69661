"""
Project Repository - Data access for projects that receive schedules.
"""
import uuid as uuid_lib
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from schedule_app.models import Project
from schedule_app.domain.exceptions import DuplicateProjectError, ProjectNotFoundError
from .base_repository import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project entities."""

    def __init__(self, session: Session):
        super().__init__(session, Project)

    def exists(self, **criteria) -> bool:
        """Check if a Project matching the criteria exists."""
        query = self.session.query(Project)
        for field, value in criteria.items():
            query = query.filter(getattr(Project, field) == value)
        return query.first() is not None

    def get_or_raise(self, project_id: int) -> Project:
        """
        Get a project or raise.

        Raises:
            ProjectNotFoundError: If no project has this id
        """
        project = self.get_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def create(
        self,
        name: str,
        code: str,
        description: Optional[str] = None,
        start_date: Optional[date] = None,
    ) -> Project:
        """
        Create a new project.

        Raises:
            DuplicateProjectError: If the code is already used
        """
        if self.exists(code=code):
            raise DuplicateProjectError(code)
        project = Project(
            uuid=str(uuid_lib.uuid4()),
            name=name,
            code=code,
            description=description,
            start_date=start_date,
        )
        self.add(project)
        self.flush()
        return project
