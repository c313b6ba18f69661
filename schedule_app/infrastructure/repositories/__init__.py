"""
Repository implementations for data access layer.
"""
from .base_repository import BaseRepository
from .project_repository import ProjectRepository
from .schedule_import_repository import ScheduleImportRepository

__all__ = [
    'BaseRepository',
    'ProjectRepository',
    'ScheduleImportRepository',
]
