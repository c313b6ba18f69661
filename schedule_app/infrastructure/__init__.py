"""
Infrastructure Layer - Repositories and locking for schedule persistence.
"""

from .repositories import (
    BaseRepository,
    ProjectRepository,
    ScheduleImportRepository,
)

__all__ = [
    'BaseRepository',
    'ProjectRepository',
    'ScheduleImportRepository',
]
