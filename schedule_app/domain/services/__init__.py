"""
Domain Services - Schedule import and read-side operations.
"""

from .schedule_import_service import ScheduleImportService

__all__ = [
    'ScheduleImportService',
]
