"""
Domain Layer - Schedule import rules and services.

This module contains:
- exceptions: Domain errors mapped to API responses
- services/: ScheduleImportService
"""
