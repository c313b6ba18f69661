"""
Domain Exceptions for Schedule Import.

Every error carries a human message and a machine code. The API layer maps
codes to HTTP statuses and renders {error, details}.
"""
from typing import List, Optional

from xer_engine.errors import EngineError


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR", details: Optional[List[str]] = None):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(self.message)


# =============================================================================
# Project Exceptions
# =============================================================================

class ProjectNotFoundError(DomainError):
    """Raised when the target project does not exist."""

    def __init__(self, project_id):
        message = f"Project with id '{project_id}' not found"
        super().__init__(message, code="PROJECT_NOT_FOUND")
        self.project_id = project_id


class DuplicateProjectError(DomainError):
    """Raised when a project code is already taken."""

    def __init__(self, code: str):
        super().__init__(f"Project with code '{code}' already exists", code="DUPLICATE_PROJECT")
        self.project_code = code


class ScheduleNotFoundError(DomainError):
    """Raised when a project has no imported schedule."""

    def __init__(self, project_id):
        super().__init__(f"No schedule imported for project '{project_id}'", code="SCHEDULE_NOT_FOUND")
        self.project_id = project_id


# =============================================================================
# Import Exceptions
# =============================================================================

class InvalidScheduleFileError(DomainError):
    """Raised when an upload is rejected before parsing."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message, code="INVALID_SCHEDULE_FILE")
        self.file_name = file_name


class ScheduleImportError(DomainError):
    """
    Raised when the engine rejects a file.

    Wraps the engine error so callers see one exception type for every
    parse, mapping or network failure.
    """

    def __init__(self, error: EngineError):
        details = error.details
        if details is None and error.message:
            details = [error.message]
        if error.code == "CYCLIC_DEPENDENCY":
            message = error.message
        else:
            message = "Failed to parse XER file"
        super().__init__(message, code=error.code, details=details)
        self.engine_error = error


# =============================================================================
# Persistence Exceptions
# =============================================================================

class PersistenceError(DomainError):
    """Raised when the schedule cannot be written; nothing is persisted."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Failed to {operation} schedule", code="PERSISTENCE_ERROR", details=[reason])
        self.operation = operation
