"""
Engine errors and warnings.

Fatal errors abort the import pipeline before anything is persisted.
Warnings are collected while the pipeline runs and returned alongside
the result.
"""
from typing import Iterable, List, Optional


class EngineError(Exception):
    """Base exception for all fatal schedule engine errors."""

    def __init__(self, message: str, code: str = "ENGINE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    @property
    def details(self) -> Optional[List[str]]:
        return None


# =============================================================================
# Reader Errors
# =============================================================================

class InvalidFileSignatureError(EngineError):
    """Raised when the stream does not start with an ERMHDR header line."""

    def __init__(self, first_line: str = ""):
        preview = first_line[:40]
        message = (
            "File is not a valid XER export: expected an ERMHDR header line"
            + (f", found '{preview}'" if preview else "")
        )
        super().__init__(message, code="INVALID_FILE_SIGNATURE")
        self.first_line = first_line


class MalformedRowError(EngineError):
    """Raised when a %R row does not match its table's %F header."""

    def __init__(self, table: str, line_number: int, expected_fields: int, actual_fields: int):
        message = (
            f"Malformed row in table '{table}' at line {line_number}: "
            f"expected {expected_fields} fields, found {actual_fields}"
        )
        super().__init__(message, code="MALFORMED_ROW")
        self.table = table
        self.line_number = line_number
        self.expected_fields = expected_fields
        self.actual_fields = actual_fields


# =============================================================================
# Mapping Errors
# =============================================================================

class MissingRequiredFieldError(EngineError):
    """Raised when a table header lacks a column its decoder requires.

    Only the affected table is skipped; the mapper collects these and the
    pipeline reports them as warnings unless nothing usable remains.
    """

    def __init__(self, table: str, column: str):
        message = f"Table '{table}' is missing required column '{column}'"
        super().__init__(message, code="MISSING_REQUIRED_FIELD")
        self.table = table
        self.column = column


class EmptyScheduleError(EngineError):
    """Raised when no activity survives reading and mapping."""

    def __init__(self, reasons: Iterable[str] = ()):
        super().__init__("Failed to parse XER file", code="EMPTY_SCHEDULE")
        self.reasons = list(reasons) or ["No activities found in XER file"]

    @property
    def details(self) -> Optional[List[str]]:
        return self.reasons


# =============================================================================
# Network Errors
# =============================================================================

class CyclicDependencyError(EngineError):
    """Raised when the relationship graph contains a cycle."""

    def __init__(self, activity_ids: List[str]):
        chain = " -> ".join(list(activity_ids) + activity_ids[:1])
        message = f"Circular dependency detected between activities: {chain}"
        super().__init__(message, code="CYCLIC_DEPENDENCY")
        self.activity_ids = list(activity_ids)

    @property
    def details(self) -> Optional[List[str]]:
        return self.activity_ids


# =============================================================================
# Calendar Errors
# =============================================================================

class CalendarRangeError(EngineError):
    """Raised when date arithmetic on a calendar cannot reach a working day."""

    def __init__(self, calendar_id: str, reason: str):
        super().__init__(f"Calendar '{calendar_id}' {reason}", code="CALENDAR_RANGE")
        self.calendar_id = calendar_id


# =============================================================================
# Warnings
# =============================================================================

class ScheduleWarning:
    """A non-fatal issue found while importing a schedule."""

    code = "SCHEDULE_WARNING"

    def __init__(self, message: str):
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class MissingTableWarning(ScheduleWarning):
    code = "MISSING_TABLE"

    def __init__(self, table: str):
        super().__init__(f"{table} table not found in XER file")
        self.table = table


class UnknownTableWarning(ScheduleWarning):
    code = "UNKNOWN_TABLE"

    def __init__(self, table: str, row_count: int):
        super().__init__(f"Skipped unrecognized table '{table}' ({row_count} rows)")
        self.table = table
        self.row_count = row_count


class SkippedTableWarning(ScheduleWarning):
    """Wraps a MissingRequiredFieldError so it can travel with other warnings."""

    code = "SKIPPED_TABLE"

    def __init__(self, error: MissingRequiredFieldError):
        super().__init__(f"{error.message}; table skipped")
        self.table = error.table
        self.column = error.column


class RowDecodeWarning(ScheduleWarning):
    code = "ROW_DECODE"

    def __init__(self, table: str, line_number: int, reason: str):
        super().__init__(f"Skipped {table} row at line {line_number}: {reason}")
        self.table = table
        self.line_number = line_number
        self.reason = reason


class ValueAdjustedWarning(ScheduleWarning):
    code = "VALUE_ADJUSTED"


class MultipleProjectsWarning(ScheduleWarning):
    code = "MULTIPLE_PROJECTS"

    def __init__(self, project_count: int, used: str):
        super().__init__(
            f"File contains {project_count} projects; using '{used}' as the project header"
        )
        self.project_count = project_count


class UnresolvedReferenceWarning(ScheduleWarning):
    code = "UNRESOLVED_REFERENCE"

    def __init__(self, kind: str, source_id: str, target_id: str, action: str):
        super().__init__(f"{kind} '{source_id}' references unknown id '{target_id}'; {action}")
        self.kind = kind
        self.source_id = source_id
        self.target_id = target_id


class DuplicateActivityWarning(ScheduleWarning):
    code = "DUPLICATE_ACTIVITY"

    def __init__(self, activity_id: str):
        super().__init__(f"Duplicate activity id '{activity_id}'; later row ignored")
        self.activity_id = activity_id


class OrphanWbsWarning(ScheduleWarning):
    code = "ORPHAN_WBS"

    def __init__(self, wbs_id: str, reason: str):
        super().__init__(f"WBS node '{wbs_id}' {reason}; attached to root")
        self.wbs_id = wbs_id


class CalendarResolutionWarning(ScheduleWarning):
    code = "CALENDAR_RESOLUTION"

    def __init__(self, activity_id: str, calendar_id: str, unusable: bool = False):
        if unusable:
            reason = f"calendar '{calendar_id}' without regular working weekdays"
        elif calendar_id:
            reason = f"unknown calendar '{calendar_id}'"
        else:
            reason = "no calendar"
        super().__init__(f"Activity '{activity_id}' has {reason}; using default calendar")
        self.activity_id = activity_id
        self.calendar_id = calendar_id


class NegativeFloatWarning(ScheduleWarning):
    code = "NEGATIVE_FLOAT"

    def __init__(self, activity_id: str, total_float: int):
        super().__init__(f"Activity '{activity_id}' has negative total float ({total_float} days)")
        self.activity_id = activity_id
        self.total_float = total_float


class TruncatedFileWarning(ScheduleWarning):
    code = "TRUNCATED_FILE"

    def __init__(self):
        super().__init__("XER file has no %E end-of-data marker; it may be truncated")
