"""XER schedule import and critical-path engine"""
from .calendar import WorkCalendar
from .cpm import CPMCalculator, CPMResult
from .errors import (
    CalendarRangeError,
    CyclicDependencyError,
    EmptyScheduleError,
    EngineError,
    InvalidFileSignatureError,
    MalformedRowError,
    MissingRequiredFieldError,
    ScheduleWarning,
)
from .mapper import SchemaMapper
from .network import NetworkBuilder, ScheduleNetwork
from .pipeline import EngineOptions, ScheduleResult, build_schedule
from .progress import ProgressAggregator, ProgressSummary
from .reader import XerReader

__all__ = [
    'WorkCalendar', 'CPMCalculator', 'CPMResult',
    'EngineError', 'CalendarRangeError', 'CyclicDependencyError', 'EmptyScheduleError', 'InvalidFileSignatureError',
    'MalformedRowError', 'MissingRequiredFieldError', 'ScheduleWarning',
    'SchemaMapper', 'NetworkBuilder', 'ScheduleNetwork',
    'EngineOptions', 'ScheduleResult', 'build_schedule',
    'ProgressAggregator', 'ProgressSummary', 'XerReader',
]
