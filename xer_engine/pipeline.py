"""
Engine pipeline: read -> map -> build network -> CPM -> progress.

Every fatal error propagates before the caller gets a result, so a caller
that persists only on success can never write a partial schedule.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import BinaryIO, List, Optional, Union

from xer_engine.calendar import DEFAULT_WORKING_DAYS, WorkCalendar
from xer_engine.cpm import CPMCalculator, CPMResult
from xer_engine.errors import EmptyScheduleError, ScheduleWarning, TruncatedFileWarning
from xer_engine.mapper import SchemaMapper
from xer_engine.network import NetworkBuilder, ScheduleNetwork
from xer_engine.progress import ProgressAggregator, ProgressSummary
from xer_engine.reader import XerHeader, XerReader

logger = logging.getLogger(__name__)


@dataclass
class EngineOptions:
    encoding: str = "utf-8-sig"
    require_header: bool = True
    default_working_weekdays: frozenset = DEFAULT_WORKING_DAYS
    default_hours_per_day: float = 8.0
    critical_float_threshold: int = 0
    honor_target_finish: bool = False
    max_warnings: int = 100
    today: Optional[date] = None

    @classmethod
    def from_config(cls, config, today: Optional[date] = None) -> "EngineOptions":
        """Build options from a ScheduleConfig-like object."""
        return cls(
            encoding=config.xer_encoding,
            require_header=config.xer_require_header,
            default_working_weekdays=frozenset(config.default_working_weekdays),
            default_hours_per_day=config.default_hours_per_day,
            critical_float_threshold=config.critical_float_threshold,
            honor_target_finish=config.honor_target_finish,
            max_warnings=config.max_warnings,
            today=today,
        )


@dataclass
class ScheduleResult:
    """Everything the engine computed for one file."""
    network: ScheduleNetwork
    cpm: CPMResult
    progress: ProgressSummary
    header: Optional[XerHeader] = None
    warnings: List[ScheduleWarning] = field(default_factory=list)

    @property
    def project_name(self) -> Optional[str]:
        project = self.network.project
        if project is None:
            return None
        return project.short_name or project.source_id

    @property
    def activities_count(self) -> int:
        return len(self.network.activities)

    @property
    def relationships_count(self) -> int:
        return len(self.network.edges)

    @property
    def wbs_count(self) -> int:
        return len(self.network.wbs_nodes)

    def warning_messages(self, limit: Optional[int] = None) -> List[str]:
        """Warning text, truncated to ``limit`` entries plus a summary line."""
        messages = [w.message for w in self.warnings]
        if limit is not None and len(messages) > limit:
            hidden = len(messages) - limit
            messages = messages[:limit] + [f"... and {hidden} more warnings"]
        return messages


def build_schedule(stream: Union[BinaryIO, bytes], options: Optional[EngineOptions] = None) -> ScheduleResult:
    """
    Run the full engine over an XER byte stream.

    Raises:
        InvalidFileSignatureError: Stream is not an XER export
        MalformedRowError: A row does not match its table header
        EmptyScheduleError: No activity could be decoded
        CyclicDependencyError: The relationship graph has a cycle
    """
    options = options or EngineOptions()
    started = time.perf_counter()

    reader = XerReader(stream, encoding=options.encoding, require_header=options.require_header)
    mapped = SchemaMapper().map(reader)

    warnings: List[ScheduleWarning] = list(mapped.warnings)
    if not reader.ended_cleanly:
        warnings.append(TruncatedFileWarning())

    if not mapped.activities:
        reasons = [error.message for error in mapped.table_errors]
        if "TASK" not in mapped.tables_seen:
            reasons.append("TASK table not found in XER file")
        raise EmptyScheduleError(reasons)

    default_calendar = WorkCalendar.standard(
        hours_per_day=options.default_hours_per_day,
        working_weekdays=options.default_working_weekdays,
    )
    network = NetworkBuilder(default_calendar).build(mapped)
    warnings.extend(network.warnings)

    calculator = CPMCalculator(
        critical_float_threshold=options.critical_float_threshold,
        honor_target_finish=options.honor_target_finish,
        today=options.today,
    )
    cpm = calculator.run(network)
    warnings.extend(cpm.warnings)

    progress = ProgressAggregator(as_of=options.today).aggregate(network)

    elapsed = time.perf_counter() - started
    logger.info(
        f"Processed XER file in {elapsed:.2f}s: {len(network.activities)} activities, "
        f"{len(warnings)} warnings"
    )
    return ScheduleResult(
        network=network,
        cpm=cpm,
        progress=progress,
        header=reader.header,
        warnings=warnings,
    )
