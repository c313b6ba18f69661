"""
Schema mapper: untyped XER tables to typed schedule records.

Each recognized table has a decoder registered with the columns it requires
and the columns it can use. Decoding a row yields a RowResult carrying
either the record or the reason it was rejected, so one bad row never stops
the rest of the table.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from xer_engine.calendar import WorkCalendar
from xer_engine.errors import (
    MissingRequiredFieldError,
    MissingTableWarning,
    MultipleProjectsWarning,
    RowDecodeWarning,
    ScheduleWarning,
    SkippedTableWarning,
    UnknownTableWarning,
    ValueAdjustedWarning,
)
from xer_engine.reader import XerTable
from xer_engine.records import (
    RELATIONSHIP_CODES,
    STATUS_CODES,
    Activity,
    ActivityStatus,
    ConstraintType,
    ProjectHeader,
    Relationship,
    WBSNode,
)

logger = logging.getLogger(__name__)

DATE_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_MAX_SEQUENCE = 2**31 - 1

# Tables whose absence is worth telling the user about
EXPECTED_TABLES = ("PROJECT", "PROJWBS", "TASK", "TASKPRED")


# =============================================================================
# Value Parsing
# =============================================================================

def parse_date(value: str) -> Optional[date]:
    """Parse an XER date (``YYYY-MM-DD HH:MM``); blank -> None."""
    value = (value or "").strip()
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid date '{value}'")


def parse_number(value: str) -> Optional[float]:
    """Locale-invariant decimal parse; only '.' is accepted as separator."""
    value = (value or "").strip()
    if not value:
        return None
    if not _NUMBER.match(value):
        raise ValueError(f"invalid number '{value}'")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"number out of range '{value}'")
    return number


def _required(row: dict, column: str) -> str:
    value = (row.get(column) or "").strip()
    if not value:
        raise ValueError(f"required value '{column}' is blank")
    return value


def _optional(row: dict, column: str, default: str = "") -> str:
    return (row.get(column) or "").strip() or default


def _flag(row: dict, column: str) -> bool:
    return _optional(row, column).upper() == "Y"


# =============================================================================
# Decoder Registry
# =============================================================================

@dataclass(frozen=True)
class RowResult:
    """Tagged decode result: exactly one of value / error is set."""
    value: object = None
    error: Optional[str] = None
    notes: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TableDecoder:
    table: str
    required: Tuple[str, ...]
    optional: Tuple[str, ...]
    decode: Callable[[dict, List[str]], object]

    def missing_columns(self, fields: Iterable[str]) -> List[str]:
        present = set(fields)
        return [column for column in self.required if column not in present]

    def decode_row(self, row: dict) -> RowResult:
        notes: List[str] = []
        try:
            return RowResult(value=self.decode(row, notes), notes=tuple(notes))
        except (ValueError, OverflowError) as e:
            return RowResult(error=str(e))


DECODERS: Dict[str, TableDecoder] = {}


def register(table: str, required: Tuple[str, ...], optional: Tuple[str, ...] = ()):
    """Register a row decoder for an XER table."""
    def wrapper(func):
        DECODERS[table] = TableDecoder(table, tuple(required), tuple(optional), func)
        return func
    return wrapper


@register(
    "PROJECT",
    required=("proj_id",),
    optional=("proj_short_name", "plan_start_date", "plan_end_date", "last_recalc_date", "clndr_id"),
)
def decode_project(row: dict, notes: List[str]) -> ProjectHeader:
    return ProjectHeader(
        source_id=_required(row, "proj_id"),
        short_name=_optional(row, "proj_short_name"),
        planned_start=parse_date(row.get("plan_start_date")),
        planned_finish=parse_date(row.get("plan_end_date")),
        data_date=parse_date(row.get("last_recalc_date")),
        calendar_id=_optional(row, "clndr_id"),
    )


@register(
    "CALENDAR",
    required=("clndr_id",),
    optional=("clndr_name", "default_flag", "day_hr_cnt", "clndr_data"),
)
def decode_calendar(row: dict, notes: List[str]) -> WorkCalendar:
    hours = parse_number(row.get("day_hr_cnt"))
    return WorkCalendar.from_clndr_data(
        calendar_id=_required(row, "clndr_id"),
        clndr_data=row.get("clndr_data") or "",
        name=_optional(row, "clndr_name"),
        hours_per_day=hours or 8.0,
        is_default=_flag(row, "default_flag"),
    )


@register(
    "PROJWBS",
    required=("wbs_id", "parent_wbs_id"),
    optional=("wbs_short_name", "wbs_name", "seq_num", "proj_node_flag"),
)
def decode_wbs(row: dict, notes: List[str]) -> WBSNode:
    wbs_id = _required(row, "wbs_id")
    short_name = _optional(row, "wbs_short_name")
    sequence = parse_number(row.get("seq_num"))
    if sequence is not None and abs(sequence) > _MAX_SEQUENCE:
        raise ValueError(f"seq_num out of range '{sequence:g}'")
    return WBSNode(
        id=wbs_id,
        parent_id=_optional(row, "parent_wbs_id") or None,
        name=_optional(row, "wbs_name", short_name or wbs_id),
        short_name=short_name,
        sequence_number=int(sequence or 0),
        is_project_node=_flag(row, "proj_node_flag"),
    )


@register(
    "TASK",
    required=("task_id", "task_name"),
    optional=(
        "task_code", "wbs_id", "clndr_id", "status_code", "phys_complete_pct",
        "target_start_date", "target_end_date", "act_start_date", "act_end_date",
        "target_drtn_hr_cnt", "remain_drtn_hr_cnt", "task_type", "cstr_type", "cstr_date",
    ),
)
def decode_task(row: dict, notes: List[str]) -> Activity:
    task_id = _required(row, "task_id")
    code = _optional(row, "task_code")

    percent = parse_number(row.get("phys_complete_pct")) or 0.0
    if percent < 0 or percent > 100:
        clamped = min(max(percent, 0.0), 100.0)
        notes.append(f"Activity '{task_id}' percent complete {percent:g} clamped to {clamped:g}")
        percent = clamped

    duration = parse_number(row.get("target_drtn_hr_cnt")) or 0.0
    if duration < 0:
        notes.append(f"Activity '{task_id}' has negative duration {duration:g}h; using 0")
        duration = 0.0

    constraint = None
    cstr_code = _optional(row, "cstr_type")
    if cstr_code:
        try:
            constraint = ConstraintType(cstr_code)
        except ValueError:
            logger.debug(f"Ignoring unsupported constraint {cstr_code} on activity {task_id}")

    return Activity(
        id=task_id,
        name=_optional(row, "task_name", code or task_id),
        code=code,
        wbs_id=_optional(row, "wbs_id") or None,
        calendar_id=_optional(row, "clndr_id"),
        status=STATUS_CODES.get(_optional(row, "status_code"), ActivityStatus.NOT_STARTED),
        percent_complete=percent,
        planned_start=parse_date(row.get("target_start_date")),
        planned_finish=parse_date(row.get("target_end_date")),
        actual_start=parse_date(row.get("act_start_date")),
        actual_finish=parse_date(row.get("act_end_date")),
        duration_hours=duration,
        remaining_hours=parse_number(row.get("remain_drtn_hr_cnt")),
        activity_type=_optional(row, "task_type"),
        constraint_type=constraint,
        constraint_date=parse_date(row.get("cstr_date")) if constraint else None,
    )


@register(
    "TASKPRED",
    required=("task_id", "pred_task_id"),
    optional=("task_pred_id", "pred_type", "lag_hr_cnt"),
)
def decode_relationship(row: dict, notes: List[str]) -> Relationship:
    pred_type = _optional(row, "pred_type", "PR_FS")
    if pred_type not in RELATIONSHIP_CODES:
        raise ValueError(f"unknown relationship type '{pred_type}'")
    return Relationship(
        predecessor_id=_required(row, "pred_task_id"),
        successor_id=_required(row, "task_id"),
        type=RELATIONSHIP_CODES[pred_type],
        lag_hours=parse_number(row.get("lag_hr_cnt")) or 0.0,
        source_id=_optional(row, "task_pred_id"),
    )


# =============================================================================
# Mapping
# =============================================================================

@dataclass
class MappedSchedule:
    """Typed records decoded from one XER file."""
    project: Optional[ProjectHeader] = None
    calendars: List[WorkCalendar] = field(default_factory=list)
    wbs_nodes: List[WBSNode] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    table_errors: List[MissingRequiredFieldError] = field(default_factory=list)
    warnings: List[ScheduleWarning] = field(default_factory=list)
    tables_seen: Set[str] = field(default_factory=set)
    project_count: int = 0


class SchemaMapper:
    """
    Decodes a stream of XerTables into a MappedSchedule.

    Unknown tables are drained and reported once each; unknown columns are
    ignored by the decoders.
    """

    def __init__(self, decoders: Optional[Dict[str, TableDecoder]] = None):
        self.decoders = decoders if decoders is not None else DECODERS

    def map(self, tables: Iterable[XerTable]) -> MappedSchedule:
        mapped = MappedSchedule()
        for table in tables:
            mapped.tables_seen.add(table.name)
            decoder = self.decoders.get(table.name)
            if decoder is None:
                skipped = sum(1 for _ in table.rows)
                mapped.warnings.append(UnknownTableWarning(table.name, skipped))
                continue

            missing = decoder.missing_columns(table.fields)
            if missing:
                error = MissingRequiredFieldError(table.name, missing[0])
                logger.warning(error.message)
                mapped.table_errors.append(error)
                mapped.warnings.append(SkippedTableWarning(error))
                for _ in table.rows:
                    pass
                continue

            self._map_table(table, decoder, mapped)

        for table_name in EXPECTED_TABLES:
            if table_name not in mapped.tables_seen:
                mapped.warnings.append(MissingTableWarning(table_name))

        if mapped.project_count > 1:
            mapped.warnings.append(MultipleProjectsWarning(mapped.project_count, mapped.project.short_name or mapped.project.source_id))

        logger.info(
            f"Mapped {len(mapped.activities)} activities, {len(mapped.relationships)} relationships, "
            f"{len(mapped.wbs_nodes)} WBS nodes, {len(mapped.calendars)} calendars"
        )
        return mapped

    def _map_table(self, table: XerTable, decoder: TableDecoder, mapped: MappedSchedule) -> None:
        for line_number, row in table.records():
            result = decoder.decode_row(row)
            if not result.ok:
                mapped.warnings.append(RowDecodeWarning(table.name, line_number, result.error))
                continue

            for note in result.notes:
                mapped.warnings.append(ValueAdjustedWarning(note))

            record = result.value
            if hasattr(record, "line_number"):
                record.line_number = line_number

            if table.name == "PROJECT":
                mapped.project_count += 1
                if mapped.project is None:
                    mapped.project = record
            elif table.name == "CALENDAR":
                mapped.calendars.append(record)
            elif table.name == "PROJWBS":
                mapped.wbs_nodes.append(record)
            elif table.name == "TASK":
                mapped.activities.append(record)
            elif table.name == "TASKPRED":
                mapped.relationships.append(record)
