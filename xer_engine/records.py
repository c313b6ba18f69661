"""
Typed schedule records produced by the schema mapper.

Computed CPM and roll-up fields start out empty and are filled in by the
network builder, the CPM calculator and the progress aggregator.
"""
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


class ActivityStatus(str, enum.Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class RelationshipType(str, enum.Enum):
    FINISH_TO_START = "FinishToStart"
    START_TO_START = "StartToStart"
    FINISH_TO_FINISH = "FinishToFinish"
    START_TO_FINISH = "StartToFinish"

    @property
    def short_code(self) -> str:
        return {
            RelationshipType.FINISH_TO_START: "FS",
            RelationshipType.START_TO_START: "SS",
            RelationshipType.FINISH_TO_FINISH: "FF",
            RelationshipType.START_TO_FINISH: "SF",
        }[self]


class ConstraintType(str, enum.Enum):
    """Date constraints honoured by the CPM calculator."""
    START_ON_OR_AFTER = "CS_SNET"
    MANDATORY_START = "CS_MSO"
    FINISH_ON_OR_BEFORE = "CS_FNLT"
    MANDATORY_FINISH = "CS_MFO"


STATUS_CODES = {
    "TK_NotStart": ActivityStatus.NOT_STARTED,
    "TK_Active": ActivityStatus.IN_PROGRESS,
    "TK_Complete": ActivityStatus.COMPLETED,
}

RELATIONSHIP_CODES = {
    "PR_FS": RelationshipType.FINISH_TO_START,
    "PR_SS": RelationshipType.START_TO_START,
    "PR_FF": RelationshipType.FINISH_TO_FINISH,
    "PR_SF": RelationshipType.START_TO_FINISH,
}

MILESTONE_TYPES = ("TT_Mile", "TT_FinMile")


@dataclass
class ProjectHeader:
    source_id: str
    short_name: str = ""
    planned_start: Optional[date] = None
    planned_finish: Optional[date] = None
    data_date: Optional[date] = None
    calendar_id: str = ""


@dataclass
class WBSNode:
    id: str
    parent_id: Optional[str]
    name: str
    short_name: str = ""
    sequence_number: int = 0
    is_project_node: bool = False
    line_number: int = 0

    # Computed by the network builder / progress aggregator
    depth: int = 0
    weight: float = 0.0
    percent_complete: float = 0.0
    has_activities: bool = False
    activity_count: int = 0


@dataclass
class Activity:
    id: str
    name: str
    wbs_id: Optional[str] = None
    code: str = ""
    calendar_id: str = ""
    status: ActivityStatus = ActivityStatus.NOT_STARTED
    percent_complete: float = 0.0
    planned_start: Optional[date] = None
    planned_finish: Optional[date] = None
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None
    duration_hours: float = 0.0
    remaining_hours: Optional[float] = None
    activity_type: str = ""
    constraint_type: Optional[ConstraintType] = None
    constraint_date: Optional[date] = None
    line_number: int = 0

    # Working days on the activity's calendar (set by the network builder)
    duration: int = 0

    # Computed by the CPM calculator
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    total_float: Optional[int] = None
    free_float: Optional[int] = None
    is_critical: bool = False

    @property
    def is_milestone(self) -> bool:
        return self.activity_type in MILESTONE_TYPES

    def is_overdue(self, as_of: date) -> bool:
        """Planned to be finished before as_of but not completed."""
        return (
            self.actual_finish is None
            and self.planned_finish is not None
            and self.planned_finish < as_of
            and self.status != ActivityStatus.COMPLETED
        )


@dataclass
class Relationship:
    predecessor_id: str
    successor_id: str
    type: RelationshipType = RelationshipType.FINISH_TO_START
    lag_hours: float = 0.0
    source_id: str = ""
    line_number: int = 0

    # Working days on the successor's calendar (set by the network builder)
    lag: int = 0


@dataclass
class CriticalPath:
    """Ordered critical chain plus project bounds."""
    activity_ids: List[str] = field(default_factory=list)
    project_start: Optional[date] = None
    project_finish: Optional[date] = None
