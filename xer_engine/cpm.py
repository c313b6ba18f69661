"""
Critical Path Method calculator.

Runs a forward and a backward pass over a ScheduleNetwork in topological
order and writes early/late dates, total float, free float and the critical
flag onto each Activity.

Internally every date is a boundary (see xer_engine.calendar): starts are
the morning of the first worked day and finishes are the morning after the
last worked day. Activities expose inclusive display dates.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from xer_engine.calendar import WorkCalendar
from xer_engine.errors import NegativeFloatWarning, ScheduleWarning
from xer_engine.network import ScheduleNetwork, id_sort_key
from xer_engine.records import ConstraintType, CriticalPath, RelationshipType

logger = logging.getLogger(__name__)

FS = RelationshipType.FINISH_TO_START
SS = RelationshipType.START_TO_START
FF = RelationshipType.FINISH_TO_FINISH
SF = RelationshipType.START_TO_FINISH


def _finish_boundary(day: date) -> date:
    """Boundary after an inclusive finish date; the last representable day stays put."""
    if day >= date.max:
        return day
    return day + timedelta(days=1)


@dataclass
class CPMResult:
    """Outcome of a CPM run."""
    order: List[int]
    critical_path: CriticalPath
    warnings: List[ScheduleWarning] = field(default_factory=list)

    @property
    def project_start(self) -> Optional[date]:
        return self.critical_path.project_start

    @property
    def project_finish(self) -> Optional[date]:
        return self.critical_path.project_finish


class CPMCalculator:
    """
    Forward/backward pass scheduler.

    Args:
        critical_float_threshold: Activities with total float at or below
            this many working days are critical
        honor_target_finish: Anchor the backward pass at the project's
            planned finish instead of the latest early finish
        today: Fallback project start when the file gives none
    """

    def __init__(
        self,
        critical_float_threshold: int = 0,
        honor_target_finish: bool = False,
        today: Optional[date] = None,
    ):
        self.critical_float_threshold = critical_float_threshold
        self.honor_target_finish = honor_target_finish
        self.today = today or date.today()

    def run(self, network: ScheduleNetwork) -> CPMResult:
        n = len(network.activities)
        order = network.topological_order()
        self._es = [None] * n
        self._ef = [None] * n
        self._ls = [None] * n
        self._lf = [None] * n

        if n == 0:
            return CPMResult(order=order, critical_path=CriticalPath())

        project_start = self.project_start(network)
        self.forward_pass(network, order, project_start)

        project_finish = max(self._ef)
        if self.honor_target_finish and network.project and network.project.planned_finish:
            project_finish = _finish_boundary(network.project.planned_finish)
        self.backward_pass(network, order, project_finish)

        warnings = self.calculate_float(network, project_finish)
        path = self.critical_path(network, order)

        finish_display = max(
            network.calendars[i].last_worked_day(self._es[i], self._ef[i]) for i in range(n)
        )
        result = CPMResult(
            order=order,
            critical_path=CriticalPath(
                activity_ids=[network.activities[i].id for i in path],
                project_start=min(self._es),
                project_finish=finish_display,
            ),
            warnings=warnings,
        )
        logger.info(
            f"CPM complete: {n} activities, {len(path)} on critical path, "
            f"finish {result.project_finish}"
        )
        return result

    def project_start(self, network: ScheduleNetwork) -> date:
        """Planned project start, else earliest planned activity start, else data date, else today."""
        header = network.project
        if header and header.planned_start:
            return header.planned_start
        planned = [a.planned_start for a in network.activities if a.planned_start]
        if planned:
            return min(planned)
        if header and header.data_date:
            return header.data_date
        return self.today

    # =========================================================================
    # Forward Pass
    # =========================================================================

    def forward_pass(self, network: ScheduleNetwork, order: List[int], project_start: date) -> None:
        for node in order:
            activity = network.activities[node]
            calendar = network.calendars[node]
            duration = activity.duration

            early_start = project_start
            for edge_index in network.predecessors[node]:
                edge = network.edges[edge_index]
                driven = self._driven_start(edge, calendar, duration)
                if driven > early_start:
                    early_start = driven

            if activity.constraint_type in (ConstraintType.START_ON_OR_AFTER, ConstraintType.MANDATORY_START) \
                    and activity.constraint_date:
                early_start = max(early_start, activity.constraint_date)

            early_start = calendar.next_working_day(early_start)
            self._es[node] = early_start
            self._ef[node] = calendar.advance(early_start, duration)

    def _driven_start(self, edge, calendar: WorkCalendar, duration: int) -> date:
        """Earliest start of edge.succ allowed by its predecessor."""
        if edge.type == FS:
            return calendar.shift(self._ef[edge.pred], edge.lag)
        if edge.type == SS:
            return calendar.shift(self._es[edge.pred], edge.lag)
        if edge.type == FF:
            finish = calendar.shift(self._ef[edge.pred], edge.lag)
        else:
            finish = calendar.shift(self._es[edge.pred], edge.lag)
        return calendar.retreat(finish, duration)

    # =========================================================================
    # Backward Pass
    # =========================================================================

    def backward_pass(self, network: ScheduleNetwork, order: List[int], project_finish: date) -> None:
        for node in reversed(order):
            activity = network.activities[node]
            calendar = network.calendars[node]
            duration = activity.duration

            late_finish = project_finish
            for edge_index in network.successors[node]:
                edge = network.edges[edge_index]
                driven = self._driven_finish(edge, network.calendars[edge.succ], calendar, duration)
                if driven < late_finish:
                    late_finish = driven

            if activity.constraint_type in (ConstraintType.FINISH_ON_OR_BEFORE, ConstraintType.MANDATORY_FINISH) \
                    and activity.constraint_date:
                late_finish = min(late_finish, _finish_boundary(activity.constraint_date))

            self._lf[node] = late_finish
            self._ls[node] = calendar.retreat(late_finish, duration)

    def _driven_finish(self, edge, succ_calendar: WorkCalendar, calendar: WorkCalendar, duration: int) -> date:
        """Latest finish of edge.pred allowed by its successor."""
        if edge.type == FS:
            return succ_calendar.shift(self._ls[edge.succ], -edge.lag)
        if edge.type == FF:
            return succ_calendar.shift(self._lf[edge.succ], -edge.lag)
        if edge.type == SS:
            start = succ_calendar.shift(self._ls[edge.succ], -edge.lag)
        else:
            start = succ_calendar.shift(self._lf[edge.succ], -edge.lag)
        return calendar.advance(start, duration)

    # =========================================================================
    # Float
    # =========================================================================

    def calculate_float(self, network: ScheduleNetwork, project_finish: date) -> List[ScheduleWarning]:
        """Write dates, total float, free float and the critical flag onto activities."""
        warnings: List[ScheduleWarning] = []
        for node, activity in enumerate(network.activities):
            calendar = network.calendars[node]
            es, ef, ls, lf = self._es[node], self._ef[node], self._ls[node], self._lf[node]

            activity.early_start = es
            activity.early_finish = calendar.last_worked_day(es, ef)
            activity.late_start = ls
            activity.late_finish = calendar.last_worked_day(ls, lf)
            activity.total_float = calendar.working_days_between(es, ls)
            activity.is_critical = activity.total_float <= self.critical_float_threshold

            free = self._free_float(network, node, project_finish)
            activity.free_float = min(free, activity.total_float)

            if activity.total_float < 0:
                warnings.append(NegativeFloatWarning(activity.id, activity.total_float))
        return warnings

    def _free_float(self, network: ScheduleNetwork, node: int, project_finish: date) -> int:
        calendar = network.calendars[node]
        if not network.successors[node]:
            return calendar.working_days_between(self._ef[node], project_finish)

        slack = None
        for edge_index in network.successors[node]:
            edge = network.edges[edge_index]
            succ_calendar = network.calendars[edge.succ]
            if edge.type == FS:
                value = calendar.working_days_between(self._ef[node], succ_calendar.shift(self._es[edge.succ], -edge.lag))
            elif edge.type == SS:
                value = calendar.working_days_between(self._es[node], succ_calendar.shift(self._es[edge.succ], -edge.lag))
            elif edge.type == FF:
                value = calendar.working_days_between(self._ef[node], succ_calendar.shift(self._ef[edge.succ], -edge.lag))
            else:
                value = calendar.working_days_between(self._es[node], succ_calendar.shift(self._ef[edge.succ], -edge.lag))
            slack = value if slack is None else min(slack, value)
        return max(slack, 0)

    # =========================================================================
    # Critical Path
    # =========================================================================

    def critical_path(self, network: ScheduleNetwork, order: List[int]) -> List[int]:
        """
        Longest chain of critical activities linked by critical-to-critical edges.

        Chains are compared by total duration, then length, then the ids of
        their members, so the result is deterministic.
        """
        best = {}
        previous = {}
        for node in order:
            activity = network.activities[node]
            if not activity.is_critical:
                continue
            score = (activity.duration, 1)
            link = None
            for edge_index in network.predecessors[node]:
                pred = network.edges[edge_index].pred
                if pred not in best:
                    continue
                candidate = (best[pred][0] + activity.duration, best[pred][1] + 1)
                if candidate > score or (candidate == score and link is not None
                                         and id_sort_key(network.activities[pred].id)
                                         < id_sort_key(network.activities[link].id)):
                    score = candidate
                    link = pred
            best[node] = score
            previous[node] = link

        if not best:
            return []

        end = min(best, key=lambda i: (-best[i][0], -best[i][1], id_sort_key(network.activities[i].id)))
        path = []
        node = end
        while node is not None:
            path.append(node)
            node = previous[node]
        path.reverse()
        return path
