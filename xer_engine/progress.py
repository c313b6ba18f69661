"""
Progress aggregator.

Rolls activity percent complete up the WBS forest, weighting each activity
by its duration in working days, and counts activities by state.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from xer_engine.network import ScheduleNetwork
from xer_engine.records import ActivityStatus

logger = logging.getLogger(__name__)


@dataclass
class WbsProgress:
    wbs_id: str
    name: str
    percent_complete: float
    weight: float
    activity_count: int
    has_activities: bool


@dataclass
class ProgressSummary:
    """Project-level counts and the per-node roll-up."""
    total_activities: int = 0
    completed_activities: int = 0
    in_progress_activities: int = 0
    not_started_activities: int = 0
    overdue_activities: int = 0
    critical_activities: int = 0
    milestone_count: int = 0
    overall_progress: float = 0.0
    wbs: List[WbsProgress] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "totalActivities": self.total_activities,
            "completedActivities": self.completed_activities,
            "inProgressActivities": self.in_progress_activities,
            "notStartedActivities": self.not_started_activities,
            "overdueActivities": self.overdue_activities,
            "criticalActivities": self.critical_activities,
            "milestones": self.milestone_count,
            "overallProgress": round(self.overall_progress, 1),
        }


def weighted_percent(weighted_sum: float, weight: float) -> float:
    if weight <= 0:
        return 0.0
    return weighted_sum / weight


class ProgressAggregator:
    """
    Computes duration-weighted WBS roll-ups.

    A node's percent is the weighted average over every activity below it.
    Zero-duration activities carry no weight, so a node whose activities are
    all milestones (or which has none) reports 0% and is flagged as having
    no activities.
    """

    def __init__(self, as_of: Optional[date] = None):
        self.as_of = as_of or date.today()

    def aggregate(self, network: ScheduleNetwork) -> ProgressSummary:
        summary = ProgressSummary(total_activities=len(network.activities))

        node_count = len(network.wbs_nodes)
        own_sum = [0.0] * node_count
        own_weight = [0.0] * node_count
        own_count = [0] * node_count
        total_sum = 0.0
        total_weight = 0.0

        for position, activity in enumerate(network.activities):
            weight = float(activity.duration)
            total_sum += weight * activity.percent_complete
            total_weight += weight

            wbs = network.activity_wbs[position]
            if wbs is not None:
                own_sum[wbs] += weight * activity.percent_complete
                own_weight[wbs] += weight
                own_count[wbs] += 1

            if activity.status == ActivityStatus.COMPLETED:
                summary.completed_activities += 1
            elif activity.status == ActivityStatus.IN_PROGRESS:
                summary.in_progress_activities += 1
            else:
                summary.not_started_activities += 1
            if activity.is_overdue(self.as_of):
                summary.overdue_activities += 1
            if activity.is_critical:
                summary.critical_activities += 1
            if activity.is_milestone:
                summary.milestone_count += 1

        self._roll_up(network, own_sum, own_weight, own_count)
        summary.overall_progress = weighted_percent(total_sum, total_weight)
        summary.wbs = [
            WbsProgress(
                wbs_id=node.id,
                name=node.name,
                percent_complete=node.percent_complete,
                weight=node.weight,
                activity_count=node.activity_count,
                has_activities=node.has_activities,
            )
            for node in network.wbs_nodes
        ]
        return summary

    def _roll_up(self, network: ScheduleNetwork, own_sum, own_weight, own_count) -> None:
        """Iterative post-order walk so deep WBS trees cannot exhaust the stack."""
        sums = list(own_sum)
        weights = list(own_weight)
        counts = list(own_count)

        stack = [(root, False) for root in network.wbs_roots]
        while stack:
            node, children_done = stack.pop()
            if not children_done:
                stack.append((node, True))
                stack.extend((child, False) for child in network.wbs_children[node])
                continue

            for child in network.wbs_children[node]:
                sums[node] += sums[child]
                weights[node] += weights[child]
                counts[node] += counts[child]

            wbs = network.wbs_nodes[node]
            wbs.weight = weights[node]
            wbs.activity_count = counts[node]
            wbs.has_activities = weights[node] > 0
            wbs.percent_complete = weighted_percent(sums[node], weights[node])
