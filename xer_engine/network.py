"""
Network builder.

Turns mapped records into an index-based activity network: activities live
in a list, relationships become edges between list positions, and every
reference (relationship endpoints, activity WBS, WBS parent, calendar) is
resolved once here so later stages never look anything up by id.
"""
import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from xer_engine.calendar import WorkCalendar
from xer_engine.errors import (
    CalendarResolutionWarning,
    CyclicDependencyError,
    DuplicateActivityWarning,
    OrphanWbsWarning,
    ScheduleWarning,
    UnresolvedReferenceWarning,
)
from xer_engine.mapper import MappedSchedule
from xer_engine.records import Activity, ProjectHeader, Relationship, RelationshipType, WBSNode

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


def id_sort_key(value: str):
    """Numeric ids sort numerically and before non-numeric ids."""
    if value.isdigit():
        return (0, int(value), "")
    return (1, 0, value)


def hours_to_duration(hours: float, hours_per_day: float) -> int:
    """Working days occupied by ``hours``; any remainder takes a whole day."""
    if hours <= 0:
        return 0
    return int(math.ceil(round(hours / hours_per_day, 6)))


def hours_to_lag(hours: float, hours_per_day: float) -> int:
    """Lag in working days, rounded half away from zero."""
    days = abs(hours) / hours_per_day
    rounded = int(math.floor(round(days, 6) + 0.5))
    return -rounded if hours < 0 else rounded


@dataclass
class Edge:
    pred: int
    succ: int
    type: RelationshipType
    lag: int


@dataclass
class ScheduleNetwork:
    """
    Activity network plus WBS forest.

    Attributes:
        activities: Activities by position
        calendars: Calendar of the activity at the same position
        edges: Resolved relationships by position
        successors: Edge positions leaving each activity
        predecessors: Edge positions entering each activity
        wbs_nodes: WBS nodes by position
        wbs_parent: Parent position of each WBS node (None = root)
        activity_wbs: WBS position of each activity (None = root)
    """
    project: Optional[ProjectHeader] = None
    activities: List[Activity] = field(default_factory=list)
    index: Dict[str, int] = field(default_factory=dict)
    calendars: List[WorkCalendar] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    successors: List[List[int]] = field(default_factory=list)
    predecessors: List[List[int]] = field(default_factory=list)
    wbs_nodes: List[WBSNode] = field(default_factory=list)
    wbs_index: Dict[str, int] = field(default_factory=dict)
    wbs_parent: List[Optional[int]] = field(default_factory=list)
    wbs_children: List[List[int]] = field(default_factory=list)
    wbs_roots: List[int] = field(default_factory=list)
    activity_wbs: List[Optional[int]] = field(default_factory=list)
    calendar_map: Dict[str, WorkCalendar] = field(default_factory=dict)
    unusable_calendars: Set[str] = field(default_factory=set)
    warnings: List[ScheduleWarning] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.activities)

    def topological_order(self) -> List[int]:
        """Kahn's algorithm; ready activities are taken in id order."""
        in_degree = [len(preds) for preds in self.predecessors]
        ready = [(id_sort_key(self.activities[i].id), i) for i, deg in enumerate(in_degree) if deg == 0]
        heapq.heapify(ready)

        order = []
        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for edge_index in self.successors[node]:
                succ = self.edges[edge_index].succ
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    heapq.heappush(ready, (id_sort_key(self.activities[succ].id), succ))

        if len(order) != len(self.activities):
            # Only reachable if the cycle check was bypassed
            raise CyclicDependencyError(self.find_cycle() or [])
        return order

    def find_cycle(self) -> Optional[List[str]]:
        """
        Iterative three-colour DFS over an explicit stack.

        Returns:
            Activity ids of the first cycle found, in edge order, or None
        """
        color = [WHITE] * len(self.activities)
        roots = sorted(range(len(self.activities)), key=lambda i: id_sort_key(self.activities[i].id))

        for root in roots:
            if color[root] != WHITE:
                continue
            path: List[int] = [root]
            position = {root: 0}
            stack = [(root, iter(self._successor_nodes(root)))]
            color[root] = GRAY

            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node] = BLACK
                    stack.pop()
                    path.pop()
                    del position[node]
                    continue
                if color[child] == GRAY:
                    members = path[position[child]:]
                    return [self.activities[i].id for i in members]
                if color[child] == WHITE:
                    color[child] = GRAY
                    position[child] = len(path)
                    path.append(child)
                    stack.append((child, iter(self._successor_nodes(child))))
        return None

    def _successor_nodes(self, node: int) -> List[int]:
        nodes = [self.edges[e].succ for e in self.successors[node]]
        return sorted(set(nodes), key=lambda i: id_sort_key(self.activities[i].id))


class NetworkBuilder:
    """Builds a validated ScheduleNetwork from a MappedSchedule."""

    def __init__(self, default_calendar: Optional[WorkCalendar] = None):
        self.default_calendar = default_calendar or WorkCalendar.standard()

    def build(self, mapped: MappedSchedule) -> ScheduleNetwork:
        network = ScheduleNetwork(project=mapped.project)
        self._index_calendars(network, mapped.calendars)
        self._index_activities(network, mapped.activities)
        self._index_wbs(network, mapped.wbs_nodes)
        self._attach_activities_to_wbs(network)
        self._resolve_relationships(network, mapped.relationships)

        cycle = network.find_cycle()
        if cycle:
            raise CyclicDependencyError(cycle)

        logger.info(
            f"Built network: {len(network.activities)} activities, {len(network.edges)} edges, "
            f"{len(network.wbs_nodes)} WBS nodes"
        )
        return network

    # =========================================================================
    # Calendars and Activities
    # =========================================================================

    def _index_calendars(self, network: ScheduleNetwork, calendars: List[WorkCalendar]) -> None:
        for calendar in calendars:
            if calendar.id in network.calendar_map:
                continue
            if not calendar.has_regular_week:
                logger.warning(f"Calendar {calendar.id} has no regular working weekdays and will not be used")
                network.unusable_calendars.add(calendar.id)
                continue
            network.calendar_map[calendar.id] = calendar

    def _index_activities(self, network: ScheduleNetwork, activities: List[Activity]) -> None:
        for activity in activities:
            if activity.id in network.index:
                network.warnings.append(DuplicateActivityWarning(activity.id))
                continue

            calendar = network.calendar_map.get(activity.calendar_id)
            if calendar is None:
                network.warnings.append(CalendarResolutionWarning(
                    activity.id,
                    activity.calendar_id,
                    unusable=activity.calendar_id in network.unusable_calendars,
                ))
                calendar = self.default_calendar

            activity.duration = hours_to_duration(activity.duration_hours, calendar.hours_per_day)
            network.index[activity.id] = len(network.activities)
            network.activities.append(activity)
            network.calendars.append(calendar)
            network.successors.append([])
            network.predecessors.append([])

    def _resolve_relationships(self, network: ScheduleNetwork, relationships: List[Relationship]) -> None:
        for rel in relationships:
            pred = network.index.get(rel.predecessor_id)
            succ = network.index.get(rel.successor_id)
            if pred is None or succ is None:
                missing = rel.predecessor_id if pred is None else rel.successor_id
                network.warnings.append(UnresolvedReferenceWarning(
                    "Relationship",
                    rel.source_id or f"{rel.predecessor_id}->{rel.successor_id}",
                    missing,
                    "relationship dropped",
                ))
                continue

            rel.lag = hours_to_lag(rel.lag_hours, network.calendars[succ].hours_per_day)
            edge_index = len(network.edges)
            network.edges.append(Edge(pred, succ, rel.type, rel.lag))
            network.relationships.append(rel)
            network.successors[pred].append(edge_index)
            network.predecessors[succ].append(edge_index)

    # =========================================================================
    # WBS Forest
    # =========================================================================

    def _index_wbs(self, network: ScheduleNetwork, nodes: List[WBSNode]) -> None:
        for node in nodes:
            if node.id in network.wbs_index:
                network.warnings.append(ScheduleWarning(f"Duplicate WBS id '{node.id}'; later row ignored"))
                continue
            network.wbs_index[node.id] = len(network.wbs_nodes)
            network.wbs_nodes.append(node)

        for node in network.wbs_nodes:
            parent = network.wbs_index.get(node.parent_id) if node.parent_id else None
            if node.parent_id and parent is None and not node.is_project_node:
                network.warnings.append(OrphanWbsWarning(node.id, f"has unknown parent '{node.parent_id}'"))
            if node.parent_id == node.id:
                parent = None
                network.warnings.append(OrphanWbsWarning(node.id, "is its own parent"))
            network.wbs_parent.append(parent)

        self._break_wbs_cycles(network)

        network.wbs_children = [[] for _ in network.wbs_nodes]
        for child, parent in enumerate(network.wbs_parent):
            if parent is None:
                network.wbs_roots.append(child)
            else:
                network.wbs_children[parent].append(child)

        order_key = lambda i: (network.wbs_nodes[i].sequence_number, id_sort_key(network.wbs_nodes[i].id))
        network.wbs_roots.sort(key=order_key)
        for children in network.wbs_children:
            children.sort(key=order_key)

        stack = [(root, 0) for root in network.wbs_roots]
        while stack:
            node, depth = stack.pop()
            network.wbs_nodes[node].depth = depth
            stack.extend((child, depth + 1) for child in network.wbs_children[node])

    def _break_wbs_cycles(self, network: ScheduleNetwork) -> None:
        state = [WHITE] * len(network.wbs_nodes)
        for start in range(len(network.wbs_nodes)):
            chain = []
            node = start
            while node is not None and state[node] == WHITE:
                state[node] = GRAY
                chain.append(node)
                node = network.wbs_parent[node]

            if node is not None and state[node] == GRAY:
                members = chain[chain.index(node):]
                victim = min(members, key=lambda i: id_sort_key(network.wbs_nodes[i].id))
                network.wbs_parent[victim] = None
                network.warnings.append(OrphanWbsWarning(network.wbs_nodes[victim].id, "is part of a parent cycle"))

            for member in chain:
                state[member] = BLACK

    def _attach_activities_to_wbs(self, network: ScheduleNetwork) -> None:
        for activity in network.activities:
            wbs = network.wbs_index.get(activity.wbs_id) if activity.wbs_id else None
            if activity.wbs_id and wbs is None:
                network.warnings.append(UnresolvedReferenceWarning(
                    "Activity", activity.id, activity.wbs_id, "attached to WBS root",
                ))
                activity.wbs_id = None
            network.activity_wbs.append(wbs)
