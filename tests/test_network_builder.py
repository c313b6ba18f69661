"""
Tests for the network builder: reference resolution, WBS forest, cycles.
"""
import pytest

from xer_engine.errors import (
    CalendarResolutionWarning,
    CyclicDependencyError,
    DuplicateActivityWarning,
    OrphanWbsWarning,
    UnresolvedReferenceWarning,
)
from xer_engine.mapper import SchemaMapper
from xer_engine.network import NetworkBuilder, hours_to_duration, hours_to_lag, id_sort_key
from xer_engine.reader import XerReader

from conftest import CALENDAR_FIELDS, STANDARD_CLNDR_DATA, build_xer, pred_row, standard_tables, task_row

# No regular weekdays; only 2024-01-02 and 2024-01-03 are worked
EXCEPTION_ONLY_CLNDR_DATA = (
    "(0||CalendarData()("
    "(0||DaysOfWeek()((0||1()())(0||2()())(0||3()())(0||4()())(0||5()())(0||6()())(0||7()())))"
    "(0||Exceptions()("
    "(0||0(d|45293)((0||0(s|08:00|f|16:00)())))"
    "(0||1(d|45294)((0||0(s|08:00|f|16:00)())))))))"
)


def build_network(tables):
    mapped = SchemaMapper().map(XerReader(build_xer(tables)))
    return NetworkBuilder().build(mapped)


class TestConversions:
    """Tests for hour-to-working-day conversion."""

    @pytest.mark.parametrize("hours,expected", [(0, 0), (8, 1), (40, 5), (12, 2), (0.5, 1)])
    def test_duration_rounds_up(self, hours, expected):
        assert hours_to_duration(hours, 8) == expected

    @pytest.mark.parametrize("hours,expected", [(0, 0), (16, 2), (4, 1), (3, 0), (-4, -1), (-12, -2)])
    def test_lag_rounds_half_away_from_zero(self, hours, expected):
        assert hours_to_lag(hours, 8) == expected

    def test_id_sort_key_orders_numbers_numerically(self):
        assert sorted(["10", "9", "A2", "100"], key=id_sort_key) == ["9", "10", "100", "A2"]


class TestNetworkBuilder:
    """Tests for building the activity network."""

    def test_builds_index_based_adjacency(self):
        network = build_network(standard_tables(
            tasks=[task_row("1", "A", 40), task_row("2", "B", 24)],
            preds=[pred_row("11", "2", "1", lag=16)],
        ))

        assert network.index == {"1": 0, "2": 1}
        assert len(network.edges) == 1
        edge = network.edges[0]
        assert (edge.pred, edge.succ, edge.lag) == (0, 1, 2)
        assert network.successors[0] == [0]
        assert network.predecessors[1] == [0]
        assert [a.duration for a in network.activities] == [5, 3]

    def test_unresolved_relationship_is_dropped(self):
        network = build_network(standard_tables(
            tasks=[task_row("1", "A", 8)],
            preds=[pred_row("11", "1", "999")],
        ))
        assert network.edges == []
        warning = next(w for w in network.warnings if isinstance(w, UnresolvedReferenceWarning))
        assert warning.target_id == "999"

    def test_duplicate_activity_keeps_first(self):
        network = build_network(standard_tables(tasks=[
            task_row("1", "First", 8),
            task_row("1", "Second", 8),
        ]))
        assert len(network.activities) == 1
        assert network.activities[0].name == "First"
        assert any(isinstance(w, DuplicateActivityWarning) for w in network.warnings)

    def test_unknown_calendar_uses_default(self):
        network = build_network(standard_tables(tasks=[task_row("1", "A", 8, clndr_id="77")]))
        assert network.calendars[0].is_default
        warning = next(w for w in network.warnings if isinstance(w, CalendarResolutionWarning))
        assert warning.calendar_id == "77"

    def test_calendar_without_regular_weekdays_uses_default(self):
        tables = standard_tables(tasks=[task_row("1", "A", 24, clndr_id="2")])
        tables["CALENDAR"] = (CALENDAR_FIELDS, [
            ["1", "Standard 5 Day", "Y", "8", STANDARD_CLNDR_DATA],
            ["2", "Shutdown", "N", "8", EXCEPTION_ONLY_CLNDR_DATA],
        ])

        network = build_network(tables)

        assert network.calendars[0].is_default
        assert network.activities[0].duration == 3
        assert "2" not in network.calendar_map
        warning = next(w for w in network.warnings if isinstance(w, CalendarResolutionWarning))
        assert warning.calendar_id == "2"
        assert "without regular working weekdays" in warning.message

    def test_cycle_lists_exact_members(self, cyclic_xer):
        mapped = SchemaMapper().map(XerReader(cyclic_xer))
        with pytest.raises(CyclicDependencyError) as exc_info:
            NetworkBuilder().build(mapped)
        assert sorted(exc_info.value.activity_ids) == ["1", "2", "3"]

    def test_self_loop_is_a_cycle(self):
        tables = standard_tables(tasks=[task_row("1", "A", 8)], preds=[pred_row("11", "1", "1")])
        with pytest.raises(CyclicDependencyError) as exc_info:
            build_network(tables)
        assert exc_info.value.activity_ids == ["1"]

    def test_topological_order_breaks_ties_by_id(self):
        network = build_network(standard_tables(
            tasks=[task_row("3", "C", 8), task_row("10", "J", 8), task_row("2", "B", 8)],
            preds=[pred_row("11", "10", "2")],
        ))
        order = [network.activities[i].id for i in network.topological_order()]
        assert order == ["2", "3", "10"]


class TestWbsForest:
    """Tests for WBS resolution."""

    def test_forest_and_depths(self):
        network = build_network(standard_tables(
            tasks=[task_row("1", "A", 8, wbs_id="11")],
            wbs=[
                ["1", "100", "", "TWR", "Tower", "1", "Y"],
                ["10", "100", "1", "CIV", "Civil", "1", "N"],
                ["11", "100", "10", "FND", "Foundations", "1", "N"],
            ],
        ))
        depths = {n.id: n.depth for n in network.wbs_nodes}
        assert depths == {"1": 0, "10": 1, "11": 2}
        assert network.activity_wbs == [network.wbs_index["11"]]

    def test_orphan_is_reparented_to_root(self):
        network = build_network(standard_tables(
            tasks=[task_row("1", "A", 8)],
            wbs=[
                ["1", "100", "", "TWR", "Tower", "1", "Y"],
                ["10", "100", "1", "CIV", "Civil", "1", "N"],
                ["20", "100", "999", "MEP", "MEP", "2", "N"],
            ],
        ))
        assert network.wbs_parent[network.wbs_index["20"]] is None
        orphan = next(w for w in network.warnings if isinstance(w, OrphanWbsWarning))
        assert orphan.wbs_id == "20"

    def test_project_node_with_outside_parent_is_not_an_orphan(self):
        network = build_network(standard_tables(
            tasks=[task_row("1", "A", 8)],
            wbs=[
                ["1", "100", "5000", "TWR", "Tower", "1", "Y"],
                ["10", "100", "1", "CIV", "Civil", "1", "N"],
            ],
        ))
        assert not any(isinstance(w, OrphanWbsWarning) for w in network.warnings)
        assert network.wbs_roots == [network.wbs_index["1"]]

    def test_parent_cycle_is_broken(self):
        network = build_network(standard_tables(
            tasks=[task_row("1", "A", 8, wbs_id="11")],
            wbs=[
                ["10", "100", "11", "X", "X", "1", "N"],
                ["11", "100", "10", "Y", "Y", "1", "N"],
            ],
        ))
        assert network.wbs_parent[network.wbs_index["10"]] is None
        assert network.wbs_parent[network.wbs_index["11"]] == network.wbs_index["10"]

    def test_activity_with_unknown_wbs_attaches_to_root(self):
        network = build_network(standard_tables(tasks=[task_row("1", "A", 8, wbs_id="404")]))
        assert network.activity_wbs == [None]
        assert network.activities[0].wbs_id is None
