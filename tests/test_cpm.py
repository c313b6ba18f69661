"""
Tests for the CPM calculator.
"""
from datetime import date

import pytest

from xer_engine.cpm import CPMCalculator
from xer_engine.errors import NegativeFloatWarning
from xer_engine.mapper import SchemaMapper
from xer_engine.network import NetworkBuilder
from xer_engine.reader import XerReader

from conftest import CALENDAR_FIELDS, STANDARD_CLNDR_DATA, TASK_FIELDS, build_xer, pred_row, standard_tables, task_row


def run_cpm(xer_bytes, **kwargs):
    network = NetworkBuilder().build(SchemaMapper().map(XerReader(xer_bytes)))
    result = CPMCalculator(**kwargs).run(network)
    return {a.id: a for a in network.activities}, result


def dates(activity):
    return (activity.early_start, activity.early_finish, activity.late_start, activity.late_finish)


class TestScenario:
    """A(5d) -> B(3d) -> C(4d, FS lag 2) starting Monday 2024-01-01."""

    def test_early_and_late_dates(self, scenario_xer):
        activities, _ = run_cpm(scenario_xer)

        assert dates(activities["1"]) == (date(2024, 1, 1), date(2024, 1, 5), date(2024, 1, 1), date(2024, 1, 5))
        assert dates(activities["2"]) == (date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 8), date(2024, 1, 10))
        # Two idle working days (Thu, Fri) after B finishes on Wednesday
        assert dates(activities["3"]) == (date(2024, 1, 15), date(2024, 1, 18), date(2024, 1, 15), date(2024, 1, 18))

    def test_all_critical_with_zero_float(self, scenario_xer):
        activities, result = run_cpm(scenario_xer)

        assert all(a.total_float == 0 for a in activities.values())
        assert all(a.free_float == 0 for a in activities.values())
        assert all(a.is_critical for a in activities.values())
        assert result.critical_path.activity_ids == ["1", "2", "3"]
        assert result.project_start == date(2024, 1, 1)
        assert result.project_finish == date(2024, 1, 18)


class TestFloat:
    """Tests for total and free float."""

    @pytest.fixture
    def parallel_xer(self):
        # A(5d) -> C(2d); B(2d) -> C; B has 3 days of float
        return build_xer(standard_tables(
            tasks=[task_row("1", "A", 40), task_row("2", "B", 16), task_row("3", "C", 16)],
            preds=[pred_row("11", "3", "1"), pred_row("12", "3", "2")],
        ))

    def test_float_identity(self, parallel_xer):
        network = NetworkBuilder().build(SchemaMapper().map(XerReader(parallel_xer)))
        CPMCalculator().run(network)

        for activity, calendar in zip(network.activities, network.calendars):
            assert activity.total_float == calendar.working_days_between(activity.early_start, activity.late_start)

    def test_non_critical_branch(self, parallel_xer):
        activities, result = run_cpm(parallel_xer)

        assert activities["2"].total_float == 3
        assert activities["2"].free_float == 3
        assert activities["2"].is_critical is False
        assert result.critical_path.activity_ids == ["1", "3"]

    def test_threshold_widens_critical_set(self, parallel_xer):
        activities, _ = run_cpm(parallel_xer, critical_float_threshold=3)
        assert activities["2"].is_critical is True

    def test_target_finish_before_early_finish_gives_negative_float(self):
        tables = standard_tables(
            tasks=[task_row("1", "A", 40), task_row("2", "B", 24)],
            preds=[pred_row("11", "2", "1")],
        )
        _, rows = tables["PROJECT"]
        rows[0][3] = "2024-01-08 17:00"
        activities, result = run_cpm(build_xer(tables), honor_target_finish=True)

        assert activities["2"].total_float == -2
        assert activities["1"].total_float == -2
        assert len([w for w in result.warnings if isinstance(w, NegativeFloatWarning)]) == 2


class TestRelationshipTypes:
    """Tests for SS, FF and SF propagation."""

    def two_activity(self, pred_type, lag_hours=0, a_hours=40, b_hours=16):
        return build_xer(standard_tables(
            tasks=[task_row("1", "A", a_hours), task_row("2", "B", b_hours)],
            preds=[pred_row("11", "2", "1", pred_type=pred_type, lag=lag_hours)],
        ))

    def test_start_to_start_with_lag(self):
        activities, _ = run_cpm(self.two_activity("PR_SS", lag_hours=16))
        assert activities["2"].early_start == date(2024, 1, 3)
        assert activities["2"].early_finish == date(2024, 1, 4)

    def test_finish_to_finish(self):
        activities, _ = run_cpm(self.two_activity("PR_FF"))
        assert activities["2"].early_finish == date(2024, 1, 5)
        assert activities["2"].early_start == date(2024, 1, 4)

    def test_start_to_finish(self):
        activities, _ = run_cpm(self.two_activity("PR_SF", lag_hours=24))
        # B must finish after three idle days from A's start
        assert activities["2"].early_finish == date(2024, 1, 3)

    def test_lead_overlaps_activities(self):
        activities, _ = run_cpm(self.two_activity("PR_FS", lag_hours=-8))
        assert activities["2"].early_start == date(2024, 1, 5)

    def test_project_start_clamps_unconstrained_starts(self):
        activities, _ = run_cpm(self.two_activity("PR_FF", a_hours=8, b_hours=40))
        assert activities["2"].early_start == date(2024, 1, 1)


class TestConstraints:
    """Tests for date constraints."""

    def test_start_no_earlier_than(self):
        fields = TASK_FIELDS + ["cstr_type", "cstr_date"]
        tables = standard_tables(tasks=[])
        tables["TASK"] = (fields, [task_row("1", "A", 16) + ["CS_SNET", "2024-01-10 08:00"]])

        activities, _ = run_cpm(build_xer(tables))

        assert activities["1"].early_start == date(2024, 1, 10)

    def test_finish_no_later_than(self):
        fields = TASK_FIELDS + ["cstr_type", "cstr_date"]
        tables = standard_tables(tasks=[], preds=[pred_row("11", "2", "1")])
        tables["TASK"] = (fields, [
            task_row("1", "A", 40) + ["CS_FNLT", "2024-01-03 17:00"],
            task_row("2", "B", 8) + ["", ""],
        ])

        activities, _ = run_cpm(build_xer(tables))

        assert activities["1"].late_finish == date(2024, 1, 3)
        assert activities["1"].total_float == -2

    def test_mandatory_start_moves_start_later(self):
        fields = TASK_FIELDS + ["cstr_type", "cstr_date"]
        tables = standard_tables(tasks=[])
        tables["TASK"] = (fields, [task_row("1", "A", 16) + ["CS_MSO", "2024-01-10 08:00"]])

        activities, _ = run_cpm(build_xer(tables))

        assert activities["1"].early_start == date(2024, 1, 10)
        assert activities["1"].early_finish == date(2024, 1, 11)

    def test_mandatory_start_does_not_override_logic(self):
        fields = TASK_FIELDS + ["cstr_type", "cstr_date"]
        tables = standard_tables(tasks=[], preds=[pred_row("11", "2", "1")])
        tables["TASK"] = (fields, [
            task_row("1", "A", 40) + ["", ""],
            task_row("2", "B", 8) + ["CS_MSO", "2024-01-03 08:00"],
        ])

        activities, _ = run_cpm(build_xer(tables))

        assert activities["2"].early_start == date(2024, 1, 8)

    def test_mandatory_finish_caps_late_finish(self):
        fields = TASK_FIELDS + ["cstr_type", "cstr_date"]
        tables = standard_tables(tasks=[], preds=[pred_row("11", "2", "1")])
        tables["TASK"] = (fields, [
            task_row("1", "A", 40) + ["CS_MFO", "2024-01-03 17:00"],
            task_row("2", "B", 8) + ["", ""],
        ])

        activities, _ = run_cpm(build_xer(tables))

        assert activities["1"].late_finish == date(2024, 1, 3)
        assert activities["1"].late_start == date(2023, 12, 28)
        assert activities["1"].total_float == -2
        assert activities["2"].total_float == 0


class TestCalendars:
    """Tests for holidays and mixed calendars."""

    def test_holiday_is_skipped(self):
        tables = standard_tables(
            tasks=[task_row("1", "A", 40), task_row("2", "B", 8)],
            preds=[pred_row("11", "2", "1")],
        )
        # 2024-01-03 off
        tables["CALENDAR"] = (CALENDAR_FIELDS, [[
            "1", "Standard 5 Day", "Y", "8",
            STANDARD_CLNDR_DATA.replace("(0||Exceptions()())", "(0||Exceptions()((0||0(d|45294)())))"),
        ]])

        activities, result = run_cpm(build_xer(tables))

        assert activities["1"].early_finish == date(2024, 1, 8)
        assert activities["2"].early_start == date(2024, 1, 9)
        assert result.project_finish == date(2024, 1, 9)
        assert result.critical_path.activity_ids == ["1", "2"]

    def test_lag_is_counted_on_successor_calendar(self):
        six_day = STANDARD_CLNDR_DATA.replace("(0||7()())", "(0||7()((0||0(s|08:00|f|16:00)())))")
        tables = standard_tables(
            tasks=[task_row("1", "A", 40), task_row("2", "B", 16, clndr_id="2")],
            preds=[pred_row("11", "2", "1", lag=8)],
        )
        tables["CALENDAR"] = (CALENDAR_FIELDS, [
            ["1", "Standard 5 Day", "Y", "8", STANDARD_CLNDR_DATA],
            ["2", "Six Day", "N", "8", six_day],
        ])

        activities, _ = run_cpm(build_xer(tables))

        # Saturday is worked on B's calendar and absorbs the one-day lag
        assert activities["1"].early_finish == date(2024, 1, 5)
        assert activities["2"].early_start == date(2024, 1, 8)
        assert activities["2"].early_finish == date(2024, 1, 9)
        assert activities["1"].late_finish == date(2024, 1, 5)
        assert activities["1"].total_float == 0
        assert activities["2"].total_float == 0


class TestDeterminism:
    """Tests for tie-breaking."""

    def test_equal_chains_prefer_lower_ids(self):
        xer = build_xer(standard_tables(
            tasks=[task_row("1", "A", 8), task_row("2", "B", 8), task_row("3", "C", 8)],
            preds=[pred_row("11", "3", "2"), pred_row("12", "3", "1")],
        ))
        _, result = run_cpm(xer)
        assert result.critical_path.activity_ids == ["1", "3"]

    def test_milestone_has_zero_duration(self):
        xer = build_xer(standard_tables(
            tasks=[task_row("1", "A", 40), task_row("2", "Done", 0, task_type="TT_FinMile")],
            preds=[pred_row("11", "2", "1")],
        ))
        activities, _ = run_cpm(xer)
        assert activities["2"].duration == 0
        assert activities["2"].early_start == activities["2"].early_finish == date(2024, 1, 8)
        assert activities["2"].is_critical
