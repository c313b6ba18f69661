"""
Tests for the schema mapper and its decoder registry.
"""
from datetime import date

import pytest

from xer_engine.errors import (
    MissingTableWarning,
    MultipleProjectsWarning,
    RowDecodeWarning,
    SkippedTableWarning,
    UnknownTableWarning,
    ValueAdjustedWarning,
)
from xer_engine.mapper import DECODERS, SchemaMapper, parse_date, parse_number
from xer_engine.reader import XerReader
from xer_engine.records import ActivityStatus, ConstraintType, RelationshipType

from conftest import PRED_FIELDS, PROJECT_FIELDS, TASK_FIELDS, build_xer, pred_row, standard_tables, task_row


def map_tables(tables):
    return SchemaMapper().map(XerReader(build_xer(tables)))


class TestValueParsing:
    """Tests for XER date and number parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("2024-03-05 08:00", date(2024, 3, 5)),
        ("2024-03-05 17:30:00", date(2024, 3, 5)),
        ("2024-03-05", date(2024, 3, 5)),
        ("", None),
        ("   ", None),
    ])
    def test_parse_date(self, value, expected):
        assert parse_date(value) == expected

    def test_parse_date_rejects_other_formats(self):
        with pytest.raises(ValueError):
            parse_date("05/03/2024")

    @pytest.mark.parametrize("value,expected", [
        ("40", 40.0),
        ("-16", -16.0),
        ("12.5", 12.5),
        (".5", 0.5),
        ("", None),
    ])
    def test_parse_number(self, value, expected):
        assert parse_number(value) == expected

    @pytest.mark.parametrize("value", ["12,5", "1,000", "nan", "inf", "1_000", "abc"])
    def test_parse_number_is_locale_invariant(self, value):
        with pytest.raises(ValueError):
            parse_number(value)

    @pytest.mark.parametrize("value", ["1e400", "-1e400"])
    def test_parse_number_rejects_values_beyond_float_range(self, value):
        with pytest.raises(ValueError):
            parse_number(value)


class TestDecoders:
    """Tests for per-table decoding."""

    def test_registry_covers_schedule_tables(self):
        assert set(DECODERS) == {"PROJECT", "CALENDAR", "PROJWBS", "TASK", "TASKPRED"}

    def test_maps_standard_file(self):
        mapped = map_tables(standard_tables(
            tasks=[task_row("1", "Excavate", 40, status="TK_Active", pct=50,
                            start="2024-01-01 08:00", finish="2024-01-05 16:00")],
            preds=[],
        ))

        assert mapped.project.source_id == "100"
        assert mapped.project.short_name == "TOWER-A"
        assert mapped.project.planned_start == date(2024, 1, 1)
        assert len(mapped.calendars) == 1
        assert [n.id for n in mapped.wbs_nodes] == ["1", "10"]
        assert mapped.wbs_nodes[0].is_project_node is True

        activity = mapped.activities[0]
        assert activity.id == "1"
        assert activity.code == "A1"
        assert activity.status == ActivityStatus.IN_PROGRESS
        assert activity.percent_complete == 50
        assert activity.duration_hours == 40
        assert activity.planned_finish == date(2024, 1, 5)

    @pytest.mark.parametrize("code,expected", [
        ("TK_NotStart", ActivityStatus.NOT_STARTED),
        ("TK_Active", ActivityStatus.IN_PROGRESS),
        ("TK_Complete", ActivityStatus.COMPLETED),
        ("TK_Suspended", ActivityStatus.NOT_STARTED),
    ])
    def test_status_codes(self, code, expected):
        mapped = map_tables(standard_tables(tasks=[task_row("1", "A", 8, status=code)]))
        assert mapped.activities[0].status == expected

    @pytest.mark.parametrize("code,expected", [
        ("PR_FS", RelationshipType.FINISH_TO_START),
        ("PR_SS", RelationshipType.START_TO_START),
        ("PR_FF", RelationshipType.FINISH_TO_FINISH),
        ("PR_SF", RelationshipType.START_TO_FINISH),
    ])
    def test_relationship_codes(self, code, expected):
        mapped = map_tables(standard_tables(
            tasks=[task_row("1", "A", 8), task_row("2", "B", 8)],
            preds=[pred_row("11", "2", "1", pred_type=code, lag=-8)],
        ))
        rel = mapped.relationships[0]
        assert rel.type == expected
        assert rel.predecessor_id == "1"
        assert rel.successor_id == "2"
        assert rel.lag_hours == -8

    def test_unknown_relationship_type_skips_row(self):
        mapped = map_tables(standard_tables(
            tasks=[task_row("1", "A", 8), task_row("2", "B", 8)],
            preds=[pred_row("11", "2", "1", pred_type="PR_XX")],
        ))
        assert mapped.relationships == []
        assert any(isinstance(w, RowDecodeWarning) and "PR_XX" in w.message for w in mapped.warnings)

    def test_constraint_is_decoded(self):
        fields = TASK_FIELDS + ["cstr_type", "cstr_date"]
        row = task_row("1", "A", 8) + ["CS_SNET", "2024-02-01 08:00"]
        mapped = map_tables({"TASK": (fields, [row])})
        activity = mapped.activities[0]
        assert activity.constraint_type == ConstraintType.START_ON_OR_AFTER
        assert activity.constraint_date == date(2024, 2, 1)

    def test_percent_complete_is_clamped(self):
        mapped = map_tables(standard_tables(tasks=[task_row("1", "A", 8, pct=130)]))
        assert mapped.activities[0].percent_complete == 100
        assert any(isinstance(w, ValueAdjustedWarning) for w in mapped.warnings)

    def test_first_of_several_projects_is_the_header(self):
        tables = standard_tables(tasks=[task_row("1", "A", 8)])
        tables["PROJECT"] = (PROJECT_FIELDS, [
            ["100", "TOWER-A", "2024-01-01 08:00", "", "", "1"],
            ["200", "TOWER-B", "2024-06-01 08:00", "", "", "1"],
        ])

        mapped = map_tables(tables)

        assert mapped.project.source_id == "100"
        assert mapped.project.planned_start == date(2024, 1, 1)
        warning = next(w for w in mapped.warnings if isinstance(w, MultipleProjectsWarning))
        assert warning.project_count == 2
        assert "TOWER-A" in warning.message


class TestMappingFailures:
    """Tests for per-row and per-table failures."""

    def test_bad_row_is_skipped_and_others_kept(self):
        mapped = map_tables(standard_tables(tasks=[
            task_row("1", "A", 8),
            task_row("2", "B", "eight"),
            task_row("3", "C", 8, start="not a date"),
        ]))
        assert [a.id for a in mapped.activities] == ["1"]
        decode_warnings = [w for w in mapped.warnings if isinstance(w, RowDecodeWarning)]
        assert len(decode_warnings) == 2
        assert decode_warnings[0].table == "TASK"

    def test_out_of_range_numbers_skip_row(self):
        tables = standard_tables(
            tasks=[task_row("1", "A", "1e400"), task_row("2", "B", 8)],
            wbs=[
                ["1", "100", "", "TWR", "Tower", "1", "Y"],
                ["10", "100", "1", "CIV", "Civil", "1e400", "N"],
                ["11", "100", "1", "MEP", "Services", "1e12", "N"],
            ],
        )

        mapped = map_tables(tables)

        assert [a.id for a in mapped.activities] == ["2"]
        assert [n.id for n in mapped.wbs_nodes] == ["1"]
        skipped = {w.table for w in mapped.warnings if isinstance(w, RowDecodeWarning)}
        assert skipped == {"TASK", "PROJWBS"}

    def test_blank_required_value_skips_row(self):
        mapped = map_tables(standard_tables(tasks=[task_row("", "No id", 8), task_row("2", "B", 8)]))
        assert [a.id for a in mapped.activities] == ["2"]

    def test_missing_required_column_skips_only_that_table(self):
        fields = [f for f in PRED_FIELDS if f != "pred_task_id"]
        tables = standard_tables(tasks=[task_row("1", "A", 8)])
        tables["TASKPRED"] = (fields, [["11", "1", "100", "PR_FS", "0"]])

        mapped = map_tables(tables)

        assert len(mapped.activities) == 1
        assert mapped.relationships == []
        assert len(mapped.table_errors) == 1
        assert mapped.table_errors[0].table == "TASKPRED"
        assert mapped.table_errors[0].column == "pred_task_id"
        assert any(isinstance(w, SkippedTableWarning) for w in mapped.warnings)

    def test_unknown_table_is_skipped_with_one_warning(self):
        tables = standard_tables(tasks=[task_row("1", "A", 8)])
        tables["UDFVALUE"] = (["udf_type_id", "fk_id"], [["1", "2"], ["1", "3"]])

        mapped = map_tables(tables)

        unknown = [w for w in mapped.warnings if isinstance(w, UnknownTableWarning)]
        assert len(unknown) == 1
        assert unknown[0].table == "UDFVALUE"
        assert unknown[0].row_count == 2

    def test_unknown_columns_are_ignored(self):
        fields = TASK_FIELDS + ["user_field_9"]
        mapped = map_tables({"TASK": (fields, [task_row("1", "A", 8) + ["x"]])})
        assert len(mapped.activities) == 1

    def test_missing_tables_are_reported(self):
        mapped = map_tables({"TASK": (TASK_FIELDS, [task_row("1", "A", 8)])})
        missing = {w.table for w in mapped.warnings if isinstance(w, MissingTableWarning)}
        assert missing == {"PROJECT", "PROJWBS", "TASKPRED"}
