"""
Shared fixtures: an XER file builder and in-memory databases.
"""
import os

# Keep the module-level engine away from the working directory
os.environ.setdefault("SCHEDULE_DATABASE_URL", "sqlite://")

import uuid
from typing import Dict, List, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schedule_app.models import Base, Project


TASK_FIELDS = [
    "task_id", "proj_id", "wbs_id", "clndr_id", "task_code", "task_name", "status_code",
    "phys_complete_pct", "target_start_date", "target_end_date", "act_start_date", "act_end_date",
    "target_drtn_hr_cnt", "task_type",
]
PRED_FIELDS = ["task_pred_id", "task_id", "pred_task_id", "proj_id", "pred_type", "lag_hr_cnt"]
WBS_FIELDS = ["wbs_id", "proj_id", "parent_wbs_id", "wbs_short_name", "wbs_name", "seq_num", "proj_node_flag"]
PROJECT_FIELDS = ["proj_id", "proj_short_name", "plan_start_date", "plan_end_date", "last_recalc_date", "clndr_id"]
CALENDAR_FIELDS = ["clndr_id", "clndr_name", "default_flag", "day_hr_cnt", "clndr_data"]

# Monday-Friday 08:00-16:00, Saturday and Sunday off
STANDARD_CLNDR_DATA = (
    "(0||CalendarData()("
    "(0||DaysOfWeek()("
    "(0||1()())"
    "(0||2()((0||0(s|08:00|f|16:00)())))"
    "(0||3()((0||0(s|08:00|f|16:00)())))"
    "(0||4()((0||0(s|08:00|f|16:00)())))"
    "(0||5()((0||0(s|08:00|f|16:00)())))"
    "(0||6()((0||0(s|08:00|f|16:00)())))"
    "(0||7()())))"
    "(0||VIEW(ShowTotal|Y)())"
    "(0||Exceptions()())))"
)


def build_xer(tables: Dict[str, Sequence], header: bool = True, end: bool = True) -> bytes:
    """
    Render tables as XER bytes.

    Args:
        tables: {table_name: (fields, rows)} with rows as lists of strings
    """
    lines: List[str] = []
    if header:
        lines.append("ERMHDR\t19.12\t2024-01-15\tProject\tadmin\tAdmin\tdbxDatabaseNoName\tProject Management\tUSD")
    for name, (fields, rows) in tables.items():
        lines.append(f"%T\t{name}")
        lines.append("%F\t" + "\t".join(fields))
        for row in rows:
            lines.append("%R\t" + "\t".join(str(v) for v in row))
    if end:
        lines.append("%E")
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


def task_row(task_id, name, hours, wbs_id="10", status="TK_NotStart", pct=0,
             start="", finish="", clndr_id="1", task_type="TT_Task", actual_finish=""):
    return [task_id, "100", wbs_id, clndr_id, f"A{task_id}", name, status, pct,
            start, finish, "", actual_finish, hours, task_type]


def pred_row(pred_id, successor, predecessor, pred_type="PR_FS", lag=0):
    return [pred_id, successor, predecessor, "100", pred_type, lag]


def standard_tables(tasks, preds=(), wbs=None, plan_start="2024-01-01 08:00"):
    """PROJECT, CALENDAR and PROJWBS tables around the given TASK/TASKPRED rows."""
    wbs = wbs if wbs is not None else [
        ["1", "100", "", "TWR", "Tower", "1", "Y"],
        ["10", "100", "1", "CIV", "Civil", "1", "N"],
    ]
    return {
        "PROJECT": (PROJECT_FIELDS, [["100", "TOWER-A", plan_start, "", "2024-01-01 00:00", "1"]]),
        "CALENDAR": (CALENDAR_FIELDS, [["1", "Standard 5 Day", "Y", "8", STANDARD_CLNDR_DATA]]),
        "PROJWBS": (WBS_FIELDS, wbs),
        "TASK": (TASK_FIELDS, list(tasks)),
        "TASKPRED": (PRED_FIELDS, list(preds)),
    }


@pytest.fixture
def scenario_xer():
    """A(5d) -> B(3d) -> C(4d, FS lag 2d) on a Monday-Friday calendar starting Monday 2024-01-01."""
    return build_xer(standard_tables(
        tasks=[
            task_row("1", "Excavate", 40),
            task_row("2", "Form footings", 24),
            task_row("3", "Pour footings", 32),
        ],
        preds=[
            pred_row("11", "2", "1"),
            pred_row("12", "3", "2", lag=16),
        ],
    ))


@pytest.fixture
def cyclic_xer():
    """A -> B -> C -> A plus an unrelated D."""
    return build_xer(standard_tables(
        tasks=[
            task_row("1", "A", 8),
            task_row("2", "B", 8),
            task_row("3", "C", 8),
            task_row("4", "D", 8),
        ],
        preds=[
            pred_row("11", "2", "1"),
            pred_row("12", "3", "2"),
            pred_row("13", "1", "3"),
            pred_row("14", "4", "3"),
        ],
    ))


@pytest.fixture(scope="function")
def test_db():
    """Create a test database with fresh tables and one project."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()

    project = Project(
        uuid=str(uuid.uuid4()),
        name="Test Project",
        code="TEST-001"
    )
    session.add(project)
    session.commit()

    yield session, project

    session.close()
    engine.dispose()
