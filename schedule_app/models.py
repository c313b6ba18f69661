"""
Database models and SQLAlchemy setup for the Schedule Import service.

Schedule rows are owned by a ScheduleImport; replacing or deleting an
import removes every row it owns. Integer keys use AUTOINCREMENT so ids
from a replaced import are never handed out again.
"""
from datetime import datetime
from sqlalchemy import (
    create_engine, Column, Integer, String, Float, Boolean,
    DateTime, Date, Text, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

from schedule_app.config import get_config

DATABASE_URL = get_config().database_url
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# =============================================================================
# Project
# =============================================================================

class Project(Base):
    """
    Project that schedules are imported into.
    current_schedule_import_id points at the live import and is swapped in
    the same transaction that writes a new one.
    """
    __tablename__ = "projects"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False)  # External UUID
    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    current_schedule_import_id = Column(
        Integer,
        ForeignKey("schedule_imports.id", use_alter=True, name="fk_projects_current_schedule_import", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    schedule_imports = relationship(
        "ScheduleImport",
        back_populates="project",
        foreign_keys="ScheduleImport.project_id",
        cascade="all, delete-orphan",
    )
    current_schedule_import = relationship(
        "ScheduleImport",
        foreign_keys=[current_schedule_import_id],
        post_update=True,
    )


# =============================================================================
# Schedule Import
# =============================================================================

class ScheduleImport(Base):
    """One imported XER file and the schedule computed from it."""
    __tablename__ = "schedule_imports"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)  # Bytes
    xer_project_id = Column(String(50), nullable=True)  # PROJECT.proj_id
    xer_project_name = Column(String(200), nullable=True)  # PROJECT.proj_short_name
    data_date = Column(Date, nullable=True)  # PROJECT.last_recalc_date
    project_start = Column(Date, nullable=True)  # Earliest early start
    project_finish = Column(Date, nullable=True)  # Latest early finish
    overall_progress = Column(Float, default=0.0)  # Duration-weighted percent
    activities_count = Column(Integer, default=0)
    relationships_count = Column(Integer, default=0)
    wbs_count = Column(Integer, default=0)
    critical_path = Column(JSON, default=list)  # Ordered source activity ids
    warnings = Column(JSON, default=list)
    imported_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="schedule_imports", foreign_keys=[project_id])
    wbs_nodes = relationship("ScheduleWBS", back_populates="schedule_import", cascade="all, delete-orphan")
    activities = relationship("ScheduleActivity", back_populates="schedule_import", cascade="all, delete-orphan")
    relationships = relationship("ScheduleRelationship", back_populates="schedule_import", cascade="all, delete-orphan")


class ScheduleWBS(Base):
    """WBS node with its duration-weighted roll-up."""
    __tablename__ = "schedule_wbs"
    __table_args__ = (
        UniqueConstraint("import_id", "wbs_id", name="uq_schedule_wbs_import_wbs"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    import_id = Column(Integer, ForeignKey("schedule_imports.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    wbs_id = Column(String(50), nullable=False)  # PROJWBS.wbs_id
    parent_wbs_id = Column(String(50), nullable=True)  # None = root
    name = Column(String(500), nullable=False)
    short_name = Column(String(100), nullable=True)
    sequence_number = Column(Integer, default=0)
    depth = Column(Integer, default=0)
    percent_complete = Column(Float, default=0.0)
    weight = Column(Float, default=0.0)  # Sum of descendant durations
    activity_count = Column(Integer, default=0)
    has_activities = Column(Boolean, default=False)

    schedule_import = relationship("ScheduleImport", back_populates="wbs_nodes")


class ScheduleActivity(Base):
    """Activity with planned, actual and computed CPM dates."""
    __tablename__ = "schedule_activities"
    __table_args__ = (
        UniqueConstraint("import_id", "activity_id", name="uq_schedule_activity_import_activity"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    import_id = Column(Integer, ForeignKey("schedule_imports.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    activity_id = Column(String(50), nullable=False)  # TASK.task_id
    activity_code = Column(String(100), nullable=True)  # TASK.task_code
    name = Column(String(500), nullable=False)
    wbs_id = Column(String(50), nullable=True, index=True)
    calendar_id = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="NotStarted")
    activity_type = Column(String(30), nullable=True)
    percent_complete = Column(Float, default=0.0)
    duration_days = Column(Integer, default=0)  # Working days
    planned_start = Column(Date, nullable=True)
    planned_finish = Column(Date, nullable=True)
    actual_start = Column(Date, nullable=True)
    actual_finish = Column(Date, nullable=True)
    constraint_type = Column(String(20), nullable=True)
    constraint_date = Column(Date, nullable=True)

    # CPM results
    early_start = Column(Date, nullable=True)
    early_finish = Column(Date, nullable=True)
    late_start = Column(Date, nullable=True)
    late_finish = Column(Date, nullable=True)
    total_float = Column(Integer, nullable=True)  # Working days, may be negative
    free_float = Column(Integer, nullable=True)
    is_critical = Column(Boolean, default=False, index=True)
    sort_order = Column(Integer, default=0)  # Topological position

    schedule_import = relationship("ScheduleImport", back_populates="activities")


class ScheduleRelationship(Base):
    """Dependency between two activities of the same import."""
    __tablename__ = "schedule_relationships"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    import_id = Column(Integer, ForeignKey("schedule_imports.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    predecessor_activity_id = Column(String(50), nullable=False)
    successor_activity_id = Column(String(50), nullable=False)
    relationship_type = Column(String(20), nullable=False)  # FinishToStart, StartToStart, ...
    lag_days = Column(Integer, default=0)  # Negative = lead

    schedule_import = relationship("ScheduleImport", back_populates="relationships")


def init_db():
    """Initialize the database and create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Database session dependency for FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
