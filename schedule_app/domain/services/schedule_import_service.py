"""
Schedule Import Service - Runs the engine and persists its result.

Import flow:
1. Validate the upload (extension, size)
2. Check the target project exists
3. Run the engine (read, map, build network, CPM, progress)
4. Replace the project's schedule in one transaction under a per-project lock
"""
import logging
import os
import time
import uuid as uuid_lib
from datetime import date
from typing import BinaryIO, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schedule_app.config import ScheduleConfig, get_config
from schedule_app.domain.exceptions import (
    InvalidScheduleFileError,
    PersistenceError,
    ScheduleImportError,
    ScheduleNotFoundError,
)
from schedule_app.infrastructure.locks import ProjectLockRegistry, lock_project_row, project_locks
from schedule_app.infrastructure.repositories import ProjectRepository, ScheduleImportRepository
from schedule_app.models import (
    ScheduleActivity,
    ScheduleImport,
    ScheduleRelationship,
    ScheduleWBS,
)
from xer_engine import EngineError, EngineOptions, ScheduleResult, build_schedule

logger = logging.getLogger(__name__)


class ScheduleImportService:
    """
    Service for importing XER schedules into projects.

    Nothing is written unless the whole engine run succeeds, and a new
    import replaces the previous one atomically.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[ScheduleConfig] = None,
        locks: Optional[ProjectLockRegistry] = None,
    ):
        self.session = session
        self.config = config or get_config()
        self.locks = locks or project_locks
        self.project_repo = ProjectRepository(session)
        self.import_repo = ScheduleImportRepository(session)

    # =========================================================================
    # Import
    # =========================================================================

    def validate_upload(self, file_name: str, file_size: Optional[int]) -> None:
        """
        Reject uploads that cannot be XER files.

        Raises:
            InvalidScheduleFileError: Wrong extension, empty or too large
        """
        extension = os.path.splitext(file_name or "")[1].lower()
        if extension not in self.config.allowed_extensions:
            raise InvalidScheduleFileError("Invalid file type. Please upload an XER file.", file_name)
        if file_size is not None:
            if file_size == 0:
                raise InvalidScheduleFileError("Uploaded file is empty", file_name)
            if file_size > self.config.max_file_size_bytes:
                limit_mb = self.config.max_file_size_bytes // (1024 * 1024)
                raise InvalidScheduleFileError(f"File exceeds the {limit_mb} MB upload limit", file_name)

    def import_schedule(
        self,
        project_id: int,
        stream: BinaryIO,
        file_name: str,
        file_size: Optional[int] = None,
        as_of: Optional[date] = None,
    ) -> Dict:
        """
        Import an XER file as the project's schedule.

        Args:
            project_id: Target project
            stream: Binary stream positioned at the start of the file
            file_name: Original file name (extension is validated)
            file_size: Size in bytes, when known
            as_of: Date used for the project-start fallback and overdue counts

        Returns:
            Dict with message, importId, counts, xerProjectName and warnings

        Raises:
            InvalidScheduleFileError: Upload rejected before parsing
            ProjectNotFoundError: Unknown project
            ScheduleImportError: Engine rejected the file
            PersistenceError: Database write failed; nothing was written
        """
        started = time.perf_counter()
        self.validate_upload(file_name, file_size)
        self.project_repo.get_or_raise(project_id)

        options = EngineOptions.from_config(self.config, today=as_of)
        try:
            result = build_schedule(stream, options)
        except EngineError as e:
            logger.warning(f"Rejected schedule file {file_name} for project {project_id}: {e.message}")
            raise ScheduleImportError(e) from e

        warnings = result.warning_messages(limit=self.config.max_warnings)
        schedule_import = self._build_import(result, file_name, file_size, warnings)

        with self.locks.hold(project_id):
            try:
                lock_project_row(self.session, project_id)
                self.project_repo.get_or_raise(project_id)
                import_id = self.import_repo.replace_schedule(project_id, schedule_import)
                self.import_repo.commit()
            except SQLAlchemyError as e:
                self.import_repo.rollback()
                logger.error(f"Failed to persist schedule for project {project_id}: {e}")
                raise PersistenceError("import", str(e)) from e
            except Exception:
                self.import_repo.rollback()
                raise

        logger.info(
            f"Imported {file_name} into project {project_id} as import {import_id}: "
            f"{result.activities_count} activities, {result.relationships_count} relationships, "
            f"{result.wbs_count} WBS nodes, {len(result.warnings)} warnings "
            f"({time.perf_counter() - started:.2f}s)"
        )
        return {
            'message': 'Schedule imported successfully',
            'importId': import_id,
            'activitiesCount': result.activities_count,
            'relationshipsCount': result.relationships_count,
            'wbsCount': result.wbs_count,
            'xerProjectName': result.project_name,
            'warnings': warnings,
        }

    def _build_import(
        self,
        result: ScheduleResult,
        file_name: str,
        file_size: Optional[int],
        warnings: List[str],
    ) -> ScheduleImport:
        """Map the engine result onto unsaved ORM rows."""
        network = result.network
        header = network.project
        schedule_import = ScheduleImport(
            uuid=str(uuid_lib.uuid4()),
            file_name=file_name,
            file_size=file_size,
            xer_project_id=header.source_id if header else None,
            xer_project_name=result.project_name,
            data_date=header.data_date if header else None,
            project_start=result.cpm.project_start,
            project_finish=result.cpm.project_finish,
            overall_progress=result.progress.overall_progress,
            activities_count=result.activities_count,
            relationships_count=result.relationships_count,
            wbs_count=result.wbs_count,
            critical_path=list(result.cpm.critical_path.activity_ids),
            warnings=warnings,
        )

        parents = network.wbs_parent
        for position, node in enumerate(network.wbs_nodes):
            parent = parents[position]
            schedule_import.wbs_nodes.append(ScheduleWBS(
                wbs_id=node.id,
                parent_wbs_id=network.wbs_nodes[parent].id if parent is not None else None,
                name=node.name,
                short_name=node.short_name,
                sequence_number=node.sequence_number,
                depth=node.depth,
                percent_complete=round(node.percent_complete, 2),
                weight=node.weight,
                activity_count=node.activity_count,
                has_activities=node.has_activities,
            ))

        sort_order = {node: rank for rank, node in enumerate(result.cpm.order)}
        for position, activity in enumerate(network.activities):
            schedule_import.activities.append(ScheduleActivity(
                activity_id=activity.id,
                activity_code=activity.code,
                name=activity.name,
                wbs_id=activity.wbs_id,
                calendar_id=network.calendars[position].id,
                status=activity.status.value,
                activity_type=activity.activity_type or None,
                percent_complete=activity.percent_complete,
                duration_days=activity.duration,
                planned_start=activity.planned_start,
                planned_finish=activity.planned_finish,
                actual_start=activity.actual_start,
                actual_finish=activity.actual_finish,
                constraint_type=activity.constraint_type.value if activity.constraint_type else None,
                constraint_date=activity.constraint_date,
                early_start=activity.early_start,
                early_finish=activity.early_finish,
                late_start=activity.late_start,
                late_finish=activity.late_finish,
                total_float=activity.total_float,
                free_float=activity.free_float,
                is_critical=activity.is_critical,
                sort_order=sort_order.get(position, position),
            ))

        for rel in network.relationships:
            schedule_import.relationships.append(ScheduleRelationship(
                predecessor_activity_id=rel.predecessor_id,
                successor_activity_id=rel.successor_id,
                relationship_type=rel.type.value,
                lag_days=rel.lag,
            ))
        return schedule_import

    # =========================================================================
    # Delete and Read
    # =========================================================================

    def delete_schedule(self, project_id: int) -> int:
        """
        Delete the project's schedule.

        Returns:
            Number of imports removed
        """
        self.project_repo.get_or_raise(project_id)
        with self.locks.hold(project_id):
            try:
                lock_project_row(self.session, project_id)
                deleted = self.import_repo.delete_schedule(project_id)
                self.import_repo.commit()
            except SQLAlchemyError as e:
                self.import_repo.rollback()
                logger.error(f"Failed to delete schedule for project {project_id}: {e}")
                raise PersistenceError("delete", str(e)) from e
        logger.info(f"Deleted {deleted} schedule import(s) for project {project_id}")
        return deleted

    def get_summary(self, project_id: int) -> Dict:
        self.project_repo.get_or_raise(project_id)
        return self.import_repo.get_schedule_summary(project_id)

    def _current_import(self, project_id: int) -> ScheduleImport:
        self.project_repo.get_or_raise(project_id)
        current = self.import_repo.get_current(project_id)
        if current is None:
            raise ScheduleNotFoundError(project_id)
        return current

    def get_activities(self, project_id: int, critical_only: bool = False) -> List[ScheduleActivity]:
        return self.import_repo.get_activities(self._current_import(project_id).id, critical_only)

    def get_wbs(self, project_id: int) -> List[ScheduleWBS]:
        return self.import_repo.get_wbs(self._current_import(project_id).id)

    def get_relationships(self, project_id: int) -> List[ScheduleRelationship]:
        """Resolved predecessor links of the current import, in file order."""
        return self.import_repo.get_relationships(self._current_import(project_id).id)

    def get_critical_path(self, project_id: int) -> List[ScheduleActivity]:
        return self.import_repo.get_critical_path(self._current_import(project_id).id)
