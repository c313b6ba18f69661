"""
Schedule Import Repository - Data access for imported schedules.

Implements the persistence side of an import:
- Replacing a project's schedule inside the caller's transaction
- Deleting a project's schedule and everything it owns
- Read-side summary, activity, WBS and critical-path queries
"""
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from schedule_app.models import (
    Project,
    ScheduleActivity,
    ScheduleImport,
    ScheduleRelationship,
    ScheduleWBS,
)
from .base_repository import BaseRepository

CHILD_MODELS = (ScheduleActivity, ScheduleRelationship, ScheduleWBS)


class ScheduleImportRepository(BaseRepository[ScheduleImport]):
    """
    Repository for ScheduleImport entities and their children.

    Write methods flush but never commit; the service owns the transaction.
    """

    def __init__(self, session: Session):
        super().__init__(session, ScheduleImport)

    def exists(self, **criteria) -> bool:
        """Check if a ScheduleImport matching the criteria exists."""
        query = self.session.query(ScheduleImport)
        for field, value in criteria.items():
            query = query.filter(getattr(ScheduleImport, field) == value)
        return query.first() is not None

    def get_current(self, project_id: int) -> Optional[ScheduleImport]:
        """Get the import the project's current-schedule pointer refers to."""
        project = self.session.query(Project).filter(Project.id == project_id).first()
        if project is None or project.current_schedule_import_id is None:
            return None
        return self.get_by_id(project.current_schedule_import_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def replace_schedule(self, project_id: int, import_data: ScheduleImport) -> int:
        """
        Replace the project's schedule with a new import.

        Removes every prior import for the project, writes the new import
        with its children and moves the project's pointer to it. All of it
        happens in the current transaction.

        Args:
            project_id: Target project
            import_data: Unsaved ScheduleImport with children attached

        Returns:
            Database id of the new import
        """
        self.delete_schedule(project_id)

        import_data.project_id = project_id
        for child in list(import_data.activities) + list(import_data.relationships) + list(import_data.wbs_nodes):
            child.project_id = project_id
        self.add(import_data)
        self.flush()

        self.session.query(Project).filter(Project.id == project_id).update(
            {Project.current_schedule_import_id: import_data.id},
            synchronize_session="fetch",
        )
        self.flush()
        return import_data.id

    def delete_schedule(self, project_id: int) -> int:
        """
        Delete all imports for a project and the rows they own.

        Returns:
            Number of imports deleted
        """
        self.session.query(Project).filter(Project.id == project_id).update(
            {Project.current_schedule_import_id: None},
            synchronize_session="fetch",
        )

        import_ids = [
            row.id for row in
            self.session.query(ScheduleImport.id).filter(ScheduleImport.project_id == project_id).all()
        ]
        if not import_ids:
            return 0

        for model in CHILD_MODELS:
            self.session.query(model).filter(model.import_id.in_(import_ids)).delete(synchronize_session=False)
        self.session.query(ScheduleImport).filter(ScheduleImport.id.in_(import_ids)).delete(
            synchronize_session=False
        )
        self.flush()
        self.session.expire_all()
        return len(import_ids)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_activities(self, import_id: int, critical_only: bool = False) -> List[ScheduleActivity]:
        query = self.session.query(ScheduleActivity).filter(ScheduleActivity.import_id == import_id)
        if critical_only:
            query = query.filter(ScheduleActivity.is_critical.is_(True))
        return query.order_by(ScheduleActivity.wbs_id, ScheduleActivity.sort_order).all()

    def get_wbs(self, import_id: int) -> List[ScheduleWBS]:
        return self.session.query(ScheduleWBS).filter(
            ScheduleWBS.import_id == import_id
        ).order_by(ScheduleWBS.depth, ScheduleWBS.sequence_number, ScheduleWBS.id).all()

    def get_relationships(self, import_id: int) -> List[ScheduleRelationship]:
        return self.session.query(ScheduleRelationship).filter(
            ScheduleRelationship.import_id == import_id
        ).order_by(ScheduleRelationship.id).all()

    def get_critical_path(self, import_id: int) -> List[ScheduleActivity]:
        """Critical-path activities in path order."""
        schedule_import = self.get_by_id(import_id)
        if schedule_import is None or not schedule_import.critical_path:
            return []
        by_id = {
            a.activity_id: a for a in self.session.query(ScheduleActivity).filter(
                ScheduleActivity.import_id == import_id,
                ScheduleActivity.activity_id.in_(schedule_import.critical_path),
            ).all()
        }
        return [by_id[aid] for aid in schedule_import.critical_path if aid in by_id]

    def get_schedule_summary(self, project_id: int) -> Dict:
        """
        Get the latest import and activity statistics for a project.

        Returns:
            Dict with 'latestImport' (or None) and 'stats'
        """
        latest = self.get_current(project_id)
        stats = {
            'totalActivities': 0,
            'completedActivities': 0,
            'inProgressActivities': 0,
            'notStartedActivities': 0,
            'criticalActivities': 0,
            'overallProgress': 0.0,
        }
        if latest is None:
            return {'latestImport': None, 'stats': stats, 'dateRange': None}

        counts = dict(
            self.session.query(ScheduleActivity.status, func.count(ScheduleActivity.id))
            .filter(ScheduleActivity.import_id == latest.id)
            .group_by(ScheduleActivity.status)
            .all()
        )
        critical = self.session.query(func.count(ScheduleActivity.id)).filter(
            ScheduleActivity.import_id == latest.id,
            ScheduleActivity.is_critical.is_(True),
        ).scalar()

        stats.update({
            'totalActivities': sum(counts.values()),
            'completedActivities': counts.get('Completed', 0),
            'inProgressActivities': counts.get('InProgress', 0),
            'notStartedActivities': counts.get('NotStarted', 0),
            'criticalActivities': critical or 0,
            'overallProgress': round(latest.overall_progress or 0.0, 1),
        })
        return {
            'latestImport': {
                'id': latest.id,
                'uuid': latest.uuid,
                'fileName': latest.file_name,
                'fileSize': latest.file_size,
                'xerProjectId': latest.xer_project_id,
                'xerProjectName': latest.xer_project_name,
                'dataDate': latest.data_date.isoformat() if latest.data_date else None,
                'importedAt': latest.imported_at.isoformat() if latest.imported_at else None,
                'activitiesCount': latest.activities_count,
                'relationshipsCount': latest.relationships_count,
                'wbsCount': latest.wbs_count,
                'warnings': latest.warnings or [],
            },
            'stats': stats,
            'dateRange': {
                'start': latest.project_start.isoformat() if latest.project_start else None,
                'finish': latest.project_finish.isoformat() if latest.project_finish else None,
            },
        }
