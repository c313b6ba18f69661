"""
Per-project import locks.

Imports for the same project are serialized; imports for different projects
never wait on each other. Inside one process a threading.Lock per project
does the work. On PostgreSQL the transaction also takes a transaction-scoped
advisory lock and locks the project row, which covers multiple workers.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict

from sqlalchemy import text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class ProjectLockRegistry:
    """Hands out one lock per project id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def lock_for(self, project_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[project_id] = lock
            return lock

    @contextmanager
    def hold(self, project_id: int):
        lock = self.lock_for(project_id)
        if not lock.acquire(blocking=False):
            logger.info(f"Waiting for schedule lock on project {project_id}")
            lock.acquire()
        try:
            yield
        finally:
            lock.release()


project_locks = ProjectLockRegistry()


def lock_project_row(session: Session, project_id: int) -> None:
    """Take database-level locks for the rest of the current transaction."""
    if session.get_bind().dialect.name != "postgresql":
        return
    session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": project_id})
    session.execute(text("SELECT id FROM projects WHERE id = :id FOR UPDATE"), {"id": project_id})
