"""
Entity store: the one currently-loaded project, or none.

A cache of the remote source of truth. Writes are whole-project
replacements; the only field-level write is a single task's status,
used for the optimistic window of a board move.
"""
import logging
from typing import Callable, Dict, List, Optional

from .observable import Observable
from .schema import Project, Task, TaskStatus

logger = logging.getLogger(__name__)


class EntityStore:
    """In-memory holder for a single loaded project."""

    def __init__(self):
        self._state: Observable[Optional[Project]] = Observable(None)

    @property
    def project(self) -> Optional[Project]:
        return self._state.value

    @property
    def is_loaded(self) -> bool:
        return self._state.value is not None

    def subscribe(self, callback: Callable[[Optional[Project]], None]) -> Callable[[], None]:
        """Notified with the new project (or None) after every write."""
        return self._state.subscribe(callback)

    def replace(self, project: Optional[Project]) -> None:
        """Swap in a freshly fetched project wholesale."""
        self._state.set(project)

    def clear(self) -> None:
        self._state.set(None)

    def find_task(self, task_id: int) -> Optional[Task]:
        project = self._state.value
        if project is None:
            return None
        return project.find_task(task_id)

    def set_task_status(self, task_id: int, status: TaskStatus) -> Optional[TaskStatus]:
        """
        Replace one task's status, leaving every other field and task alone.

        Returns the previous status, or None if nothing is loaded or the
        task does not exist (in which case nothing is written).
        """
        project = self._state.value
        if project is None:
            return None
        task = project.find_task(task_id)
        if task is None:
            return None
        self._state.set(project.with_task_status(task_id, status))
        logger.debug(f"Task {task_id} status {task.status.value} -> {status.value} (local)")
        return task.status

    def columns(self) -> Dict[TaskStatus, List[Task]]:
        """Tasks grouped by board column; empty columns when nothing is loaded."""
        project = self._state.value
        if project is None:
            return {s: [] for s in TaskStatus}
        return project.tasks_by_status()
