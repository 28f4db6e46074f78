"""
Project catalog: the list of all projects, with create and delete.

Every mutation is followed by a full refresh of the list.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from .client import RemoteService, RemoteServiceError
from .events import CATALOG_FAILED, EventBus
from .observable import Observable
from .schema import Project, ProjectDraft

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogState:
    projects: Tuple[Project, ...] = ()
    loading: bool = False


class ProjectCatalog:
    """Observable project list backed by the remote service."""

    def __init__(self, service: RemoteService, events: Optional[EventBus] = None):
        self.service = service
        self.events = events or EventBus()
        self._state: Observable[CatalogState] = Observable(CatalogState())

    @property
    def state(self) -> CatalogState:
        return self._state.value

    @property
    def projects(self) -> Tuple[Project, ...]:
        return self._state.value.projects

    def subscribe(self, callback: Callable[[CatalogState], None]) -> Callable[[], None]:
        return self._state.subscribe(callback)

    async def refresh(self) -> bool:
        """Reload the whole list. On failure the old list stays."""
        self._state.set(replace(self.state, loading=True))
        try:
            projects = await self.service.list_projects()
        except RemoteServiceError as e:
            self._state.set(replace(self.state, loading=False))
            self._fail("refresh", e)
            return False
        self._state.set(CatalogState(projects=tuple(projects), loading=False))
        return True

    async def create(self, draft: ProjectDraft) -> Optional[Project]:
        """
        Validate and create a project, then refresh.

        Raises:
            ValidationError: the draft is invalid (nothing is sent).
        """
        draft = draft.validate()
        try:
            project = await self.service.create_project(draft)
        except RemoteServiceError as e:
            self._fail("create", e)
            return None
        logger.info(f"Created project {project.id}: {project.title}")
        await self.refresh()
        return project

    async def delete(self, project_id: int) -> bool:
        """Delete a project, then refresh."""
        try:
            await self.service.delete_project(project_id)
        except RemoteServiceError as e:
            self._fail("delete", e)
            return False
        logger.info(f"Deleted project {project_id}")
        await self.refresh()
        return True

    def _fail(self, operation: str, error: RemoteServiceError) -> None:
        logger.warning(f"Project catalog {operation} failed: {error}")
        self.events.emit(CATALOG_FAILED, operation=operation, error=error)
