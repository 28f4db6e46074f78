"""
Dashboard composition root.

Wires one remote service to the project catalog, the board engine of the
currently open project, and one conversation manager per task.
"""
import logging
from typing import Dict, Optional

from .board import BoardSyncEngine
from .catalog import ProjectCatalog
from .client import HttpRemoteService, RemoteService
from .config import Config
from .conversation import ConversationSessionManager, TaskContext
from .events import EventBus

logger = logging.getLogger(__name__)


class Dashboard:
    """
    Owns every stateful component for one client.

    Opening a different project tears down the previous board and its
    conversations; their late results are discarded.
    """

    def __init__(self, config: Optional[Config] = None,
                 service: Optional[RemoteService] = None):
        self.config = config or Config()
        self.service = service or HttpRemoteService(
            self.config.api_url, timeout=self.config.request_timeout
        )
        self.events = EventBus()
        self.catalog = ProjectCatalog(self.service, self.events)
        self.board: Optional[BoardSyncEngine] = None
        self._sessions: Dict[int, ConversationSessionManager] = {}

    async def open_project(self, project_id: int) -> BoardSyncEngine:
        """Make project_id the open board and load it."""
        if self.board is not None and self.board.project_id == project_id:
            await self.board.load()
            return self.board

        self._close_board()
        self.board = BoardSyncEngine(self.service, project_id, events=self.events)
        await self.board.load()
        return self.board

    def session_for(self, task_id: int) -> ConversationSessionManager:
        """
        Return the task's conversation manager, creating it on first use.

        The task's title, description and the project goal are copied
        into the manager when it is created.

        Raises:
            LookupError: no board is loaded or the task is not on it.
        """
        manager = self._sessions.get(task_id)
        if manager is not None:
            return manager

        project = self.board.store.project if self.board else None
        task = project.find_task(task_id) if project else None
        if task is None:
            raise LookupError(f"Task {task_id} is not on the open board")

        manager = ConversationSessionManager(
            self.service,
            TaskContext.from_task(task, goal=project.goal),
            events=self.events,
            guidance_prompt=self.config.guidance_prompt,
        )
        self._sessions[task_id] = manager
        return manager

    async def open_session(self, task_id: int) -> ConversationSessionManager:
        """Get the task's conversation and make sure it is loaded."""
        manager = self.session_for(task_id)
        await manager.open()
        return manager

    def close(self) -> None:
        self._close_board()
        self.service.close()

    def _close_board(self) -> None:
        if self.board is not None:
            logger.debug(f"Closing board for project {self.board.project_id}")
            self.board.close()
            self.board = None
        for manager in self._sessions.values():
            manager.close()
        self._sessions.clear()
