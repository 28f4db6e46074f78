"""
Board synchronization engine.

Turns "task released over a target" into a status change:

  resolve target → optimistic local write → remote mutation → reload

Every outcome, success or failure, ends in a full reload of the project
so server-side effects (re-estimates, deadline shifts, project
completion) always replace the local guess. Nothing is retried.
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from .client import RemoteService, RemoteServiceError
from .events import (
    EventBus,
    PROJECT_LOADED,
    PROJECT_LOAD_FAILED,
    STATUS_UPDATE_FAILED,
    TASK_MOVED,
    TIMELINE_ADJUSTED,
    format_timeline_notice,
)
from .schema import ColumnTarget, DropTarget, TaskStatus, TaskTarget
from .store import EntityStore

logger = logging.getLogger(__name__)


class DropResult(Enum):
    """Outcome of one apply_drop() call."""
    IGNORED = "ignored"          # Task or target could not be resolved
    UNCHANGED = "unchanged"      # Task already sits in the target column
    COMMITTED = "committed"      # Service accepted the change
    ROLLED_BACK = "rolled_back"  # Service rejected it; ground truth restored
    DISCARDED = "discarded"      # Engine closed before the call finished


class BoardSyncEngine:
    """
    Owns the entity store for one project and applies board moves to it.

    Moves of different tasks run independently. Moves of the same task
    are serialized: a second drop waits until the first has reconciled,
    then resolves against the reloaded state. Reload results are applied
    in the order the reloads were issued, so a slow, older reload never
    overwrites a newer one.
    """

    def __init__(self, service: RemoteService, project_id: int,
                 store: Optional[EntityStore] = None,
                 events: Optional[EventBus] = None):
        self.service = service
        self.project_id = project_id
        self.store = store or EntityStore()
        self.events = events or EventBus()
        self._task_locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}  # Drops holding or awaiting each lock
        self._reload_seq = 0      # Last reload issued
        self._applied_seq = 0     # Last reload written to the store
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Tear down: results of calls still in flight will be dropped."""
        self._closed = True

    # ──────────────────────────────────────────
    # Loading
    # ──────────────────────────────────────────

    async def load(self) -> bool:
        """
        Fetch the project and replace the store wholesale.

        Returns True if the store now holds data at least as fresh as this
        fetch. On failure the store is left as it was and
        project_load_failed is emitted.
        """
        if self._closed:
            return False

        self._reload_seq += 1
        seq = self._reload_seq
        try:
            project = await self.service.fetch_project(self.project_id)
        except RemoteServiceError as e:
            if self._closed:
                return False
            logger.warning(f"Failed to load project {self.project_id}: {e}")
            self.events.emit(PROJECT_LOAD_FAILED, project_id=self.project_id, error=e)
            return False

        if self._closed:
            logger.debug(f"Engine closed, dropping reload #{seq} of project {self.project_id}")
            return False
        if seq < self._applied_seq:
            logger.debug(f"Reload #{seq} superseded by #{self._applied_seq}, dropping")
            return True

        self._applied_seq = seq
        self.store.replace(project)
        self.events.emit(PROJECT_LOADED, project=project)
        return True

    # ──────────────────────────────────────────
    # Drops
    # ──────────────────────────────────────────

    def resolve_target(self, target: Optional[DropTarget]) -> Optional[TaskStatus]:
        """Map a drop target to a concrete status, or None if it can't be resolved."""
        if isinstance(target, ColumnTarget):
            return target.status
        if isinstance(target, TaskTarget):
            over = self.store.find_task(target.task_id)
            return over.status if over else None
        return None

    async def apply_drop(self, task_id: int, target: Optional[DropTarget]) -> DropResult:
        """Process a drag-release of task_id over target."""
        if self._closed:
            return DropResult.IGNORED

        lock = self._task_locks.setdefault(task_id, asyncio.Lock())
        self._lock_users[task_id] = self._lock_users.get(task_id, 0) + 1
        try:
            async with lock:
                if self._closed:
                    return DropResult.IGNORED
                return await self._apply_drop(task_id, target)
        finally:
            self._lock_users[task_id] -= 1
            if not self._lock_users[task_id]:
                del self._lock_users[task_id]
                del self._task_locks[task_id]

    async def move(self, task_id: int, status: TaskStatus) -> DropResult:
        """Shortcut for dropping a task onto a column."""
        return await self.apply_drop(task_id, ColumnTarget(status))

    async def _apply_drop(self, task_id: int, target: Optional[DropTarget]) -> DropResult:
        new_status = self.resolve_target(target)
        if new_status is None:
            logger.debug(f"Drop of task {task_id}: unresolved target {target!r}")
            return DropResult.IGNORED

        task = self.store.find_task(task_id)
        if task is None:
            logger.debug(f"Drop of unknown task {task_id} ignored")
            return DropResult.IGNORED
        if task.status == new_status:
            return DropResult.UNCHANGED

        # ── Optimistic phase ──
        old_status = self.store.set_task_status(task_id, new_status)
        logger.info(f"Task {task_id}: {old_status.value} -> {new_status.value} (pending)")
        self.events.emit(TASK_MOVED, task_id=task_id, old_status=old_status, new_status=new_status)

        # ── Remote phase ──
        try:
            result = await self.service.update_task_status(task_id, new_status)
        except RemoteServiceError as e:
            if self._closed:
                return DropResult.DISCARDED
            logger.warning(f"Failed to update task {task_id}: {e}")
            await self._rollback(task_id, old_status, new_status)
            self.events.emit(STATUS_UPDATE_FAILED, task_id=task_id, error=e)
            return DropResult.ROLLED_BACK

        if self._closed:
            return DropResult.DISCARDED

        # ── Reconciliation ──
        update = result.timeline_update
        if update is not None:
            logger.info(
                f"Timeline adjusted after task {task_id}: "
                f"deadline {update.old_deadline} -> {update.new_deadline}"
            )
            self.events.emit(
                TIMELINE_ADJUSTED,
                task_id=task_id,
                update=update,
                notice=format_timeline_notice(update),
            )

        await self.load()
        return DropResult.DISCARDED if self._closed else DropResult.COMMITTED

    async def _rollback(self, task_id: int, old_status: TaskStatus, new_status: TaskStatus) -> None:
        """Restore ground truth after a rejected mutation."""
        if await self.load() or self._closed:
            return
        # Reload failed as well: undo our own write unless something replaced it
        current = self.store.find_task(task_id)
        if current is not None and current.status == new_status:
            self.store.set_task_status(task_id, old_status)
            logger.info(f"Task {task_id}: reverted to {old_status.value} locally")
