"""
Per-task assistant conversations.

One ConversationSessionManager per task. The server is the only
sequencer: after every exchange the local message list is replaced by
the server's list, never appended to. A session is seeded with a
guidance request the first time it is opened empty, and again right
after it is cleared.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from .client import RemoteService, RemoteServiceError
from .events import (
    CONVERSATION_CLEARED,
    CONVERSATION_FAILED,
    CONVERSATION_STATE_CHANGED,
    EventBus,
)
from .observable import Observable
from .schema import ChatMessage, Task

logger = logging.getLogger(__name__)

DEFAULT_GUIDANCE_PROMPT = (
    'I am working on the task "{title}". '
    "Give me detailed, step-by-step guidance on how to complete it."
)


@dataclass(frozen=True)
class TaskContext:
    """Snapshot of the task a session talks about, taken at open time."""
    task_id: int
    title: str
    description: str = ""
    goal: str = ""

    @classmethod
    def from_task(cls, task: Task, goal: str = "") -> "TaskContext":
        return cls(task_id=task.id, title=task.title, description=task.description, goal=goal)


@dataclass(frozen=True)
class ConversationSession:
    """Observable state of one conversation."""
    task_id: int
    messages: Tuple[ChatMessage, ...] = ()
    loading: bool = False   # Initial fetch in flight
    sending: bool = False   # Seed / send / clear in flight
    loaded: bool = False    # Holds the server's list (set once non-empty)

    @property
    def busy(self) -> bool:
        return self.loading or self.sending


class ConversationSessionManager:
    """Owns the conversation for a single task."""

    def __init__(self, service: RemoteService, context: TaskContext,
                 events: Optional[EventBus] = None,
                 guidance_prompt: str = DEFAULT_GUIDANCE_PROMPT):
        self.service = service
        self.context = context
        self.events = events or EventBus()
        self.guidance_template = guidance_prompt
        self._state: Observable[ConversationSession] = Observable(
            ConversationSession(task_id=context.task_id)
        )
        self._closed = False

    @property
    def task_id(self) -> int:
        return self.context.task_id

    @property
    def session(self) -> ConversationSession:
        return self._state.value

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: Callable[[ConversationSession], None]) -> Callable[[], None]:
        return self._state.subscribe(callback)

    def close(self) -> None:
        """Tear down: results of calls still in flight will be dropped."""
        self._closed = True

    def guidance_prompt(self) -> str:
        """The synthesized first user turn."""
        return self.guidance_template.format(
            title=self.context.title,
            description=self.context.description,
            goal=self.context.goal,
        )

    # ──────────────────────────────────────────
    # Operations
    # ──────────────────────────────────────────

    async def open(self) -> bool:
        """
        Load the conversation when it becomes visible.

        No-op (returns False) if already loaded or an exchange is in
        flight. An empty conversation is seeded immediately. Returns True
        if the session ends up holding the server's messages.
        """
        if self._closed or self.session.loaded or self.session.busy:
            return False

        self._update(loading=True)
        try:
            messages = await self.service.fetch_conversation(self.task_id)
        except RemoteServiceError as e:
            if self._closed:
                return False
            self._update(loading=False)
            self._fail("open", e)
            return False

        if self._closed:
            return False
        if messages:
            self._update(messages=tuple(messages), loading=False, loaded=True)
            return True

        prompt = self._build_prompt("seed")
        if prompt is None:
            self._update(loading=False)
            return False
        # Hand over from loading to sending without an await in between
        self._update(loading=False, sending=True)
        return await self._exchange("seed", prompt)

    async def seed(self) -> bool:
        """Send the guidance request and adopt the server's reply."""
        if self._closed or self.session.busy:
            logger.debug(f"Seed of task {self.task_id} refused: exchange in flight")
            return False
        prompt = self._build_prompt("seed")
        if prompt is None:
            return False
        self._update(sending=True)
        return await self._exchange("seed", prompt)

    async def send(self, text: str) -> bool:
        """Submit a follow-up user turn. Blank text or a busy session is a no-op."""
        if not text or not text.strip():
            return False
        if self._closed or self.session.busy:
            return False
        self._update(sending=True)
        return await self._exchange("send", text.strip())

    async def clear(self) -> bool:
        """
        Delete the conversation remotely, then reseed it.

        Returns True once the fresh guidance turn has arrived.
        """
        if self._closed or self.session.busy:
            return False
        prompt = self._build_prompt("clear")
        if prompt is None:
            return False

        self._update(sending=True)
        try:
            await self.service.clear_conversation(self.task_id)
        except RemoteServiceError as e:
            if self._closed:
                return False
            self._update(sending=False)
            self._fail("clear", e)
            return False

        if self._closed:
            return False
        self._update(messages=(), loaded=False)
        logger.info(f"Conversation for task {self.task_id} cleared")
        self.events.emit(CONVERSATION_CLEARED, task_id=self.task_id)
        return await self._exchange("seed", prompt)

    # ──────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────

    async def _exchange(self, operation: str, text: str) -> bool:
        """Send one user turn. The sending flag must already be set."""
        try:
            messages = await self.service.send_message(self.task_id, text)
        except RemoteServiceError as e:
            if self._closed:
                return False
            self._update(sending=False)
            self._fail(operation, e)
            return False

        if self._closed:
            logger.debug(f"Session for task {self.task_id} closed, dropping {operation} reply")
            return False
        self._update(messages=tuple(messages), sending=False, loaded=True)
        return True

    def _build_prompt(self, operation: str) -> Optional[str]:
        """Format the guidance prompt, reporting a broken template as a failure."""
        try:
            return self.guidance_prompt()
        except (KeyError, IndexError, ValueError) as e:
            logger.error(f"Guidance prompt for task {self.task_id} cannot be built: {e!r}")
            self.events.emit(CONVERSATION_FAILED, task_id=self.task_id, operation=operation, error=e)
            return None

    def _update(self, **changes) -> None:
        old = self._state.value
        new = replace(old, **changes)
        self._state.set(new)
        if (old.loading, old.sending) != (new.loading, new.sending):
            self.events.emit(
                CONVERSATION_STATE_CHANGED,
                task_id=self.task_id,
                loading=new.loading,
                sending=new.sending,
            )

    def _fail(self, operation: str, error: RemoteServiceError) -> None:
        logger.warning(f"Conversation {operation} failed for task {self.task_id}: {error}")
        self.events.emit(CONVERSATION_FAILED, task_id=self.task_id, operation=operation, error=error)
