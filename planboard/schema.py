"""
Project / task / conversation schema.

Board columns:
  Pending → In Progress → Completed, plus Blocked

Any status may move to any other; whether a move is allowed is decided
by the remote service, never here. Every record is immutable: changes
produce a new instance via dataclasses.replace().
"""
import re
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime, date
from typing import Optional, List, Dict, Any, Tuple, Union


class ValidationError(Exception):
    """Raised when user-supplied data fails validation."""
    pass


class TaskStatus(Enum):
    """Board columns a task can sit in."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"

    @classmethod
    def from_str(cls, value: str) -> "TaskStatus":
        """Parse a status string (value or name, any case)."""
        key = (value or "").strip().lower().replace("-", "_")
        for status in cls:
            if status.value == key:
                return status
        raise ValidationError(f"Unknown task status: {value!r}")


# Column order used when rendering the board
COLUMN_ORDER: Tuple[TaskStatus, ...] = (
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.BLOCKED,
)


class ProjectStatus(Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"

    @classmethod
    def from_str(cls, value: str) -> "ProjectStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.PLANNING


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; trailing 'Z' is accepted."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tasks & projects
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class Task:
    """A single unit of work inside a project."""

    id: int
    title: str
    description: str = ""
    estimated_days: float = 0
    actual_days: Optional[float] = None   # Set once work is recorded
    status: TaskStatus = TaskStatus.PENDING
    order: int = 0                        # Unique within a project only
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def with_status(self, status: TaskStatus) -> "Task":
        """Copy of this task with only the status changed."""
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "estimated_days": self.estimated_days,
            "actual_days": self.actual_days,
            "status": self.status.value,
            "order": self.order,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description") or "",
            estimated_days=max(data.get("estimated_days") or 0, 0),
            actual_days=data.get("actual_days"),
            status=TaskStatus.from_str(data.get("status", "pending")),
            order=data.get("order", 0),
            started_at=parse_timestamp(data.get("started_at")),
            completed_at=parse_timestamp(data.get("completed_at")),
        )


@dataclass(frozen=True)
class Project:
    """A project with its ordered task list, as returned by the service."""

    id: int
    title: str
    goal: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING
    start_date: Optional[str] = None
    deadline: Optional[str] = None
    total_estimated_days: float = 0
    actual_days_spent: float = 0
    remaining_days: float = 0
    completed_at: Optional[datetime] = None
    tasks: Tuple[Task, ...] = ()

    def find_task(self, task_id: int) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def with_task_status(self, task_id: int, status: TaskStatus) -> "Project":
        """Copy of the project where only one task's status differs."""
        tasks = tuple(
            t.with_status(status) if t.id == task_id else t
            for t in self.tasks
        )
        return replace(self, tasks=tasks)

    def tasks_by_status(self) -> Dict[TaskStatus, List[Task]]:
        """Group tasks into board columns, each column sorted by order."""
        columns: Dict[TaskStatus, List[Task]] = {s: [] for s in COLUMN_ORDER}
        for task in self.tasks:
            columns[task.status].append(task)
        for tasks in columns.values():
            tasks.sort(key=lambda t: t.order)
        return columns

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "goal": self.goal,
            "status": self.status.value,
            "start_date": self.start_date,
            "deadline": self.deadline,
            "total_estimated_days": self.total_estimated_days,
            "actual_days_spent": self.actual_days_spent,
            "remaining_days": self.remaining_days,
            "completed_at": _iso(self.completed_at),
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            goal=data.get("goal", ""),
            status=ProjectStatus.from_str(data.get("status", "planning")),
            start_date=data.get("start_date"),
            deadline=data.get("deadline"),
            total_estimated_days=data.get("total_estimated_days") or 0,
            actual_days_spent=data.get("actual_days_spent") or 0,
            remaining_days=data.get("remaining_days") or 0,
            completed_at=parse_timestamp(data.get("completed_at")),
            tasks=tuple(Task.from_dict(t) for t in data.get("tasks", [])),
        )


@dataclass(frozen=True)
class ProjectDraft:
    """Input for creating a project."""

    title: str
    goal: str
    deadline: Optional[str] = None

    def validate(self) -> "ProjectDraft":
        """
        Check the draft and return a normalized copy.

        Raises:
            ValidationError: title empty or over 255 chars, goal shorter
            than 10 chars, or deadline not a YYYY-MM-DD date.
        """
        title = (self.title or "").strip()
        goal = (self.goal or "").strip()
        deadline = (self.deadline or "").strip() or None

        if not title:
            raise ValidationError("Title is required")
        if len(title) > 255:
            raise ValidationError("Title too long")
        if len(goal) < 10:
            raise ValidationError("Goal must be at least 10 characters")
        if deadline is not None:
            if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", deadline):
                raise ValidationError(f"Deadline must be YYYY-MM-DD, got {deadline!r}")
            try:
                date.fromisoformat(deadline)
            except ValueError:
                raise ValidationError(f"Invalid deadline date: {deadline}")
        return ProjectDraft(title=title, goal=goal, deadline=deadline)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title, "goal": self.goal}
        if self.deadline:
            data["deadline"] = self.deadline
        return data


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Timeline re-estimation
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class TimelineAdjustment:
    """One task's re-estimate computed by the service."""
    task_id: int
    task_title: str
    old_estimate: float
    new_estimate: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineAdjustment":
        return cls(
            task_id=data["task_id"],
            task_title=data.get("task_title", ""),
            old_estimate=data.get("old_estimate", 0),
            new_estimate=data.get("new_estimate", 0),
        )


@dataclass(frozen=True)
class TimelineUpdate:
    """Informational payload returned alongside a status change."""
    performance_ratio: float
    new_deadline: str
    remaining_days: float
    reasoning: str = ""
    old_deadline: Optional[str] = None
    adjustments: Tuple[TimelineAdjustment, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineUpdate":
        return cls(
            performance_ratio=data.get("performance_ratio", 1.0),
            new_deadline=data.get("new_deadline", ""),
            remaining_days=data.get("remaining_days", 0),
            reasoning=data.get("reasoning", ""),
            old_deadline=data.get("old_deadline"),
            adjustments=tuple(
                TimelineAdjustment.from_dict(a) for a in data.get("adjustments", [])
            ),
        )


@dataclass(frozen=True)
class TaskUpdateResult:
    """Response of a task status mutation."""
    task: Task
    message: str = ""
    timeline_update: Optional[TimelineUpdate] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskUpdateResult":
        timeline = data.get("timeline_update")
        return cls(
            task=Task.from_dict(data["task"]),
            message=data.get("message", ""),
            timeline_update=TimelineUpdate.from_dict(timeline) if timeline else None,
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Conversation
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class ChatMessage:
    """One server-sequenced conversation turn."""
    id: int
    role: MessageRole
    content: str
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            role=MessageRole(data.get("role", "assistant")),
            content=data.get("content", ""),
            timestamp=parse_timestamp(data.get("timestamp")),
            metadata=data.get("metadata") or {},
        )


def messages_from_payload(payload: Any) -> Tuple[ChatMessage, ...]:
    """Accept either a bare message list or a TaskConversation object."""
    if isinstance(payload, dict):
        payload = payload.get("messages", [])
    return tuple(ChatMessage.from_dict(m) for m in payload or [])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Drop targets
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class ColumnTarget:
    """Task released over a column: the column's status is the target."""
    status: TaskStatus


@dataclass(frozen=True)
class TaskTarget:
    """Task released over another task: adopt that task's column."""
    task_id: int


DropTarget = Union[ColumnTarget, TaskTarget]
