"""Shared fixtures: an in-memory remote service with gated, recorded calls."""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from planboard.client import NotFoundError, RemoteService, RemoteServiceError
from planboard.schema import (
    ChatMessage,
    MessageRole,
    Project,
    ProjectDraft,
    ProjectStatus,
    Task,
    TaskStatus,
    TaskUpdateResult,
    TimelineUpdate,
)


def make_task(task_id: int, title: str = "", status: TaskStatus = TaskStatus.PENDING,
              order: Optional[int] = None, **kwargs) -> Task:
    return Task(
        id=task_id,
        title=title or f"Task {task_id}",
        status=status,
        order=task_id if order is None else order,
        estimated_days=kwargs.pop("estimated_days", 2),
        **kwargs,
    )


def make_project(*tasks: Task, project_id: int = 1, **kwargs) -> Project:
    return Project(
        id=project_id,
        title=kwargs.pop("title", "Build robot"),
        goal=kwargs.pop("goal", "Build an autonomous line-following robot"),
        status=kwargs.pop("status", ProjectStatus.ACTIVE),
        deadline=kwargs.pop("deadline", "2025-02-15"),
        tasks=tuple(tasks),
        **kwargs,
    )


class FakeRemoteService(RemoteService):
    """
    In-memory stand-in for the remote service.

    Every call is appended to self.calls as (operation, *args).
    self.fail[op] = error     makes the operation raise.
    self.gates[op] = Event    holds the operation until the event is set.
    """

    def __init__(self, *projects: Project):
        self.projects: Dict[int, Project] = {p.id: p for p in projects}
        self.conversations: Dict[int, List[ChatMessage]] = {}
        self.timeline_updates: Dict[int, TimelineUpdate] = {}
        self.calls: List[tuple] = []
        self.fail: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self._next_id = 100

    async def _enter(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        await asyncio.sleep(0)
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        error = self.fail.get(op)
        if error is not None:
            raise error

    def count(self, op: str) -> int:
        return sum(1 for c in self.calls if c[0] == op)

    def args_of(self, op: str) -> List[tuple]:
        return [c[1:] for c in self.calls if c[0] == op]

    def _message(self, role: MessageRole, content: str) -> ChatMessage:
        self._next_id += 1
        return ChatMessage(
            id=self._next_id,
            role=role,
            content=content,
            timestamp=datetime.now(timezone.utc),
        )

    # ── projects ──

    async def list_projects(self):
        await self._enter("list_projects")
        return list(self.projects.values())

    async def fetch_project(self, project_id):
        await self._enter("fetch_project", project_id)
        if project_id not in self.projects:
            raise NotFoundError(f"project {project_id} not found", status_code=404)
        return self.projects[project_id]

    async def create_project(self, draft: ProjectDraft):
        await self._enter("create_project", draft)
        project_id = max(self.projects, default=0) + 1
        project = Project(id=project_id, title=draft.title, goal=draft.goal, deadline=draft.deadline)
        self.projects[project_id] = project
        return project

    async def delete_project(self, project_id):
        await self._enter("delete_project", project_id)
        if self.projects.pop(project_id, None) is None:
            raise NotFoundError(f"project {project_id} not found", status_code=404)

    # ── tasks ──

    async def update_task_status(self, task_id, status):
        await self._enter("update_task_status", task_id, status)
        for project in self.projects.values():
            if project.find_task(task_id) is not None:
                updated = project.with_task_status(task_id, status)
                if all(t.status == TaskStatus.COMPLETED for t in updated.tasks):
                    updated = replace(updated, status=ProjectStatus.COMPLETED)
                self.projects[project.id] = updated
                return TaskUpdateResult(
                    task=updated.find_task(task_id),
                    message="Task updated",
                    timeline_update=self.timeline_updates.get(task_id),
                )
        raise NotFoundError(f"task {task_id} not found", status_code=404)

    # ── conversations ──

    async def fetch_conversation(self, task_id):
        await self._enter("fetch_conversation", task_id)
        return tuple(self.conversations.get(task_id, []))

    async def send_message(self, task_id, text):
        await self._enter("send_message", task_id, text)
        history = self.conversations.setdefault(task_id, [])
        history.append(self._message(MessageRole.USER, text))
        history.append(self._message(MessageRole.ASSISTANT, f"Here is how to proceed with: {text}"))
        return tuple(history)

    async def clear_conversation(self, task_id):
        await self._enter("clear_conversation", task_id)
        self.conversations[task_id] = []


class Recorder:
    """Collects emitted events as (event_type, kwargs) pairs."""

    def __init__(self, bus, *event_types: str):
        self.events: List[tuple] = []
        for event_type in event_types:
            bus.subscribe(event_type, self._handler(event_type))

    def _handler(self, event_type):
        def handle(**kwargs):
            self.events.append((event_type, kwargs))
        return handle

    def of(self, event_type: str) -> List[dict]:
        return [kw for et, kw in self.events if et == event_type]


@pytest.fixture
def service_error():
    return RemoteServiceError("service unavailable", status_code=503)
