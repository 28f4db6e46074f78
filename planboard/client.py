"""
Remote task/project service.

RemoteService is the async contract the core depends on. HttpRemoteService
binds it to the REST API with requests; each blocking call runs in a
worker thread so the event loop is never blocked.

API:
    GET    /projects/                      → [Project]
    GET    /projects/{id}/                 → Project
    POST   /projects/new/                  → Project
    DELETE /projects/{id}/
    PATCH  /tasks/{id}/                    → {task, message, timeline_update?}
    GET    /tasks/{id}/conversation/       → TaskConversation | [ChatMessage]
    POST   /tasks/{id}/conversation/       → TaskConversation | [ChatMessage]
    DELETE /tasks/{id}/conversation/
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .schema import (
    ChatMessage,
    Project,
    ProjectDraft,
    TaskStatus,
    TaskUpdateResult,
    ValidationError,
    messages_from_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://127.0.0.1:8000/api"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Exceptions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class RemoteServiceError(Exception):
    """Raised when a remote call fails for any reason."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RemoteServiceError):
    """Raised when the requested project or task does not exist."""
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Contract
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class RemoteService:
    """
    Async contract for the remote source of truth.

    Every method either returns data or raises RemoteServiceError.
    """

    async def list_projects(self) -> List[Project]:
        raise NotImplementedError

    async def fetch_project(self, project_id: int) -> Project:
        raise NotImplementedError

    async def create_project(self, draft: ProjectDraft) -> Project:
        raise NotImplementedError

    async def delete_project(self, project_id: int) -> None:
        raise NotImplementedError

    async def update_task_status(self, task_id: int, status: TaskStatus) -> TaskUpdateResult:
        raise NotImplementedError

    async def fetch_conversation(self, task_id: int) -> Tuple[ChatMessage, ...]:
        raise NotImplementedError

    async def send_message(self, task_id: int, text: str) -> Tuple[ChatMessage, ...]:
        raise NotImplementedError

    async def clear_conversation(self, task_id: int) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTTP binding
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _error_text(response: requests.Response) -> str:
    """Pull the server's error message out of an ApiError body, if any."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or ""
    if not isinstance(body, dict):
        return str(body)

    error = str(body.get("error") or body.get("detail") or "")
    details = _details_text(body.get("details"))
    if details:
        return f"{error} ({details})" if error else details
    return error


def _details_text(details: Any) -> str:
    """Flatten ApiError details: a field -> messages mapping, a list, or plain text."""
    if not details:
        return ""
    if isinstance(details, dict):
        return "; ".join(f"{k}: {_join(v)}" for k, v in details.items())
    if isinstance(details, (list, tuple)):
        return _join(details)
    return str(details)


def _join(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


class HttpRemoteService(RemoteService):
    """requests-backed client for the project/task REST API."""

    def __init__(self, base_url: str = DEFAULT_API_URL, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")

    # ── transport ──

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """Perform one blocking request. Returns decoded JSON (None for empty bodies)."""
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise RemoteServiceError(f"{method} {path}: {e}") from e

        if r.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found", status_code=404)
        if not r.ok:
            text = _error_text(r)
            logger.warning(f"{method} {url} -> {r.status_code}: {text}")
            raise RemoteServiceError(
                f"{method} {path}: HTTP {r.status_code} {text}".rstrip(),
                status_code=r.status_code,
            )

        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise RemoteServiceError(f"{method} {path}: invalid JSON response") from e

    async def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, json)

    @staticmethod
    def _decode(path: str, decoder, payload: Any):
        """Turn a malformed payload into a RemoteServiceError."""
        try:
            return decoder(payload)
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise RemoteServiceError(f"{path}: malformed response ({e})") from e

    # ── projects ──

    async def list_projects(self) -> List[Project]:
        path = "/projects/"
        data = await self._call("GET", path)
        return self._decode(path, lambda d: [Project.from_dict(p) for p in d or []], data)

    async def fetch_project(self, project_id: int) -> Project:
        path = f"/projects/{project_id}/"
        data = await self._call("GET", path)
        return self._decode(path, Project.from_dict, data)

    async def create_project(self, draft: ProjectDraft) -> Project:
        path = "/projects/new/"
        data = await self._call("POST", path, json=draft.to_dict())
        return self._decode(path, Project.from_dict, data)

    async def delete_project(self, project_id: int) -> None:
        await self._call("DELETE", f"/projects/{project_id}/")

    # ── tasks ──

    async def update_task_status(self, task_id: int, status: TaskStatus) -> TaskUpdateResult:
        path = f"/tasks/{task_id}/"
        data = await self._call("PATCH", path, json={"status": status.value})
        return self._decode(path, TaskUpdateResult.from_dict, data)

    # ── conversations ──

    async def fetch_conversation(self, task_id: int) -> Tuple[ChatMessage, ...]:
        path = f"/tasks/{task_id}/conversation/"
        data = await self._call("GET", path)
        return self._decode(path, messages_from_payload, data)

    async def send_message(self, task_id: int, text: str) -> Tuple[ChatMessage, ...]:
        path = f"/tasks/{task_id}/conversation/"
        data = await self._call("POST", path, json={"message": text})
        return self._decode(path, messages_from_payload, data)

    async def clear_conversation(self, task_id: int) -> None:
        await self._call("DELETE", f"/tasks/{task_id}/conversation/")

    def close(self) -> None:
        self.session.close()
