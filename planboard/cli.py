#!/usr/bin/env python3
"""
Planboard CLI
─────────────
Drive the board and task assistant from a terminal.

Usage:
    planboard projects
    planboard new --title "Build robot" --goal "Autonomous line follower"
    planboard delete 3
    planboard show 3
    planboard move 3 12 in_progress
    planboard chat 3 12 ["follow-up question"]
    planboard clear 3 12

Environment:
    PLANBOARD_API_URL     API base URL (default http://127.0.0.1:8000/api)
    PLANBOARD_CONFIG      Path to config.yaml
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from .app import Dashboard
from .board import DropResult
from .config import Config, ConfigError, setup_logging
from .events import (
    CATALOG_FAILED,
    CONVERSATION_CLEARED,
    CONVERSATION_FAILED,
    PROJECT_LOAD_FAILED,
    STATUS_UPDATE_FAILED,
    TIMELINE_ADJUSTED,
)
from .schema import COLUMN_ORDER, MessageRole, ProjectDraft, TaskStatus, ValidationError


COLUMN_TITLES = {
    TaskStatus.PENDING: "PENDING",
    TaskStatus.IN_PROGRESS: "IN PROGRESS",
    TaskStatus.COMPLETED: "COMPLETED",
    TaskStatus.BLOCKED: "BLOCKED",
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Output helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _print_messages(messages) -> None:
    for msg in messages:
        speaker = "you" if msg.role is MessageRole.USER else "assistant"
        print(f"[{speaker}] {msg.content}\n")


def _wire_notices(dash: Dashboard) -> None:
    """Print presentation events to stderr."""
    ev = dash.events
    ev.subscribe(TIMELINE_ADJUSTED, lambda notice, **_: print(f"⏱  {notice}", file=sys.stderr))
    ev.subscribe(STATUS_UPDATE_FAILED,
                 lambda task_id, error, **_: print(f"❌ Task {task_id} update failed: {error}", file=sys.stderr))
    ev.subscribe(PROJECT_LOAD_FAILED,
                 lambda project_id, error, **_: print(f"❌ Project {project_id} not found: {error}", file=sys.stderr))
    ev.subscribe(CONVERSATION_FAILED,
                 lambda task_id, operation, error, **_: print(f"❌ {operation} failed: {error}", file=sys.stderr))
    ev.subscribe(CONVERSATION_CLEARED, lambda task_id, **_: print("🧹 Conversation cleared", file=sys.stderr))
    ev.subscribe(CATALOG_FAILED,
                 lambda operation, error, **_: print(f"❌ {operation} failed: {error}", file=sys.stderr))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Commands
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


async def cmd_projects(dash: Dashboard, args) -> int:
    if not await dash.catalog.refresh():
        return 1
    if not dash.catalog.projects:
        print("No projects.")
    for p in dash.catalog.projects:
        print(f"{p.id:>4}  {p.status.value:<9}  {p.title}")
    return 0


async def cmd_new(dash: Dashboard, args) -> int:
    draft = ProjectDraft(title=args.title, goal=args.goal, deadline=args.deadline)
    project = await dash.catalog.create(draft)
    if project is None:
        return 1
    print(f"Created project {project.id}: {project.title} ({len(project.tasks)} tasks)")
    return 0


async def cmd_delete(dash: Dashboard, args) -> int:
    return 0 if await dash.catalog.delete(args.project_id) else 1


async def cmd_show(dash: Dashboard, args) -> int:
    board = await dash.open_project(args.project_id)
    project = board.store.project
    if project is None:
        return 1

    print(f"{project.title}  [{project.status.value}]")
    print(project.goal)
    print(
        f"Total: {project.total_estimated_days} days | "
        f"Remaining: {project.remaining_days} days | "
        f"Spent: {project.actual_days_spent} days"
    )
    if project.deadline:
        print(f"Deadline: {project.deadline}")
    columns = board.store.columns()
    for status in COLUMN_ORDER:
        print(f"\n── {COLUMN_TITLES[status]} ({len(columns[status])})")
        for task in columns[status]:
            print(f"  #{task.id:<4} {task.title}  ({task.estimated_days}d)")
    return 0


async def cmd_move(dash: Dashboard, args) -> int:
    board = await dash.open_project(args.project_id)
    if not board.store.is_loaded:
        return 1
    result = await board.move(args.task_id, args.status)
    if result is DropResult.IGNORED:
        print(f"Task {args.task_id} is not on project {args.project_id}", file=sys.stderr)
        return 1
    task = board.store.find_task(args.task_id)
    status = task.status.value if task else "?"
    print(f"Task {args.task_id}: {result.value} (now {status})")
    return 0 if result in (DropResult.COMMITTED, DropResult.UNCHANGED) else 1


async def cmd_chat(dash: Dashboard, args) -> int:
    await dash.open_project(args.project_id)
    try:
        session = await dash.open_session(args.task_id)
    except LookupError as e:
        print(str(e), file=sys.stderr)
        return 1
    if args.message and not await session.send(args.message):
        return 1
    if not session.session.messages:
        return 1
    _print_messages(session.session.messages)
    return 0


async def cmd_clear(dash: Dashboard, args) -> int:
    await dash.open_project(args.project_id)
    try:
        session = dash.session_for(args.task_id)
    except LookupError as e:
        print(str(e), file=sys.stderr)
        return 1
    if not await session.clear():
        return 1
    _print_messages(session.session.messages)
    return 0


COMMANDS = {
    "projects": cmd_projects,
    "new": cmd_new,
    "delete": cmd_delete,
    "show": cmd_show,
    "move": cmd_move,
    "chat": cmd_chat,
    "clear": cmd_clear,
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Entry point
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _status_arg(value: str) -> TaskStatus:
    try:
        return TaskStatus.from_str(value)
    except ValidationError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="planboard",
        description="Project task board and task assistant client",
    )
    ap.add_argument("--config", default=None, help="Path to config.yaml")
    ap.add_argument("--api-url", default=None, help="API base URL (overrides config)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("projects", help="List projects")

    p = sub.add_parser("new", help="Create a project")
    p.add_argument("--title", required=True)
    p.add_argument("--goal", required=True)
    p.add_argument("--deadline", default=None, help="YYYY-MM-DD")

    p = sub.add_parser("delete", help="Delete a project")
    p.add_argument("project_id", type=int)

    p = sub.add_parser("show", help="Show a project's board")
    p.add_argument("project_id", type=int)

    p = sub.add_parser("move", help="Move a task to another column")
    p.add_argument("project_id", type=int)
    p.add_argument("task_id", type=int)
    p.add_argument("status", type=_status_arg,
                   help="pending | in_progress | completed | blocked")

    p = sub.add_parser("chat", help="Open a task's assistant conversation")
    p.add_argument("project_id", type=int)
    p.add_argument("task_id", type=int)
    p.add_argument("message", nargs="?", default=None, help="Follow-up message to send")

    p = sub.add_parser("clear", help="Clear and restart a task's conversation")
    p.add_argument("project_id", type=int)
    p.add_argument("task_id", type=int)

    return ap


async def _run(dash: Dashboard, args) -> int:
    try:
        return await COMMANDS[args.command](dash, args)
    finally:
        dash.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = Config.load(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    if args.api_url:
        cfg.api_url = args.api_url.rstrip("/")

    setup_logging("DEBUG" if args.verbose else cfg.log_level, stream=sys.stderr)

    dash = Dashboard(cfg)
    _wire_notices(dash)
    try:
        return asyncio.run(_run(dash, args))
    except ValidationError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
