"""
Event bus: notifications the core sends outward to the presentation layer.

Events:
    task_moved                  task_id, old_status, new_status
    timeline_adjusted           task_id, update, notice
    status_update_failed        task_id, error
    project_loaded              project
    project_load_failed         project_id, error
    conversation_state_changed  task_id, loading, sending
    conversation_cleared        task_id
    conversation_failed         task_id, operation, error
    catalog_failed              operation, error
"""
import logging
from typing import Callable, Dict, List

from .schema import TimelineUpdate

logger = logging.getLogger(__name__)

TASK_MOVED = "task_moved"
TIMELINE_ADJUSTED = "timeline_adjusted"
STATUS_UPDATE_FAILED = "status_update_failed"
PROJECT_LOADED = "project_loaded"
PROJECT_LOAD_FAILED = "project_load_failed"
CONVERSATION_STATE_CHANGED = "conversation_state_changed"
CONVERSATION_CLEARED = "conversation_cleared"
CONVERSATION_FAILED = "conversation_failed"
CATALOG_FAILED = "catalog_failed"


class EventBus:
    """Routes core events to presentation callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> callbacks

    def subscribe(self, event_type: str, callback: Callable) -> Callable[[], None]:
        """Register a callback for an event type. Returns an unsubscribe function."""
        self.subscribers.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self.subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers. Callback errors never reach the caller."""
        for callback in list(self.subscribers.get(event_type, [])):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")


def format_timeline_notice(update: TimelineUpdate) -> str:
    """Human-readable text for a timeline adjustment notification."""
    return (
        f"{update.reasoning}\n\n"
        f"New deadline: {update.new_deadline}\n"
        f"Remaining: {update.remaining_days} days"
    )
