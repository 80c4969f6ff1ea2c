"""
Lifecycle events emitted by the task store after each committed write.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .logging import get_logger

logger = get_logger(__name__)


class TaskEventType(str, Enum):
    TASK_CREATED = "task.created"
    TASK_TRANSITIONED = "task.transitioned"
    TASK_UPDATED = "task.updated"
    TASK_CANCELED = "task.canceled"


@dataclass
class TaskEvent:
    """A committed change to one task."""

    id: UUID = field(default_factory=uuid4)
    type: TaskEventType = TaskEventType.TASK_CREATED
    task_id: str = ""
    context_id: Optional[str] = None
    previous_state: Optional[str] = None
    state: str = ""
    updated_at: int = 0
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "type": self.type.value,
            "task_id": self.task_id,
            "context_id": self.context_id,
            "previous_state": self.previous_state,
            "state": self.state,
            "updated_at": self.updated_at,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


EventHandler = Callable[[TaskEvent], Awaitable[None] | None]


class EventEmitter:
    """Emits events to registered handlers."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def on_event(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, handler: EventHandler) -> None:
        self._handlers.remove(handler)

    async def emit(self, event: TaskEvent) -> None:
        # The write is already committed; a broken subscriber must not undo it
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.exception(
                    "event.handler_failed",
                    event_type=event.type.value,
                    task_id=event.task_id,
                    handler=getattr(handler, "__name__", repr(handler)),
                )
