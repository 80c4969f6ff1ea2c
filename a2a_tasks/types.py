"""
In-memory representation of an A2A task document.

Field names are snake_case in Python and camelCase in the serialized form,
matching the A2A wire format.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from .state_machine import INITIAL_STATE, TaskState


def utc_timestamp() -> str:
    """RFC 3339 timestamp for ``TaskStatus.timestamp``."""
    return datetime.now(timezone.utc).isoformat()


def _optional_dict(value: Any, name: str) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise TypeError(f"{name} must be an object, got {type(value).__name__}")
    return value


def _required_str(raw: dict[str, Any], key: str) -> str:
    value = raw[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _list_of(raw: dict[str, Any], key: str) -> list[Any]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list, got {type(value).__name__}")
    return value


@dataclass
class Part:
    """One piece of message or artifact content."""

    text: str | None = None
    data: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def text_part(cls, text: str) -> Part:
        return cls(text=text)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.text is not None:
            payload["text"] = self.text
        if self.data is not None:
            payload["data"] = self.data
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Part:
        return cls(
            text=_optional_str(raw, "text"),
            data=_optional_dict(raw.get("data"), "data"),
            metadata=_optional_dict(raw.get("metadata"), "metadata"),
        )


@dataclass
class Message:
    role: str
    parts: list[Part] = field(default_factory=list)
    message_id: str | None = None
    context_id: str | None = None
    task_id: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        """All text parts joined by newlines."""
        return "\n".join(p.text for p in self.parts if p.text is not None)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": self.role,
            "parts": [p.to_dict() for p in self.parts],
        }
        if self.message_id is not None:
            payload["messageId"] = self.message_id
        if self.context_id is not None:
            payload["contextId"] = self.context_id
        if self.task_id is not None:
            payload["taskId"] = self.task_id
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Message:
        return cls(
            role=_required_str(raw, "role"),
            parts=[Part.from_dict(p) for p in _list_of(raw, "parts")],
            message_id=_optional_str(raw, "messageId"),
            context_id=_optional_str(raw, "contextId"),
            task_id=_optional_str(raw, "taskId"),
            metadata=_optional_dict(raw.get("metadata"), "metadata"),
        )


@dataclass
class Artifact:
    """Output produced by the agent while working on a task."""

    artifact_id: str
    parts: list[Part] = field(default_factory=list)
    name: str | None = None
    description: str | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "artifactId": self.artifact_id,
            "parts": [p.to_dict() for p in self.parts],
        }
        if self.name is not None:
            payload["name"] = self.name
        if self.description is not None:
            payload["description"] = self.description
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Artifact:
        return cls(
            artifact_id=_required_str(raw, "artifactId"),
            parts=[Part.from_dict(p) for p in _list_of(raw, "parts")],
            name=_optional_str(raw, "name"),
            description=_optional_str(raw, "description"),
            metadata=_optional_dict(raw.get("metadata"), "metadata"),
        )


@dataclass
class TaskStatus:
    # Kept as a plain string: unknown values must reach the state machine.
    state: str = INITIAL_STATE.value
    message: Message | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"state": self.state}
        if self.message is not None:
            payload["message"] = self.message.to_dict()
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TaskStatus:
        message = raw.get("message")
        return cls(
            state=_required_str(raw, "state"),
            message=Message.from_dict(message) if message is not None else None,
            timestamp=_optional_str(raw, "timestamp"),
        )


@dataclass
class TaskDocument:
    """The full task payload stored in the ``data`` column."""

    id: str
    context_id: str | None = None
    status: TaskStatus = field(default_factory=TaskStatus)
    history: list[Message] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
    kind: str = "task"

    @property
    def state(self) -> str:
        return self.status.state

    @classmethod
    def new(
        cls,
        message: Message | None = None,
        *,
        task_id: str | None = None,
        context_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TaskDocument:
        """Create a submitted task, generating ids the way A2A servers do."""
        task_id = task_id or str(uuid4())
        context_id = context_id or (message.context_id if message else None) or str(uuid4())
        history: list[Message] = []
        if message is not None:
            history.append(
                replace(
                    message,
                    message_id=message.message_id or str(uuid4()),
                    context_id=context_id,
                    task_id=task_id,
                )
            )
        return cls(
            id=task_id,
            context_id=context_id,
            status=TaskStatus(state=INITIAL_STATE.value, timestamp=utc_timestamp()),
            history=history,
            metadata=metadata,
        )

    def with_state(
        self,
        state: TaskState | str,
        message: Message | None = None,
        *,
        timestamp: str | None = None,
    ) -> TaskDocument:
        """Copy of this task whose status carries ``state`` and a fresh timestamp."""
        value = state.value if isinstance(state, TaskState) else state
        status = TaskStatus(state=value, message=message, timestamp=timestamp or utc_timestamp())
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind,
            "id": self.id,
            "status": self.status.to_dict(),
            "history": [m.to_dict() for m in self.history],
            "artifacts": [a.to_dict() for a in self.artifacts],
        }
        if self.context_id is not None:
            payload["contextId"] = self.context_id
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TaskDocument:
        status = raw["status"]
        if not isinstance(status, dict):
            raise TypeError("status must be an object")
        return cls(
            id=_required_str(raw, "id"),
            context_id=_optional_str(raw, "contextId"),
            status=TaskStatus.from_dict(status),
            history=[Message.from_dict(m) for m in _list_of(raw, "history")],
            artifacts=[Artifact.from_dict(a) for a in _list_of(raw, "artifacts")],
            metadata=_optional_dict(raw.get("metadata"), "metadata"),
            kind=_optional_str(raw, "kind") or "task",
        )
