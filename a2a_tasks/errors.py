"""Error types and helpers for the A2A task store."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .state_machine import TaskState


class TaskStoreError(Exception):
    """Base class for every error raised by the task store."""


class AlreadyExistsError(TaskStoreError):
    """Raised when creating a task whose id is already stored."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task already exists: {task_id}")
        self.task_id = task_id


class NotFoundError(TaskStoreError, LookupError):
    """Raised when a task id is not present in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class InvalidTransitionError(TaskStoreError):
    """Raised when a task cannot move from its current state to the target."""

    def __init__(
        self,
        current: TaskState | None,
        target: TaskState,
        *,
        task_id: str | None = None,
    ) -> None:
        source = current.value if current is not None else "<new>"
        prefix = f"Task {task_id}: " if task_id else ""
        super().__init__(f"{prefix}invalid transition {source} -> {target.value}")
        self.current = current
        self.target = target
        self.task_id = task_id


class UnknownStateError(TaskStoreError, ValueError):
    """Raised for a state value outside the fixed task lifecycle."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown task state: {value!r}")
        self.value = value


class EncodingError(TaskStoreError, ValueError):
    """Raised when a task document cannot be serialized."""


class CorruptRecordError(TaskStoreError):
    """Raised when a stored task blob cannot be decoded or disagrees with its row."""

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        prefix = f"Task {task_id}: " if task_id else ""
        super().__init__(f"{prefix}{message}")
        self.task_id = task_id


class StorageUnavailableError(TaskStoreError):
    """Raised when the database cannot be read or written."""


class SchemaNotInitializedError(StorageUnavailableError):
    """Raised when the database schema/migrations have not been applied."""


_PG_MISSING_RELATION_RE = re.compile(r'relation "(?P<table>[^"]+)" does not exist', re.IGNORECASE)
_SQLITE_MISSING_TABLE_RE = re.compile(r"no such table:\s*(?P<table>[A-Za-z0-9_]+)", re.IGNORECASE)


def _unwrap_exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def missing_table_name(exc: BaseException) -> str | None:
    """Best-effort extraction of the missing table name from a DB exception."""
    for e in _unwrap_exception_chain(exc):
        message = str(e)
        match = _PG_MISSING_RELATION_RE.search(message) or _SQLITE_MISSING_TABLE_RE.search(message)
        if match:
            return match.group("table")
    return None


def is_schema_missing_error(exc: BaseException) -> bool:
    """Return True if the exception looks like a missing-table / missing-schema error."""
    name = missing_table_name(exc)
    if name:
        return True

    # Fallback for drivers that don't format errors consistently.
    for e in _unwrap_exception_chain(exc):
        message = str(e).lower()
        if "undefinedtableerror" in message:
            return True
        if "does not exist" in message and "relation" in message:
            return True
    return False


def schema_not_initialized_message(exc: BaseException) -> str:
    table = missing_table_name(exc)
    table_hint = f" (missing table `{table}`)" if table else ""

    lines: list[str] = [
        f"Database schema is not initialized{table_hint}.",
        "Run: `alembic upgrade head`",
        "Or call `a2a_tasks.db.init_db(engine)` for an embedded database.",
    ]
    return "\n".join(lines)
