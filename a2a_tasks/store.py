"""Durable task store: the only writer of the ``a2a_tasks`` table."""

from __future__ import annotations

import asyncio
import time
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Row, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .codec import decode, encode
from .config import DEFAULT_MAX_WRITE_ATTEMPTS, Settings
from .db import create_engine, create_session_factory, get_session
from .errors import (
    AlreadyExistsError,
    CorruptRecordError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
    UnknownStateError,
)
from .events import EventEmitter, TaskEvent, TaskEventType
from .logging import get_logger, task_log_context
from .models import A2ATask
from .state_machine import (
    TERMINAL_STATES,
    TaskState,
    parse_state,
    validate_initial_state,
    validate_transition,
)
from .types import Message, TaskDocument

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskSummary:
    """Row columns only; the ``data`` blob is not decoded."""

    id: str
    context_id: str | None
    state: TaskState
    created_at: int
    updated_at: int


@dataclass(frozen=True)
class TaskRecord:
    """A decoded task together with its row timestamps."""

    task: TaskDocument
    created_at: int
    updated_at: int

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def context_id(self) -> str | None:
        return self.task.context_id

    @property
    def state(self) -> TaskState:
        return TaskState(self.task.status.state)


def _stored_state(row: A2ATask | Row[Any]) -> TaskState:
    try:
        return parse_state(row.state)
    except UnknownStateError as exc:
        raise CorruptRecordError(f"state column holds {row.state!r}", task_id=row.id) from exc


def summary_from_row(row: A2ATask | Row[Any]) -> TaskSummary:
    return TaskSummary(
        id=row.id,
        context_id=row.context_id,
        state=_stored_state(row),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def record_from_row(row: A2ATask) -> TaskRecord:
    """Decode a row, checking the blob against its denormalized columns."""
    state = _stored_state(row)
    try:
        task = decode(row.data)
    except CorruptRecordError as exc:
        logger.error("task.corrupt_record", task_id=row.id, error=str(exc))
        raise CorruptRecordError(str(exc), task_id=row.id) from exc

    if task.id != row.id:
        raise CorruptRecordError(f"document id {task.id!r} does not match row", task_id=row.id)
    if task.status.state != state.value:
        logger.error(
            "task.state_mismatch",
            task_id=row.id,
            column_state=state.value,
            document_state=task.status.state,
        )
        raise CorruptRecordError(
            f"document state {task.status.state!r} disagrees with column {state.value!r}",
            task_id=row.id,
        )
    return TaskRecord(task=task, created_at=row.created_at, updated_at=row.updated_at)


class _KeyedLocks:
    """One asyncio lock per task id, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class TaskStore:
    """
    SQLite-backed (or any SQLAlchemy async backend) store of A2A tasks.

    Every write goes through the state machine and rewrites ``state``,
    ``context_id``, ``data`` and ``updated_at`` in a single statement, so
    readers never see the state column disagree with the document.

    Concurrency:
    - writers to the same task id are serialized by a per-id asyncio lock
    - updates are compare-and-write on the previously read row, which also
      serializes writers in other processes sharing the database
    - different task ids never contend on a lock
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        events: EventEmitter | None = None,
        clock: Callable[[], float] = time.time,
        max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ) -> None:
        if session_factory is None:
            if engine is None:
                raise ValueError("TaskStore needs an engine or a session_factory")
            session_factory = create_session_factory(engine)
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be >= 1")

        self._engine = engine
        self._owns_engine = False
        self._session_factory = session_factory
        self._events = events
        self._clock = clock
        self._max_write_attempts = max_write_attempts
        self._locks = _KeyedLocks()

    @classmethod
    def from_settings(cls, settings: Settings, *, events: EventEmitter | None = None) -> TaskStore:
        """Build a store that owns its engine; call :meth:`close` when done."""
        store = cls(
            create_engine(settings),
            events=events,
            max_write_attempts=settings.max_write_attempts,
        )
        store._owns_engine = True
        return store

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    async def close(self) -> None:
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()

    def _now(self) -> int:
        return int(self._clock())

    async def _emit(self, event_type: TaskEventType, record: TaskRecord, previous: TaskState | None) -> None:
        if self._events is None:
            return
        await self._events.emit(
            TaskEvent(
                type=event_type,
                task_id=record.id,
                context_id=record.context_id,
                previous_state=previous.value if previous is not None else None,
                state=record.state.value,
                updated_at=record.updated_at,
                data={"status": record.task.status.to_dict()},
            )
        )

    async def _load_row(self, session: AsyncSession, task_id: str) -> A2ATask:
        result = await session.execute(select(A2ATask).where(A2ATask.id == task_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(task_id)
        return row

    # ---- public API ----

    async def create(self, task: TaskDocument) -> TaskRecord:
        """Insert a new task.

        The document must be ``submitted``, or already terminal when importing
        finished work.
        """
        state = validate_initial_state(task.status.state)
        blob = encode(task).decode("utf-8")
        now = self._now()

        async with self._locks.get(task.id):
            try:
                async with get_session(self._session_factory) as session:
                    existing = await session.execute(select(A2ATask.id).where(A2ATask.id == task.id))
                    if existing.scalar_one_or_none() is not None:
                        raise AlreadyExistsError(task.id)
                    session.add(
                        A2ATask(
                            id=task.id,
                            context_id=task.context_id,
                            state=state.value,
                            data=blob,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    await session.flush()
            except IntegrityError as exc:
                # Lost an insert race against another process
                raise AlreadyExistsError(task.id) from exc

        record = TaskRecord(task=task, created_at=now, updated_at=now)
        logger.info("task.created", task_id=task.id, context_id=task.context_id, state=state.value)
        await self._emit(TaskEventType.TASK_CREATED, record, None)
        return record

    async def get(self, task_id: str) -> TaskDocument:
        return (await self.get_record(task_id)).task

    async def get_record(self, task_id: str) -> TaskRecord:
        async with get_session(self._session_factory) as session:
            row = await self._load_row(session, task_id)
        return record_from_row(row)

    async def update(self, task_id: str, task: TaskDocument) -> TaskRecord:
        """Replace the stored document, moving the task to the document's state.

        Fails with NotFoundError, InvalidTransitionError or UnknownStateError
        without touching the stored row.
        """
        if task.id != task_id:
            raise ValueError(f"Document id {task.id!r} does not match task id {task_id!r}")
        return await self._write(task_id, lambda current: task)

    async def cancel(self, task_id: str, message: Message | None = None) -> TaskRecord:
        """Move a task to ``canceled``; terminal tasks other than canceled are rejected."""

        def build(current: TaskRecord) -> TaskDocument:
            if current.state is TaskState.CANCELED:
                return current.task
            return current.task.with_state(
                TaskState.CANCELED,
                message if message is not None else current.task.status.message,
            )

        return await self._write(task_id, build, event_type=TaskEventType.TASK_CANCELED)

    async def _write(
        self,
        task_id: str,
        build: Callable[[TaskRecord], TaskDocument],
        *,
        event_type: TaskEventType | None = None,
    ) -> TaskRecord:
        with task_log_context(task_id):
            return await self._apply(task_id, build, event_type)

    async def _apply(
        self,
        task_id: str,
        build: Callable[[TaskRecord], TaskDocument],
        event_type: TaskEventType | None,
    ) -> TaskRecord:
        async with self._locks.get(task_id):
            for attempt in range(1, self._max_write_attempts + 1):
                async with get_session(self._session_factory) as session:
                    row = await self._load_row(session, task_id)
                    current = record_from_row(row)
                    new_task = build(current)
                    target = parse_state(new_task.status.state)

                    try:
                        validate_transition(current.state, target)
                    except InvalidTransitionError:
                        logger.warning(
                            "task.transition_rejected",
                            current=current.state.value,
                            target=target.value,
                        )
                        raise InvalidTransitionError(current.state, target, task_id=task_id) from None

                    blob = encode(new_task).decode("utf-8")
                    if blob == row.data:
                        # Re-delivered request: nothing to write
                        return current

                    if current.state in TERMINAL_STATES:
                        logger.warning("task.terminal_rewrite_rejected", state=current.state.value)
                        raise InvalidTransitionError(current.state, target, task_id=task_id)

                    updated_at = max(self._now(), row.updated_at)
                    result = await session.execute(
                        update(A2ATask)
                        .where(
                            A2ATask.id == task_id,
                            A2ATask.state == row.state,
                            A2ATask.data == row.data,
                        )
                        .values(
                            state=target.value,
                            context_id=new_task.context_id,
                            data=blob,
                            updated_at=updated_at,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    written = result.rowcount == 1

                if written:
                    break
                logger.info("task.write_conflict", attempt=attempt)
            else:
                raise StorageUnavailableError(
                    f"Task {task_id}: gave up after {self._max_write_attempts} conflicting writes"
                )

        record = TaskRecord(task=new_task, created_at=current.created_at, updated_at=updated_at)
        logger.info(
            "task.updated",
            previous=current.state.value,
            state=target.value,
            updated_at=updated_at,
        )
        if event_type is None:
            event_type = (
                TaskEventType.TASK_UPDATED
                if target is current.state
                else TaskEventType.TASK_TRANSITIONED
            )
        await self._emit(event_type, record, current.state)
        return record
