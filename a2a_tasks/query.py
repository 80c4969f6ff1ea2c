"""Read-only projections over the task table for pollers and cleanup jobs."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .db import create_session_factory, get_session
from .models import A2ATask
from .state_machine import TERMINAL_STATES, TaskState, parse_state
from .store import TaskRecord, TaskSummary, record_from_row, summary_from_row

_SUMMARY_COLUMNS = (
    A2ATask.id,
    A2ATask.context_id,
    A2ATask.state,
    A2ATask.created_at,
    A2ATask.updated_at,
)


def _check_limit(limit: int | None) -> None:
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")


class TaskIndex:
    """Point-in-time listings; each call runs in its own short read session."""

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        if session_factory is None:
            if engine is None:
                raise ValueError("TaskIndex needs an engine or a session_factory")
            session_factory = create_session_factory(engine)
        self._session_factory = session_factory

    async def list_by_state(self, state: TaskState | str, limit: int | None = None) -> list[TaskSummary]:
        """Tasks currently in ``state``, most recently updated first."""
        target = parse_state(state)
        _check_limit(limit)
        query = (
            select(*_SUMMARY_COLUMNS)
            .where(A2ATask.state == target.value)
            .order_by(A2ATask.updated_at.desc(), A2ATask.id)
        )
        if limit is not None:
            query = query.limit(limit)

        async with get_session(self._session_factory) as session:
            rows = (await session.execute(query)).all()
        return [summary_from_row(row) for row in rows]

    async def list_recent(self, limit: int) -> list[TaskRecord]:
        """Most recently updated tasks first; ties broken by id."""
        _check_limit(limit)
        query = select(A2ATask).order_by(A2ATask.updated_at.desc(), A2ATask.id).limit(limit)
        async with get_session(self._session_factory) as session:
            rows = list((await session.execute(query)).scalars().all())
        return [record_from_row(row) for row in rows]

    async def list_by_context(self, context_id: str) -> list[TaskRecord]:
        """All tasks sharing a context, oldest first."""
        query = (
            select(A2ATask)
            .where(A2ATask.context_id == context_id)
            .order_by(A2ATask.created_at, A2ATask.id)
        )
        async with get_session(self._session_factory) as session:
            rows = list((await session.execute(query)).scalars().all())
        return [record_from_row(row) for row in rows]

    async def list_stale(
        self,
        older_than: int,
        states: Iterable[TaskState | str] = TERMINAL_STATES,
        limit: int | None = None,
    ) -> list[TaskSummary]:
        """Tasks in ``states`` not updated since ``older_than`` (unix seconds), oldest first.

        The store never deletes; retention jobs use this to pick candidates.
        """
        _check_limit(limit)
        wanted = sorted(parse_state(s).value for s in states)
        if not wanted:
            return []
        query = (
            select(*_SUMMARY_COLUMNS)
            .where(A2ATask.state.in_(wanted), A2ATask.updated_at < int(older_than))
            .order_by(A2ATask.updated_at, A2ATask.id)
        )
        if limit is not None:
            query = query.limit(limit)

        async with get_session(self._session_factory) as session:
            rows = (await session.execute(query)).all()
        return [summary_from_row(row) for row in rows]

    async def count_by_state(self) -> dict[TaskState, int]:
        counts = {state: 0 for state in TaskState}
        query = select(A2ATask.state, func.count()).group_by(A2ATask.state)
        async with get_session(self._session_factory) as session:
            rows = (await session.execute(query)).all()
        for raw_state, count in rows:
            counts[parse_state(raw_state)] = int(count)
        return counts
