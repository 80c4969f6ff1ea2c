"""Shared test fixtures and configuration for pytest."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from a2a_tasks.config import Settings
from a2a_tasks.db import create_engine, init_db
from a2a_tasks.events import EventEmitter, TaskEvent
from a2a_tasks.query import TaskIndex
from a2a_tasks.store import TaskStore

from .fakes import FakeClock


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at an isolated database file for this test."""
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'tasks.sqlite3'}")


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorded_events() -> list[TaskEvent]:
    return []


@pytest.fixture
def events(recorded_events: list[TaskEvent]) -> EventEmitter:
    emitter = EventEmitter()
    emitter.on_event(recorded_events.append)
    return emitter


@pytest.fixture
def store(engine: AsyncEngine, clock: FakeClock, events: EventEmitter) -> TaskStore:
    return TaskStore(engine, events=events, clock=clock)


@pytest.fixture
def index(engine: AsyncEngine) -> TaskIndex:
    return TaskIndex(engine)
