import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from a2a_tasks.config import Settings
from a2a_tasks.db import (
    create_engine,
    create_session_factory,
    drop_db,
    get_session,
    init_db,
    translate_storage_error,
)
from a2a_tasks.errors import (
    NotFoundError,
    SchemaNotInitializedError,
    StorageUnavailableError,
    is_schema_missing_error,
    missing_table_name,
    schema_not_initialized_message,
)
from a2a_tasks.store import TaskStore

from .fakes import make_task


@pytest.mark.asyncio
async def test_sqlite_durability_pragmas(engine) -> None:
    async with engine.connect() as conn:
        journal = (await conn.execute(text("PRAGMA journal_mode"))).scalar_one()
        synchronous = (await conn.execute(text("PRAGMA synchronous"))).scalar_one()
    assert journal.lower() == "wal"
    assert synchronous == 2  # FULL


@pytest.mark.asyncio
async def test_in_memory_database_is_shared_across_sessions() -> None:
    engine = create_engine(Settings(database_url="sqlite+aiosqlite:///:memory:"))
    try:
        await init_db(engine)
        store = TaskStore(engine)
        await store.create(make_task("T1"))
        assert (await store.get("T1")).id == "T1"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_missing_schema_is_reported(settings: Settings) -> None:
    engine = create_engine(settings)
    try:
        store = TaskStore(engine)
        with pytest.raises(SchemaNotInitializedError) as excinfo:
            await store.get("T1")
        assert "a2a_tasks" in str(excinfo.value)
        assert isinstance(excinfo.value, StorageUnavailableError)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_drop_db_removes_table(engine) -> None:
    await drop_db(engine)
    with pytest.raises(SchemaNotInitializedError):
        await TaskStore(engine).create(make_task("T1"))


@pytest.mark.asyncio
async def test_get_session_rolls_back_and_passes_domain_errors(engine) -> None:
    factory = create_session_factory(engine)
    with pytest.raises(NotFoundError):
        async with get_session(factory) as session:
            await session.execute(
                text(
                    "INSERT INTO a2a_tasks (id, state, data, created_at, updated_at) "
                    "VALUES ('tmp', 'submitted', '{}', 0, 0)"
                )
            )
            raise NotFoundError("tmp")

    async with get_session(factory) as session:
        count = (await session.execute(text("SELECT COUNT(*) FROM a2a_tasks"))).scalar_one()
    assert count == 0


def test_translate_storage_error() -> None:
    missing = OperationalError("SELECT 1", {}, Exception("no such table: a2a_tasks"))
    assert isinstance(translate_storage_error(missing), SchemaNotInitializedError)

    io_error = OperationalError("SELECT 1", {}, Exception("disk I/O error"))
    translated = translate_storage_error(io_error)
    assert type(translated) is StorageUnavailableError
    assert "disk I/O error" in str(translated)

    duplicate = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    assert translate_storage_error(duplicate) is None


def test_missing_table_helpers() -> None:
    sqlite_exc = Exception("no such table: a2a_tasks")
    assert missing_table_name(sqlite_exc) == "a2a_tasks"

    pg_exc = Exception('relation "a2a_tasks" does not exist')
    wrapped = RuntimeError("query failed")
    wrapped.__cause__ = pg_exc
    assert missing_table_name(wrapped) == "a2a_tasks"
    assert is_schema_missing_error(wrapped)

    assert not is_schema_missing_error(Exception("database is locked"))
    message = schema_not_initialized_message(sqlite_exc)
    assert "missing table `a2a_tasks`" in message
    assert "alembic upgrade head" in message
