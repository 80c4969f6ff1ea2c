"""Async database connection helpers for the task store."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config import Settings
from .errors import (
    SchemaNotInitializedError,
    StorageUnavailableError,
    TaskStoreError,
    is_schema_missing_error,
    schema_not_initialized_message,
)
from .logging import get_logger
from .models import Base

logger = get_logger(__name__)


def _sqlite_pragmas(settings: Settings) -> list[str]:
    return [
        f"PRAGMA journal_mode={settings.sqlite_journal_mode}",
        f"PRAGMA synchronous={settings.sqlite_synchronous}",
        f"PRAGMA busy_timeout={int(settings.busy_timeout_ms)}",
    ]


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the shared async engine described by ``settings``.

    SQLite databases get WAL journaling and ``synchronous=FULL`` so a
    committed write survives a crash.
    """
    url = make_url(settings.database_url)
    kwargs: dict[str, Any] = {"echo": settings.db_echo}

    if not url.drivername.startswith("sqlite"):
        engine = create_async_engine(url, pool_pre_ping=True, **kwargs)
        logger.info("db.engine_created", backend=url.get_backend_name())
        return engine

    database = url.database or ""
    in_memory = database in ("", ":memory:") or database.startswith("file::memory:")
    if in_memory:
        # One shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        Path(database).parent.mkdir(parents=True, exist_ok=True)
        kwargs["connect_args"] = {"timeout": settings.busy_timeout_ms / 1000}

    engine = create_async_engine(url, **kwargs)
    pragmas = _sqlite_pragmas(settings)

    @event.listens_for(engine.sync_engine, "connect")
    def _configure_sqlite(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        try:
            for pragma in pragmas:
                cursor.execute(pragma)
        finally:
            cursor.close()

    logger.info("db.engine_created", backend="sqlite", database=database or ":memory:")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (for development/testing)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def translate_storage_error(exc: SQLAlchemyError) -> StorageUnavailableError | None:
    """Map a driver-level failure onto the store's error taxonomy."""
    if is_schema_missing_error(exc):
        return SchemaNotInitializedError(schema_not_initialized_message(exc))
    if isinstance(exc, OperationalError | InterfaceError):
        return StorageUnavailableError(f"Database unavailable: {exc.orig or exc}")
    return None


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Async context manager for database sessions."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            if isinstance(exc, TaskStoreError):
                raise
            if isinstance(exc, SQLAlchemyError):
                translated = translate_storage_error(exc)
                if translated is not None:
                    raise translated from exc
            raise
