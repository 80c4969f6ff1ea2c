"""Configuration settings for the A2A task store."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

# Default location for the embedded database, relative to the working directory
_DEFAULT_DB_PATH = Path("data") / "a2a_tasks.sqlite3"

DEFAULT_MAX_WRITE_ATTEMPTS = 8


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = f"sqlite+aiosqlite:///{_DEFAULT_DB_PATH.as_posix()}"
    db_echo: bool = False

    # SQLite connection pragmas
    busy_timeout_ms: int = 30_000
    sqlite_journal_mode: str = "WAL"
    sqlite_synchronous: str = "FULL"  # fsync before a commit returns

    # Compare-and-write attempts before an update gives up
    max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_prefix = "A2A_TASKS_"
        env_file = ".env"


# Global settings instance
settings = Settings()
