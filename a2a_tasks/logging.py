"""structlog setup for the task store.

Library code only calls :func:`get_logger`; applications call
:func:`configure_logging` once at startup to pick console or JSON output.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor
from structlog.typing import FilteringBoundLogger

if TYPE_CHECKING:
    from a2a_tasks.config import Settings

# stdlib loggers of our dependencies and the level they are held at
_QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "alembic": logging.INFO,
}


def _renderer(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(settings: "Settings | None" = None) -> None:
    """Route store logs to stderr at the configured level and format."""
    level_name = settings.log_level if settings is not None else "WARNING"
    log_format = settings.log_format if settings is not None else "console"
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *_renderer(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(name)s %(levelname)s %(message)s", level=level, stream=sys.stderr)
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    return structlog.get_logger(name) if name else structlog.get_logger()


@contextmanager
def task_log_context(task_id: str, **extra: object) -> Iterator[None]:
    """Tag every log line emitted inside the block with ``task_id``.

    The previous context is restored on exit, including when the block raises.
    """
    with structlog.contextvars.bound_contextvars(task_id=task_id, **extra):
        yield
