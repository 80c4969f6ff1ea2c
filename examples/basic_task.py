"""
Basic Task Example

Demonstrates a task moving through its lifecycle in an embedded SQLite store,
then reading it back the way a poller would after a restart.

Usage:
    python examples/basic_task.py
"""

import asyncio

from a2a_tasks import Message, Part, TaskDocument, TaskIndex, TaskState, TaskStore
from a2a_tasks.config import Settings
from a2a_tasks.db import create_engine, init_db
from a2a_tasks.events import EventEmitter, TaskEvent
from a2a_tasks.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def log_event(event: TaskEvent) -> None:
    logger.info("event", **event.to_dict())


async def main() -> None:
    settings = Settings()
    configure_logging(settings)

    engine = create_engine(settings)
    await init_db(engine)

    events = EventEmitter()
    events.on_event(log_event)
    store = TaskStore(engine, events=events, max_write_attempts=settings.max_write_attempts)
    index = TaskIndex(engine)

    try:
        request = Message(role="user", parts=[Part.text_part("Summarise the release notes")])
        task = TaskDocument.new(request)
        await store.create(task)

        working = await store.update(
            task.id,
            task.with_state(
                TaskState.WORKING,
                Message(role="agent", parts=[Part.text_part("Task created. Processing...")]),
            ),
        )
        await store.update(
            task.id,
            working.task.with_state(
                TaskState.COMPLETED,
                Message(role="agent", parts=[Part.text_part("Done")]),
            ),
        )

        record = await store.get_record(task.id)
        logger.info(
            "task.final",
            task_id=record.id,
            state=record.state.value,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

        for recent in await index.list_recent(5):
            logger.info("task.recent", task_id=recent.id, state=recent.state.value)
        logger.info("task.counts", **{s.value: n for s, n in (await index.count_by_state()).items()})
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
