"""SQLAlchemy models for the A2A task store database."""

from sqlalchemy import Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .state_machine import INITIAL_STATE


class Base(DeclarativeBase):
    """Base class for all models."""


class A2ATask(Base):
    """One row per task: denormalized state plus the full JSON document."""

    __tablename__ = "a2a_tasks"

    id: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)
    context_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    # submitted, working, completed, failed, canceled
    state: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=INITIAL_STATE.value,
        server_default=text(f"'{INITIAL_STATE.value}'"),
    )
    data: Mapped[str] = mapped_column(Text, nullable=False)  # full task JSON
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)  # unix seconds
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)  # unix seconds

    def __repr__(self) -> str:
        return f"A2ATask(id={self.id!r}, state={self.state!r}, updated_at={self.updated_at})"


Index("idx_a2a_tasks_state", A2ATask.state)
Index("idx_a2a_tasks_updated", A2ATask.updated_at.desc())
