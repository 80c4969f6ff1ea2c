"""A2A task persistence: task state and full task JSON, durable across restarts.

Revision ID: 0001_a2a_tasks
Revises: None
Create Date: 2026-02-24

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "0001_a2a_tasks"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "a2a_tasks",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("context_id", sa.Text(), nullable=True),
        # submitted, working, completed, failed, canceled
        sa.Column("state", sa.String(), nullable=False, server_default=sa.text("'submitted'")),
        sa.Column("data", sa.Text(), nullable=False),  # full task JSON
        sa.Column("created_at", sa.Integer(), nullable=False),  # unix seconds
        sa.Column("updated_at", sa.Integer(), nullable=False),  # unix seconds
    )
    op.create_index("idx_a2a_tasks_state", "a2a_tasks", ["state"])
    op.create_index("idx_a2a_tasks_updated", "a2a_tasks", [sa.text("updated_at DESC")])


def downgrade() -> None:
    op.drop_index("idx_a2a_tasks_updated", table_name="a2a_tasks")
    op.drop_index("idx_a2a_tasks_state", table_name="a2a_tasks")
    op.drop_table("a2a_tasks")
