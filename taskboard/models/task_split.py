"""
TaskSplit model.

Audit link written once per child when a task is split. Never mutated.
"""

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base_model import AppendOnlyModel


class TaskSplit(AppendOnlyModel):
    """parent -> child -> actor, stamped with created_at."""

    __tablename__ = "task_splits"

    parent_task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    child_task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    split_by: Mapped[int] = mapped_column(Integer, nullable=False)
