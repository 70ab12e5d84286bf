"""
TaskTimeLog model.

Effort logs are append-only: the store never updates or deletes them except
through the cascade when their task is deleted.
"""

from sqlalchemy import Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base_model import AppendOnlyModel


class TaskTimeLog(AppendOnlyModel):
    __tablename__ = "task_time_logs"

    task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    hours_spent: Mapped[float] = mapped_column(Float, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
