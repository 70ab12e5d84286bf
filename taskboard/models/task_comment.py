"""TaskComment model (minimal; comment storage proper is a collaborator)."""

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base_model import AppendOnlyModel


class TaskComment(AppendOnlyModel):
    __tablename__ = "task_comments"

    task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
