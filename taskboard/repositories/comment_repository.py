"""
Comment repository.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.models.task_comment import TaskComment


class CommentRepository:
    """Repository for TaskComment database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, task_id: int, user_id: int, comment: str) -> TaskComment:
        record = TaskComment(task_id=task_id, user_id=user_id, comment=comment)
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def list_for_task(self, task_id: int) -> List[TaskComment]:
        result = await self.db.execute(
            select(TaskComment)
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
        )
        return list(result.scalars().all())
