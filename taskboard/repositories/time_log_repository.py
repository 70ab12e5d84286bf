"""
Time log repository - append-only effort records.
"""

from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.models.time_log import TaskTimeLog


class TimeLogRepository:
    """Repository for TaskTimeLog database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, task_id: int, user_id: int, hours_spent: float, comment: str = "") -> TaskTimeLog:
        log = TaskTimeLog(task_id=task_id, user_id=user_id, hours_spent=hours_spent, comment=comment)
        self.db.add(log)
        await self.db.flush()
        await self.db.refresh(log)
        return log

    async def list_for_task(self, task_id: int) -> List[TaskTimeLog]:
        """Newest first."""
        result = await self.db.execute(
            select(TaskTimeLog)
            .where(TaskTimeLog.task_id == task_id)
            .order_by(TaskTimeLog.created_at.desc(), TaskTimeLog.id.desc())
        )
        return list(result.scalars().all())

    async def total_for_task(self, task_id: int) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(TaskTimeLog.hours_spent), 0.0)).where(TaskTimeLog.task_id == task_id)
        )
        return float(result.scalar_one())
