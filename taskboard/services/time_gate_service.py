"""
Time-gate: record effort, then move the task.

The two steps commit separately. If the transition fails after the effort
log committed, the log stays; callers get the transition error and the log
is not rolled back.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.config import settings
from taskboard.core.permissions import Principal, can_contribute
from taskboard.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from taskboard.repositories.task_repository import TaskRepository
from taskboard.repositories.time_log_repository import TimeLogRepository
from taskboard.schemas.time_log import TimeGateResult, TimeLogList, TimeLogRead
from taskboard.services.event_broadcaster import EventBroadcaster
from taskboard.services.task_service import TaskService

logger = logging.getLogger(__name__)


class TimeGateService:
    """Effort logging and time-gated status transitions."""

    def __init__(
        self,
        db: AsyncSession,
        broadcaster: Optional[EventBroadcaster] = None,
        max_hours: Optional[float] = None,
    ):
        self.db = db
        self.tasks = TaskRepository(db)
        self.logs = TimeLogRepository(db)
        self.task_service = TaskService(db, broadcaster)
        self.max_hours = settings.MAX_EFFORT_HOURS if max_hours is None else max_hours

    def _validate_hours(self, hours_spent: Optional[float]) -> float:
        if hours_spent is None:
            raise InvalidArgumentError("Hours spent is required")
        hours = float(hours_spent)
        if not (0 < hours <= self.max_hours):
            raise InvalidArgumentError(
                f"Hours spent must be greater than 0 and at most {self.max_hours:g}",
                {"hours_spent": hours},
            )
        return hours

    async def log_effort(
        self,
        task_id: int,
        hours_spent: Optional[float],
        comment: str,
        principal: Principal,
    ) -> TimeLogRead:
        """Append an effort log and commit it on its own."""
        hours = self._validate_hours(hours_spent)
        task = await self.tasks.get_by_id(task_id)
        if not task:
            raise NotFoundError(f"Task {task_id} not found", {"task_id": task_id})
        assignees = await self.tasks.get_assignee_ids(task_id)
        if not can_contribute(principal, assignees):
            raise ForbiddenError("No permission to log time on this task")

        try:
            log = await self.logs.create(task_id, principal.id, hours, (comment or "").strip())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Logged %.2fh on task %s by user %s", hours, task_id, principal.id)
        return TimeLogRead.model_validate(log)

    async def transition_with_effort(
        self,
        task_id: int,
        status,
        hours_spent: Optional[float],
        comment: str,
        principal: Principal,
    ) -> TimeGateResult:
        """
        Log effort, then change status.

        The log is already committed when the transition runs; a transition
        failure propagates and leaves the log in place.
        """
        log = await self.log_effort(task_id, hours_spent, comment, principal)
        try:
            task = await self.task_service.change_status(task_id, status, principal)
        except Exception:
            logger.warning(
                "Effort log %s on task %s kept although the move to %s failed",
                log.id,
                task_id,
                status,
            )
            raise
        return TimeGateResult(time_log=log, task=task)

    async def transition_without_logging(self, task_id: int, status, principal: Principal) -> TimeGateResult:
        task = await self.task_service.change_status(task_id, status, principal)
        return TimeGateResult(time_log=None, task=task)

    async def list_effort(self, task_id: int) -> TimeLogList:
        if not await self.tasks.get_by_id(task_id):
            raise NotFoundError(f"Task {task_id} not found", {"task_id": task_id})
        logs = await self.logs.list_for_task(task_id)
        return TimeLogList(
            time_logs=[TimeLogRead.model_validate(log) for log in logs],
            total_time=await self.logs.total_for_task(task_id),
        )
