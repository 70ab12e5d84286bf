"""
Task repository - database operations for Task, its assignee links and
split records.

Repositories only flush; the service owns commit/rollback so multi-row
operations stay inside one transaction.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.models.task import Task, TaskAssignment, TaskStatus
from taskboard.models.task_comment import TaskComment
from taskboard.models.task_split import TaskSplit
from taskboard.models.time_log import TaskTimeLog
from taskboard.utils.time import utc_now


class TaskRepository:
    """Repository for Task database operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_by_id(self, task_id: int, for_update: bool = False) -> Optional[Task]:
        """
        Get a task by ID.
        
        for_update takes the row lock (Postgres) so writers to the same task
        serialize on it; dialects without row locks ignore it.
        """
        query = select(Task).where(Task.id == task_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def list(
        self,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
        assignee_id: Optional[int] = None,
        priority: Optional[str] = None,
        parent_task_id: Optional[int] = None,
        include_archived: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Task]:
        """List tasks with filters, newest first."""
        query = select(Task)
        
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        if status is not None:
            query = query.where(Task.status == status)
        elif not include_archived:
            query = query.where(Task.status != TaskStatus.ARCHIVED.value)
        if assignee_id is not None:
            query = query.where(
                Task.id.in_(select(TaskAssignment.task_id).where(TaskAssignment.user_id == assignee_id))
            )
        if priority is not None:
            query = query.where(Task.priority == priority)
        if parent_task_id is not None:
            query = query.where(Task.parent_task_id == parent_task_id)
        
        query = query.order_by(Task.created_at.desc(), Task.id.desc())
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def list_for_assignee(self, user_id: int) -> List[Task]:
        """Non-archived tasks assigned to a user, soonest deadline first."""
        query = (
            select(Task)
            .where(
                Task.id.in_(select(TaskAssignment.task_id).where(TaskAssignment.user_id == user_id)),
                Task.status != TaskStatus.ARCHIVED.value,
            )
            .order_by(Task.deadline.asc(), Task.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def list_overdue(self, now: Optional[datetime] = None) -> List[Task]:
        query = (
            select(Task)
            .where(
                Task.deadline < (now or utc_now()),
                Task.status.not_in([TaskStatus.DONE.value, TaskStatus.ARCHIVED.value]),
            )
            .order_by(Task.deadline.asc(), Task.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def list_children(self, parent_task_id: int) -> List[Task]:
        result = await self.db.execute(
            select(Task).where(Task.parent_task_id == parent_task_id).order_by(Task.id.asc())
        )
        return list(result.scalars().all())
    
    async def count(self) -> int:
        result = await self.db.execute(select(func.count(Task.id)))
        return int(result.scalar_one())
    
    async def create(
        self,
        values: Dict[str, Any],
        created_by: int,
        parent_task_id: Optional[int] = None,
    ) -> Task:
        """Insert a task row in status unassigned."""
        task = Task(
            **values,
            status=TaskStatus.UNASSIGNED.value,
            created_by=created_by,
            parent_task_id=parent_task_id,
            is_subtask=parent_task_id is not None,
        )
        self.db.add(task)
        await self.db.flush()
        await self.db.refresh(task)
        return task
    
    async def update_fields(self, task: Task, values: Dict[str, Any]) -> Task:
        """Apply a partial update; keys absent from values keep their prior value."""
        for field, value in values.items():
            setattr(task, field, value)
        task.updated_at = utc_now()
        await self.db.flush()
        await self.db.refresh(task)
        return task
    
    async def set_status(self, task: Task, status: TaskStatus) -> Task:
        return await self.update_fields(task, {"status": status.value})
    
    # ---- assignees ----
    
    async def get_assignee_ids(self, task_id: int) -> List[int]:
        result = await self.db.execute(
            select(TaskAssignment.user_id)
            .where(TaskAssignment.task_id == task_id)
            .order_by(TaskAssignment.user_id.asc())
        )
        return list(result.scalars().all())
    
    async def get_assignee_map(self, task_ids: Iterable[int]) -> Dict[int, List[int]]:
        """Batch fetch assignee ids for many tasks."""
        ids = list(task_ids)
        mapping: Dict[int, List[int]] = {task_id: [] for task_id in ids}
        if not ids:
            return mapping
        result = await self.db.execute(
            select(TaskAssignment.task_id, TaskAssignment.user_id)
            .where(TaskAssignment.task_id.in_(ids))
            .order_by(TaskAssignment.task_id.asc(), TaskAssignment.user_id.asc())
        )
        for task_id, user_id in result.all():
            mapping[task_id].append(user_id)
        return mapping
    
    async def replace_assignees(self, task_id: int, user_ids: Iterable[int]) -> List[int]:
        """Drop every assignee link and insert the new set."""
        unique_ids = sorted(set(user_ids))
        await self.db.execute(delete(TaskAssignment).where(TaskAssignment.task_id == task_id))
        for user_id in unique_ids:
            self.db.add(TaskAssignment(task_id=task_id, user_id=user_id))
        await self.db.flush()
        return unique_ids
    
    # ---- split records ----
    
    async def add_split_record(self, parent_task_id: int, child_task_id: int, split_by: int) -> TaskSplit:
        record = TaskSplit(parent_task_id=parent_task_id, child_task_id=child_task_id, split_by=split_by)
        self.db.add(record)
        await self.db.flush()
        return record
    
    async def list_split_records(self, parent_task_id: int) -> List[TaskSplit]:
        result = await self.db.execute(
            select(TaskSplit)
            .where(TaskSplit.parent_task_id == parent_task_id)
            .order_by(TaskSplit.id.asc())
        )
        return list(result.scalars().all())
    
    # ---- delete ----
    
    async def delete(self, task: Task) -> List[int]:
        """
        Delete a task and its dependent rows.
        
        Assignments, comments, time logs and split records cascade. Child
        tasks are detached: parent reference nulled and subtask flag cleared.
        
        Returns:
            IDs of the detached children
        """
        task_id = task.id
        children = await self.list_children(task_id)
        detached_ids = [child.id for child in children]
        
        if detached_ids:
            await self.db.execute(
                update(Task)
                .where(Task.id.in_(detached_ids))
                .values(parent_task_id=None, is_subtask=False, updated_at=utc_now())
                .execution_options(synchronize_session="fetch")
            )
        
        await self.db.execute(delete(TaskAssignment).where(TaskAssignment.task_id == task_id))
        await self.db.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
        await self.db.execute(delete(TaskTimeLog).where(TaskTimeLog.task_id == task_id))
        await self.db.execute(
            delete(TaskSplit).where(
                or_(TaskSplit.parent_task_id == task_id, TaskSplit.child_task_id == task_id)
            )
        )
        await self.db.delete(task)
        await self.db.flush()
        return detached_ids
