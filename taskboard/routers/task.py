"""
Task router - API endpoints for the task store.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.dependencies import get_broadcaster, get_current_principal, get_db
from taskboard.core.permissions import Principal
from taskboard.models.task import TaskPriority, TaskStatus
from taskboard.schemas.comment import CommentCreate, CommentRead
from taskboard.schemas.task import (
    AssignRequest,
    SplitRecordRead,
    SplitRequest,
    SplitResult,
    StatusChange,
    TaskCreate,
    TaskRead,
    TaskUpdate,
)
from taskboard.schemas.time_log import TimeGateRequest, TimeGateResult
from taskboard.services.event_broadcaster import EventBroadcaster
from taskboard.services.task_service import TaskService
from taskboard.services.time_gate_service import TimeGateService

router = APIRouter(prefix="/tasks", tags=["tasks"])


# Fixed paths first, before the /{task_id} routes

@router.get("", response_model=List[TaskRead])
async def list_tasks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    project_id: Optional[int] = None,
    status: Optional[TaskStatus] = None,
    assignee_id: Optional[int] = None,
    priority: Optional[TaskPriority] = None,
    parent_task_id: Optional[int] = None,
    include_archived: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """
    List tasks (the full board on resync).
    
    Filters: project_id, status, assignee_id, priority, parent_task_id.
    Archived tasks are left out unless include_archived is set or status=archived.
    """
    service = TaskService(db)
    return await service.list_tasks(
        project_id=project_id,
        status=status.value if status else None,
        assignee_id=assignee_id,
        priority=priority.value if priority else None,
        parent_task_id=parent_task_id,
        include_archived=include_archived,
        limit=limit,
        offset=offset,
    )


@router.get("/archived", response_model=List[TaskRead])
async def list_archived_tasks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await TaskService(db).list_archived()


@router.get("/overdue", response_model=List[TaskRead])
async def list_overdue_tasks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await TaskService(db).list_overdue()


@router.get("/my", response_model=List[TaskRead])
async def list_my_tasks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Non-archived tasks assigned to the caller, soonest deadline first."""
    return await TaskService(db).list_for_principal(principal)


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Create a new task."""
    return await TaskService(db, broadcaster).create_task(data, principal)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get a task by ID."""
    return await TaskService(db).get_task(task_id)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Edit task fields. Fields not sent keep their values."""
    return await TaskService(db, broadcaster).update_task(task_id, data, principal)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    await TaskService(db, broadcaster).delete_task(task_id, principal)


@router.patch("/{task_id}/status", response_model=TaskRead)
async def change_task_status(
    task_id: int,
    data: StatusChange,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    return await TaskService(db, broadcaster).change_status(task_id, data.status, principal)


@router.patch("/{task_id}/archive", response_model=TaskRead)
async def archive_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    return await TaskService(db, broadcaster).archive(task_id, principal)


@router.patch("/{task_id}/unarchive", response_model=TaskRead)
async def unarchive_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    return await TaskService(db, broadcaster).unarchive(task_id, principal)


@router.post("/{task_id}/assign", response_model=TaskRead)
async def assign_task(
    task_id: int,
    data: AssignRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Replace the assignee set (not a delta)."""
    return await TaskService(db, broadcaster).assign(task_id, data, principal)


@router.post("/{task_id}/split", response_model=SplitResult, status_code=status.HTTP_201_CREATED)
async def split_task(
    task_id: int,
    data: SplitRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Split a task into subtasks; all children are created or none are."""
    return await TaskService(db, broadcaster).split_task(task_id, data.subtasks, principal)


@router.get("/{task_id}/subtasks", response_model=List[TaskRead])
async def list_subtasks(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await TaskService(db).list_subtasks(task_id)


@router.get("/{task_id}/splits", response_model=List[SplitRecordRead])
async def list_split_records(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await TaskService(db).list_split_records(task_id)


@router.get("/{task_id}/comments", response_model=List[CommentRead])
async def list_comments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await TaskService(db).list_comments(task_id, principal)


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: int,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    return await TaskService(db, broadcaster).add_comment(task_id, data.comment, principal)


@router.post("/{task_id}/time-gate", response_model=TimeGateResult)
async def time_gated_move(
    task_id: int,
    data: TimeGateRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """
    Move a task, recording effort first unless log_time is false.
    
    The effort log commits before the move; a failed move keeps it.
    """
    service = TimeGateService(db, broadcaster)
    if not data.log_time:
        return await service.transition_without_logging(task_id, data.status, principal)
    return await service.transition_with_effort(task_id, data.status, data.hours_spent, data.comment, principal)
