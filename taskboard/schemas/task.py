"""
Task Pydantic schemas.

Title and deadline are deliberately optional at the schema level so the
store can reject them with its own invalid_argument error.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from taskboard.models.task import Task, TaskComplexity, TaskPriority, TaskStatus
from taskboard.schemas.base import BoardRead, RecordRead
from taskboard.utils.time import as_utc, utc_now

DEADLINE_WARNING_WINDOW = timedelta(days=2)


class TaskCreate(BaseModel):
    """Schema for creating a new task."""
    
    title: str = ""
    deadline: Optional[datetime] = None
    goal: Optional[str] = None
    description: str = ""
    project_link: Optional[str] = None
    project_id: Optional[int] = None
    external_project_id: Optional[int] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    complexity: TaskComplexity = TaskComplexity.MEDIUM
    assignees: List[int] = []
    role_assignments: Dict[str, Any] = {}


class TaskUpdate(BaseModel):
    """Schema for editing a task. Only fields that are sent are changed."""
    
    title: Optional[str] = None
    deadline: Optional[datetime] = None
    goal: Optional[str] = None
    description: Optional[str] = None
    project_link: Optional[str] = None
    project_id: Optional[int] = None
    external_project_id: Optional[int] = None
    priority: Optional[TaskPriority] = None
    complexity: Optional[TaskComplexity] = None
    role_assignments: Optional[Dict[str, Any]] = None


class StatusChange(BaseModel):
    status: TaskStatus


class AssignRequest(BaseModel):
    """Replaces the assignee set and role map wholesale."""
    
    user_ids: List[int] = []
    role_assignments: Dict[str, Any] = {}


class SubtaskSpec(BaseModel):
    """One child of a split. Project references are not inherited from the parent."""
    
    title: str = ""
    deadline: Optional[datetime] = None
    goal: Optional[str] = None
    description: str = ""
    project_link: Optional[str] = None
    project_id: Optional[int] = None
    external_project_id: Optional[int] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    complexity: TaskComplexity = TaskComplexity.MEDIUM
    assignees: List[int] = []


class SplitRequest(BaseModel):
    subtasks: List[SubtaskSpec] = []


class SplitResult(BaseModel):
    parent_id: int
    child_ids: List[int]


class SplitRecordRead(RecordRead):
    parent_task_id: int
    child_task_id: int
    split_by: int


def deadline_status(deadline: datetime, now: Optional[datetime] = None) -> str:
    """overdue / warning (two days or less left) / normal."""
    now = now or utc_now()
    remaining = as_utc(deadline) - now
    if remaining < timedelta(0):
        return "overdue"
    if remaining <= DEADLINE_WARNING_WINDOW:
        return "warning"
    return "normal"


class TaskRead(BoardRead):
    """Full task snapshot: API responses and event payloads."""
    
    title: str
    goal: Optional[str] = None
    description: str = ""
    project_link: Optional[str] = None
    project_id: Optional[int] = None
    external_project_id: Optional[int] = None
    status: TaskStatus
    priority: TaskPriority
    complexity: TaskComplexity
    deadline: datetime
    created_by: Optional[int] = None
    assignees: List[int] = []
    role_assignments: Dict[str, Any] = {}
    parent_task_id: Optional[int] = None
    is_subtask: bool = False
    deadline_status: str = "normal"

    @classmethod
    def from_task(cls, task: Task, assignees: List[int]) -> "TaskRead":
        return cls(
            id=task.id,
            created_at=as_utc(task.created_at),
            updated_at=as_utc(task.updated_at),
            title=task.title,
            goal=task.goal,
            description=task.description or "",
            project_link=task.project_link,
            project_id=task.project_id,
            external_project_id=task.external_project_id,
            status=TaskStatus(task.status),
            priority=TaskPriority(task.priority),
            complexity=TaskComplexity(task.complexity),
            deadline=as_utc(task.deadline),
            created_by=task.created_by,
            assignees=sorted(set(assignees)),
            role_assignments=dict(task.role_assignments or {}),
            parent_task_id=task.parent_task_id,
            is_subtask=task.is_subtask,
            deadline_status=deadline_status(task.deadline),
        )
