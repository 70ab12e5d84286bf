"""
Domain event envelope.

Every committed mutation produces exactly one event carrying full snapshots,
never diffs, so observers can apply it idempotently.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from taskboard.models.task import TaskStatus
from taskboard.schemas.comment import CommentRead
from taskboard.schemas.task import TaskRead
from taskboard.utils.time import utc_now


class EventType(str, Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_ASSIGNEES_CHANGED = "task_assignees_changed"
    TASK_DELETED = "task_deleted"
    TASK_COMMENT_ADDED = "task_comment_added"
    TASK_SPLIT = "task_split"


class ActorRef(BaseModel):
    id: int
    role: str


class DomainEvent(BaseModel):
    """
    Broadcast message for one committed mutation.
    
    task: resulting snapshot of the primary task (None for deletes)
    related: other snapshots changed by the same commit
             (split children, children detached by a delete)
    """
    
    type: EventType
    task_id: int
    task: Optional[TaskRead] = None
    related: List[TaskRead] = []
    actor: ActorRef
    old_status: Optional[TaskStatus] = None
    new_status: Optional[TaskStatus] = None
    old_assignees: Optional[List[int]] = None
    new_assignees: Optional[List[int]] = None
    parent_id: Optional[int] = None
    child_ids: Optional[List[int]] = None
    comment: Optional[CommentRead] = None
    occurred_at: datetime = Field(default_factory=utc_now)
