"""
Models package.

Import all models here so they are registered with SQLAlchemy.
This file also makes it easy to import models from one place.
"""

from taskboard.models.task import Task, TaskAssignment, TaskComplexity, TaskPriority, TaskStatus
from taskboard.models.task_split import TaskSplit
from taskboard.models.time_log import TaskTimeLog
from taskboard.models.task_comment import TaskComment
from taskboard.models.user import User

# Export all models
__all__ = [
    "Task",
    "TaskAssignment",
    "TaskStatus",
    "TaskPriority",
    "TaskComplexity",
    "TaskSplit",
    "TaskTimeLog",
    "TaskComment",
    "User",
]
