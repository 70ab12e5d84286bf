"""
Task model.

A task is the unit of work on the board. Assignees live in a link table so
the assignee set stays unique and unordered.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base_model import AppendOnlyModel, BoardModel


class TaskStatus(str, Enum):
    """Kanban columns. Only done <-> archived is a constrained edge."""

    UNASSIGNED = "unassigned"
    IN_PROGRESS = "in_progress"
    DEVELOPED = "developed"
    REVIEW = "review"
    DEPLOY = "deploy"
    DONE = "done"
    ARCHIVED = "archived"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskComplexity(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class Task(BoardModel):
    """
    Task table - authoritative state of every card on the board.
    """
    
    __tablename__ = "tasks"
    
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    goal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    
    # External link; an external project's own link takes display priority
    project_link: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    
    # Collaborator references (catalogs live outside the store)
    project_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    external_project_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=TaskStatus.UNASSIGNED.value,
    )
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=TaskPriority.MEDIUM.value)
    complexity: Mapped[str] = mapped_column(String(20), nullable=False, default=TaskComplexity.MEDIUM.value)
    
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    # role name -> bool or assignee id
    role_assignments: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    
    # Children are detached (SET NULL), never cascaded, when a parent goes away
    parent_task_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_subtask: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    
    __table_args__ = (
        Index("ix_tasks_status_deadline", "status", "deadline"),
    )


class TaskAssignment(AppendOnlyModel):
    """Assignee link; replaced wholesale on assignment changes."""
    
    __tablename__ = "task_assignments"
    
    task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="assignee")
    
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_assignment_user"),
    )
