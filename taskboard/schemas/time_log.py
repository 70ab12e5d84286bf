"""
Effort log and time-gate schemas.
"""

from typing import List, Optional

from pydantic import BaseModel

from taskboard.models.task import TaskStatus
from taskboard.schemas.base import RecordRead
from taskboard.schemas.task import TaskRead


class TimeLogCreate(BaseModel):
    task_id: int
    hours_spent: float
    comment: str = ""


class TimeLogRead(RecordRead):
    task_id: int
    user_id: int
    hours_spent: float
    comment: str = ""


class TimeLogList(BaseModel):
    time_logs: List[TimeLogRead]
    total_time: float


class TimeGateRequest(BaseModel):
    """
    Move a task, optionally recording effort first.
    
    With log_time=False the gate transitions without touching effort logs.
    """
    
    status: TaskStatus
    log_time: bool = True
    hours_spent: Optional[float] = None
    comment: str = ""


class TimeGateResult(BaseModel):
    time_log: Optional[TimeLogRead] = None
    task: TaskRead
