"""
Effort log endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.dependencies import get_current_principal, get_db
from taskboard.core.permissions import Principal
from taskboard.schemas.time_log import TimeLogCreate, TimeLogList, TimeLogRead
from taskboard.services.time_gate_service import TimeGateService

router = APIRouter(prefix="/time-logs", tags=["time-logs"])


@router.post("", response_model=TimeLogRead, status_code=status.HTTP_201_CREATED)
async def log_time(
    data: TimeLogCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Append an effort log (0 < hours <= 100)."""
    return await TimeGateService(db).log_effort(data.task_id, data.hours_spent, data.comment, principal)


@router.get("/task/{task_id}", response_model=TimeLogList)
async def list_time_logs(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await TimeGateService(db).list_effort(task_id)
