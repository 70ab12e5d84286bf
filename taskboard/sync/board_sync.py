"""
Per-client synchronization core.

Reads come from the store (initial load and resync); writes go out through
the API and come back as broadcast events applied to the mirror. Any failed
mutation is answered with a full resync instead of local repair.
"""

import json
import logging
from typing import Any, AsyncIterable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from taskboard.models.task import TaskStatus
from taskboard.schemas.events import DomainEvent
from taskboard.schemas.task import TaskRead
from taskboard.schemas.time_log import TimeGateResult
from taskboard.sync.api_client import BoardApiClient, BoardApiError
from taskboard.sync.mirror import TaskMirror
from taskboard.sync.status_guard import StatusChangeGuard

logger = logging.getLogger(__name__)


class BoardSyncCore:
    def __init__(
        self,
        api: BoardApiClient,
        mirror: Optional[TaskMirror] = None,
        window: Optional[float] = None,
        per_task: bool = True,
    ):
        self.api = api
        self.mirror = mirror or TaskMirror()
        self.guard = StatusChangeGuard(
            self._send_status,
            on_failure=self._on_status_failure,
            window=window,
            per_task=per_task,
        )
        self.resyncs = 0

    async def resync(self) -> int:
        """Reload the whole visible task set. Returns the number of tasks loaded."""
        tasks = await self.api.list_tasks(include_archived=self.mirror.include_archived)
        self.mirror.replace_all(tasks)
        self.resyncs += 1
        logger.info("Resynced %s tasks", len(tasks))
        return len(tasks)

    # ---- outbound ----

    def move_task(self, task_id: int, status: Any) -> None:
        """Drag-and-drop move, debounced and single-flight."""
        self.guard.request(task_id, status)

    async def _send_status(self, task_id: int, status: TaskStatus) -> TaskRead:
        task = await self.api.change_status(task_id, status.value)
        self.mirror.upsert(task)
        return task

    async def _on_status_failure(self, task_id: int, exc: Exception) -> None:
        await self.resync()

    async def log_and_move(
        self,
        task_id: int,
        status: Any,
        hours_spent: Optional[float] = None,
        comment: str = "",
        log_time: bool = True,
    ) -> Optional[TimeGateResult]:
        """
        Time-gated move. Returns None when the move failed; the board has
        been resynced by then.
        """
        try:
            result = await self.api.time_gate(task_id, status, hours_spent, comment, log_time)
        except BoardApiError as exc:
            logger.warning("Time-gated move of task %s failed (%s); resyncing", task_id, exc.code)
            await self.resync()
            return None
        except httpx.HTTPError as exc:
            # The effort log may have committed before the connection dropped
            logger.warning("Time-gated move of task %s failed in transport: %r; resyncing", task_id, exc)
            await self.resync()
            return None
        self.mirror.upsert(result.task)
        return result

    # ---- inbound ----

    def handle_message(self, message: Union[str, bytes, Dict[str, Any]]) -> Optional[DomainEvent]:
        """Apply one raw broadcast message. Unparseable messages are skipped."""
        try:
            if isinstance(message, (str, bytes)):
                message = json.loads(message)
            event = DomainEvent.model_validate(message)
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring malformed board event: %s", exc)
            return None
        self.mirror.apply(event)
        return event

    async def consume(self, messages: AsyncIterable[Any]) -> int:
        """Apply messages until the stream ends. Returns how many were applied."""
        applied = 0
        async for message in messages:
            if self.handle_message(message) is not None:
                applied += 1
        return applied

    async def close(self) -> None:
        self.guard.cancel_pending()
        await self.guard.wait_idle()
        await self.api.close()
