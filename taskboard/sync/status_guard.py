"""
Debounce and single-flight guard for drag-and-drop status changes.

Repeated requests for one task inside the window collapse into one send
carrying the last target. When the window closes while another send for the
same scope is still outstanding, the request is dropped, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from taskboard.core.config import settings
from taskboard.models.task import TaskStatus

logger = logging.getLogger(__name__)

Sender = Callable[[int, TaskStatus], Awaitable[Any]]
FailureHook = Callable[[int, Exception], Awaitable[Any]]

# Single-flight key used when every task shares one slot
_GLOBAL = "*"


class StatusChangeGuard:
    """
    Args:
        sender: Coroutine function performing the actual status change
        on_failure: Awaited with (task_id, error) when the sender raises
        window: Debounce window in seconds
        per_task: One in-flight send per task (default) or one overall
    """

    def __init__(
        self,
        sender: Sender,
        on_failure: Optional[FailureHook] = None,
        window: Optional[float] = None,
        per_task: bool = True,
    ):
        self._sender = sender
        self._on_failure = on_failure
        self.window = settings.STATUS_DEBOUNCE_SECONDS if window is None else window
        self.per_task = per_task
        self._timers: Dict[int, asyncio.Task] = {}
        self._targets: Dict[int, TaskStatus] = {}
        self._in_flight: Set[Any] = set()
        self._running: Set[asyncio.Task] = set()
        self.sent = 0
        self.dropped = 0
        self.failed = 0

    def _flight_key(self, task_id: int) -> Any:
        return task_id if self.per_task else _GLOBAL

    def is_in_flight(self, task_id: int) -> bool:
        return self._flight_key(task_id) in self._in_flight

    def request(self, task_id: int, status: Any) -> None:
        """Schedule a status change; must be called from inside the event loop."""
        self._targets[task_id] = TaskStatus(status)
        timer = self._timers.pop(task_id, None)
        if timer is not None:
            timer.cancel()
        task = asyncio.get_running_loop().create_task(self._fire_after_window(task_id))
        self._timers[task_id] = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _fire_after_window(self, task_id: int) -> None:
        await asyncio.sleep(self.window)
        # Past this point the timer is no longer cancellable by request()
        self._timers.pop(task_id, None)
        status = self._targets.pop(task_id)

        key = self._flight_key(task_id)
        if key in self._in_flight:
            self.dropped += 1
            logger.info("Status change for task %s to %s dropped; another is in flight", task_id, status.value)
            return

        self._in_flight.add(key)
        try:
            self.sent += 1
            await self._sender(task_id, status)
        except Exception as exc:
            self.failed += 1
            logger.warning("Status change for task %s to %s failed: %s", task_id, status.value, exc)
            if self._on_failure is not None:
                try:
                    await self._on_failure(task_id, exc)
                except Exception:
                    logger.exception("Recovery after failed status change for task %s also failed", task_id)
        finally:
            self._in_flight.discard(key)

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or send is outstanding."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def cancel_pending(self) -> None:
        """Forget queued changes that have not been sent yet."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._targets.clear()
