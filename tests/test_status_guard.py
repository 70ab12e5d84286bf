import asyncio

import httpx
import pytest

from taskboard.models.task import TaskStatus
from taskboard.sync.status_guard import StatusChangeGuard

WINDOW = 0.05


class RecordingSender:
    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.calls = []

    async def __call__(self, task_id, status):
        self.calls.append((task_id, status))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("server said no")


def test_rapid_requests_collapse_to_last_status():
    async def main():
        sender = RecordingSender()
        guard = StatusChangeGuard(sender, window=WINDOW)
        for status in ("in_progress", "developed", "review", "deploy", "done"):
            guard.request(1, status)
            await asyncio.sleep(WINDOW / 10)
        await guard.wait_idle()

        assert sender.calls == [(1, TaskStatus.DONE)]
        assert guard.sent == 1

    asyncio.run(main())


def test_debounce_is_per_task():
    async def main():
        sender = RecordingSender()
        guard = StatusChangeGuard(sender, window=WINDOW)
        guard.request(1, "review")
        guard.request(2, "done")
        guard.request(1, "deploy")
        await guard.wait_idle()

        assert sorted(sender.calls) == [(1, TaskStatus.DEPLOY), (2, TaskStatus.DONE)]

    asyncio.run(main())


def test_request_while_in_flight_is_dropped_not_queued():
    async def main():
        sender = RecordingSender(delay=WINDOW * 4)
        guard = StatusChangeGuard(sender, window=WINDOW)
        guard.request(1, "review")
        await asyncio.sleep(WINDOW * 2)
        assert guard.is_in_flight(1)

        guard.request(1, "done")
        await guard.wait_idle()

        assert sender.calls == [(1, TaskStatus.REVIEW)]
        assert guard.dropped == 1

        # Once resolved, the caller may retry
        sender.delay = 0
        guard.request(1, "done")
        await guard.wait_idle()
        assert sender.calls[-1] == (1, TaskStatus.DONE)

    asyncio.run(main())


def test_per_task_scope_lets_other_tasks_through():
    async def main():
        sender = RecordingSender(delay=WINDOW * 4)
        guard = StatusChangeGuard(sender, window=WINDOW)
        guard.request(1, "review")
        await asyncio.sleep(WINDOW * 2)
        guard.request(2, "review")
        await guard.wait_idle()

        assert sorted(sender.calls) == [(1, TaskStatus.REVIEW), (2, TaskStatus.REVIEW)]
        assert guard.dropped == 0

    asyncio.run(main())


def test_global_scope_drops_other_tasks_too():
    async def main():
        sender = RecordingSender(delay=WINDOW * 4)
        guard = StatusChangeGuard(sender, window=WINDOW, per_task=False)
        guard.request(1, "review")
        await asyncio.sleep(WINDOW * 2)
        assert guard.is_in_flight(2)
        guard.request(2, "review")
        await guard.wait_idle()

        assert sender.calls == [(1, TaskStatus.REVIEW)]
        assert guard.dropped == 1

    asyncio.run(main())


def test_failure_calls_recovery_hook():
    async def main():
        recovered = []

        async def on_failure(task_id, exc):
            recovered.append((task_id, str(exc)))

        guard = StatusChangeGuard(RecordingSender(fail=True), on_failure=on_failure, window=WINDOW)
        guard.request(4, "done")
        await guard.wait_idle()

        assert recovered == [(4, "server said no")]
        assert guard.failed == 1
        assert not guard.is_in_flight(4)

    asyncio.run(main())


def test_cancel_pending_sends_nothing():
    async def main():
        sender = RecordingSender()
        guard = StatusChangeGuard(sender, window=WINDOW)
        guard.request(1, "done")
        guard.cancel_pending()
        await guard.wait_idle()
        assert sender.calls == []

    asyncio.run(main())


def test_unknown_status_is_rejected_before_scheduling():
    async def main():
        sender = RecordingSender()
        guard = StatusChangeGuard(sender, window=WINDOW)
        with pytest.raises(ValueError):
            guard.request(1, "blocked")
        assert not guard._timers
        await guard.wait_idle()
        assert sender.calls == []

    asyncio.run(main())


def test_failing_recovery_hook_is_contained():
    async def main():
        async def on_failure(task_id, exc):
            raise httpx.ConnectError("server unreachable")

        guard = StatusChangeGuard(RecordingSender(fail=True), on_failure=on_failure, window=WINDOW)
        guard.request(4, "done")
        timers = list(guard._running)
        await asyncio.wait(timers)

        assert all(timer.exception() is None for timer in timers)
        assert guard.failed == 1
        assert not guard.is_in_flight(4)

        # The guard keeps working afterwards
        guard._sender = RecordingSender()
        guard.request(4, "review")
        await guard.wait_idle()
        assert guard._sender.calls == [(4, TaskStatus.REVIEW)]

    asyncio.run(main())
