import asyncio

import httpx
import pytest

from taskboard.models.task import TaskStatus
from taskboard.sync.api_client import BoardApiClient, BoardApiError
from taskboard.sync.board_sync import BoardSyncCore

WINDOW = 0.02


def api_for(app, user_id, role):
    return BoardApiClient(
        "http://testserver",
        user_id=user_id,
        role=role,
        transport=httpx.ASGITransport(app=app),
    )


async def seed_task(app, assignees=(7,)):
    async with api_for(app, 1, "admin") as admin:
        return await admin.create_task({
            "title": "Task T",
            "deadline": "2025-06-01T00:00:00Z",
            "assignees": list(assignees),
        })


def test_move_is_debounced_and_lands_on_server(board_app):
    async def main():
        task = await seed_task(board_app)
        core = BoardSyncCore(api_for(board_app, 7, "worker"), window=WINDOW)
        assert await core.resync() == 1

        for status in ("in_progress", "developed", "review"):
            core.move_task(task.id, status)
        await core.guard.wait_idle()

        assert core.guard.sent == 1
        assert core.mirror.get(task.id).status == TaskStatus.REVIEW
        async with api_for(board_app, 1, "admin") as admin:
            assert (await admin.get_task(task.id)).status == TaskStatus.REVIEW
        await core.close()

    asyncio.run(main())


def test_rejected_move_triggers_full_resync(board_app):
    async def main():
        task = await seed_task(board_app)
        core = BoardSyncCore(api_for(board_app, 8, "worker"), window=WINDOW)
        await core.resync()

        core.move_task(task.id, "done")
        await core.guard.wait_idle()

        assert core.guard.failed == 1
        assert core.resyncs == 2
        assert core.mirror.get(task.id).status == TaskStatus.UNASSIGNED
        await core.close()

    asyncio.run(main())


def test_observer_mirror_follows_broadcast_events(board_app):
    async def main():
        broadcaster = board_app.state.broadcaster
        observer = BoardSyncCore(api_for(board_app, 1, "admin"), window=WINDOW)
        await observer.resync()
        subscription = broadcaster.subscribe()

        task = await seed_task(board_app, assignees=(3,))
        async with api_for(board_app, 3, "worker") as worker:
            split = await worker.split(task.id, [
                {"title": "A", "deadline": "2025-06-02T00:00:00Z"},
                {"title": "B", "deadline": "2025-06-03T00:00:00Z"},
            ])

        async def messages():
            while subscription.pending():
                yield subscription.get_nowait().model_dump(mode="json")

        assert await observer.consume(messages()) == 2
        assert observer.mirror.get(task.id).status == TaskStatus.IN_PROGRESS
        assert {t.id for t in observer.mirror.by_status(TaskStatus.UNASSIGNED)} == set(split.child_ids)

        # A resync lands on the same state the events produced
        before = observer.mirror.snapshot()
        await observer.resync()
        assert set(observer.mirror.snapshot()) == set(before)
        assert observer.handle_message("not json") is None
        assert observer.handle_message({"type": "bogus"}) is None
        broadcaster.unsubscribe(subscription)
        await observer.close()

    asyncio.run(main())


def test_log_and_move(board_app):
    async def main():
        task = await seed_task(board_app)
        core = BoardSyncCore(api_for(board_app, 7, "worker"), window=WINDOW)
        await core.resync()

        result = await core.log_and_move(task.id, "done", 2.5, "draft done")
        assert result.time_log.hours_spent == 2.5
        assert core.mirror.get(task.id).status == TaskStatus.DONE

        assert await core.log_and_move(task.id, "review", 0) is None
        assert core.resyncs == 2
        assert core.mirror.get(task.id).status == TaskStatus.DONE

        effort = await core.api.list_time_logs(task.id)
        assert effort.total_time == 2.5
        await core.close()

    asyncio.run(main())


def test_api_errors_carry_server_codes(board_app):
    async def main():
        async with api_for(board_app, 1, "admin") as admin:
            with pytest.raises(BoardApiError) as exc_info:
                await admin.get_task(999)
        assert exc_info.value.code == "not_found"
        assert exc_info.value.status_code == 404

        async with api_for(board_app, 1, "owner") as stranger:
            with pytest.raises(BoardApiError) as exc_info:
                await stranger.list_tasks()
        assert exc_info.value.code == "unauthorized"

    asyncio.run(main())


class LostPostResponses(httpx.ASGITransport):
    """Delivers POSTs to the app, then loses the response."""

    async def handle_async_request(self, request):
        response = await super().handle_async_request(request)
        if request.method == "POST":
            await response.aclose()
            raise httpx.ReadTimeout("response lost", request=request)
        return response


def test_log_and_move_resyncs_after_transport_failure(board_app):
    async def main():
        task = await seed_task(board_app)
        api = BoardApiClient(
            "http://testserver",
            user_id=7,
            role="worker",
            transport=LostPostResponses(app=board_app),
        )
        core = BoardSyncCore(api, window=WINDOW)
        await core.resync()

        assert await core.log_and_move(task.id, "done", 1.0) is None
        assert core.resyncs == 2
        # The server committed; the resync picked it up
        assert core.mirror.get(task.id).status == TaskStatus.DONE
        assert (await core.api.list_time_logs(task.id)).total_time == 1.0
        await core.close()

    asyncio.run(main())
