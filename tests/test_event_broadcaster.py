import asyncio

from taskboard.schemas.events import ActorRef, DomainEvent, EventType
from taskboard.services.event_broadcaster import EventBroadcaster


def make_event(task_id: int, event_type: EventType = EventType.TASK_UPDATED) -> DomainEvent:
    return DomainEvent(type=event_type, task_id=task_id, actor=ActorRef(id=1, role="admin"))


def test_fan_out_preserves_publish_order():
    async def main():
        broadcaster = EventBroadcaster(queue_size=8)
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()

        for task_id in (1, 2, 1):
            assert broadcaster.publish(make_event(task_id)) == 2

        for subscription in (first, second):
            received = [(await subscription.get()).task_id for _ in range(3)]
            assert received == [1, 2, 1]
        assert broadcaster.published == 3

    asyncio.run(main())


def test_publish_without_observers_is_a_no_op():
    broadcaster = EventBroadcaster()
    assert broadcaster.publish(make_event(5)) == 0
    assert broadcaster.published == 1


def test_late_subscriber_misses_earlier_events():
    async def main():
        broadcaster = EventBroadcaster()
        broadcaster.publish(make_event(1))
        late = broadcaster.subscribe()
        broadcaster.publish(make_event(2))
        assert (await late.get()).task_id == 2
        assert late.pending() == 0

    asyncio.run(main())


def test_slow_observer_is_dropped_without_blocking_others():
    async def main():
        broadcaster = EventBroadcaster(queue_size=2)
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()

        broadcaster.publish(make_event(1))
        broadcaster.publish(make_event(2))
        assert (await fast.get()).task_id == 1
        assert (await fast.get()).task_id == 2

        # slow still holds two events; the third overflows it
        delivered = broadcaster.publish(make_event(3))
        assert delivered == 1
        assert slow.closed and slow.overflowed
        assert broadcaster.subscriber_count == 1
        assert (await fast.get()).task_id == 3

        # Whatever is left ends with the close sentinel
        remaining = []
        while True:
            event = await slow.get()
            if event is None:
                break
            remaining.append(event.task_id)
        assert remaining == [2]

    asyncio.run(main())


def test_unsubscribe_wakes_pending_reader():
    async def main():
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe()
        reader = asyncio.ensure_future(subscription.get())
        await asyncio.sleep(0)
        broadcaster.unsubscribe(subscription)
        assert await asyncio.wait_for(reader, timeout=1) is None
        assert not subscription.overflowed
        assert broadcaster.subscriber_count == 0

    asyncio.run(main())
