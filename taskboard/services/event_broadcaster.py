"""
In-process fan-out of domain events to connected observers.

Delivery is best-effort: publish never blocks the writer. An observer that
cannot keep up is dropped and has to reconnect and resync, which is the same
recovery path as any other disconnect.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Dict, Optional

from taskboard.schemas.events import DomainEvent

logger = logging.getLogger(__name__)


class Subscription:
    """One observer's view of the event stream."""

    def __init__(self, subscriber_id: int, maxsize: int) -> None:
        self.id = subscriber_id
        self._queue: asyncio.Queue[Optional[DomainEvent]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.overflowed = False

    def _offer(self, event: DomainEvent) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def _close(self, overflowed: bool = False) -> None:
        if self.closed:
            return
        self.closed = True
        self.overflowed = overflowed
        # Wake a pending get(); drain one slot if the queue is full
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def get(self) -> Optional[DomainEvent]:
        """Next event, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def get_nowait(self) -> Optional[DomainEvent]:
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()


class EventBroadcaster:
    """
    Fan-out hub shared by every request handler of one process.

    Events are offered to subscribers in publish order, so per-task commit
    order is preserved as long as services publish right after commit.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._subscribers: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(next(self._ids), self.queue_size)
        self._subscribers[subscription.id] = subscription
        logger.info("Observer %s connected (%s total)", subscription.id, self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscribers.pop(subscription.id, None) is not None:
            subscription._close()
            logger.info("Observer %s disconnected (%s total)", subscription.id, self.subscriber_count)

    def publish(self, event: DomainEvent) -> int:
        """
        Offer an event to every current observer.

        Returns:
            Number of observers that accepted it
        """
        self.published += 1
        delivered = 0
        for subscription in list(self._subscribers.values()):
            if subscription._offer(event):
                delivered += 1
                continue
            logger.warning(
                "Observer %s fell behind; dropping it (event %s for task %s)",
                subscription.id,
                event.type.value,
                event.task_id,
            )
            self._subscribers.pop(subscription.id, None)
            subscription._close(overflowed=True)
        logger.debug("Published %s for task %s to %s observers", event.type.value, event.task_id, delivered)
        return delivered

    def close(self) -> None:
        for subscription in list(self._subscribers.values()):
            self.unsubscribe(subscription)
