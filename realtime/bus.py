from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass


logger = logging.getLogger(__name__)

QUEUE_SIZE = 200


@dataclass(frozen=True)
class Event:
    type: str
    data: dict


class EventBus:
    """Fan-out of monitor events to SSE subscribers.

    Each subscriber gets a bounded queue. A full queue drops its oldest
    event so a slow client never blocks the refresh loop.
    """

    def __init__(self, queue_size: int = QUEUE_SIZE) -> None:
        self._lock = asyncio.Lock()
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[Event]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> asyncio.Queue[Event]:
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        async with self._lock:
            self._subscribers.discard(queue)

    async def publish(self, event: Event) -> None:
        async with self._lock:
            subscribers = list(self._subscribers)
        for queue in subscribers:
            if queue.full():
                dropped = queue.get_nowait()
                logger.debug("subscriber queue full, dropped %s", dropped.type)
            queue.put_nowait(event)
