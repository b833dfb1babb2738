from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    resource_id: int
    day: str
    kind: str
    reservation_id: Optional[int] = None
    status: Optional[str] = None

    def as_dict(self) -> dict[str, object]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class ChangeFeed:
    """
    In-process fan-out of committed writes, per resource.
    Slow subscribers lose the oldest events rather than blocking publishers.
    """

    def __init__(self, max_queue: int = 100) -> None:
        self._max_queue = max_queue
        self._subscribers: dict[int, set[asyncio.Queue[ChangeEvent]]] = defaultdict(set)

    def publish(self, event: ChangeEvent) -> None:
        for queue in list(self._subscribers.get(event.resource_id, ())):
            if queue.full():
                queue.get_nowait()
                logger.warning("change feed subscriber for resource %s is lagging", event.resource_id)
            queue.put_nowait(event)

    def subscriber_count(self, resource_id: int) -> int:
        return len(self._subscribers.get(resource_id, ()))

    async def subscribe(self, resource_id: int) -> AsyncIterator[ChangeEvent]:
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers[resource_id].add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[resource_id].discard(queue)
            if not self._subscribers[resource_id]:
                del self._subscribers[resource_id]


def reservation_event(kind: str, resource_id: int, day: date, reservation_id: int, status: str) -> ChangeEvent:
    return ChangeEvent(
        resource_id=resource_id,
        day=day.isoformat(),
        kind=kind,
        reservation_id=reservation_id,
        status=status,
    )


change_feed = ChangeFeed()
