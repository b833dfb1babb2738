from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Hashable, Iterable

BookingKey = tuple[int, date]


class KeyedLock:
    """One asyncio.Lock per key; entries are dropped once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._locks

    @asynccontextmanager
    async def acquire(self, keys: Iterable[Hashable]) -> AsyncIterator[None]:
        # Sorted acquisition order keeps multi-key holders from deadlocking each other.
        ordered = sorted(set(keys))
        registered: list[Hashable] = []
        acquired: list[Hashable] = []
        try:
            for key in ordered:
                lock = self._locks.setdefault(key, asyncio.Lock())
                self._waiters[key] = self._waiters.get(key, 0) + 1
                registered.append(key)
                await lock.acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in registered:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]


def booking_keys(resource_id: int, days: Iterable[date]) -> list[BookingKey]:
    return [(resource_id, day) for day in days]


booking_locks = KeyedLock()
