from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (OperationalError, InterfaceError)


async def retry_read(
    read: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.2,
    on_retry: Optional[Callable[[], Awaitable[None]]] = None,
) -> T:
    """
    Run a read-only store call, retrying transient connection failures with
    exponential backoff. Only for reads: writes are not idempotent.
    """
    for attempt in range(attempts):
        try:
            return await read()
        except TRANSIENT_ERRORS as exc:
            if attempt == attempts - 1:
                raise
            delay = base_delay * (2**attempt)
            logger.warning("transient store error on read (attempt %d/%d): %s", attempt + 1, attempts, exc)
            if on_retry is not None:
                await on_retry()
            await asyncio.sleep(delay)
    raise RuntimeError("retry_read called with attempts < 1")
