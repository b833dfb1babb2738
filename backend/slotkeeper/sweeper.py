"""
Expired-hold sweeper.

Run standalone with `python -m slotkeeper.sweeper`, or set SWEEP_ON_STARTUP=1
to have the API process start it from its lifespan.
"""

import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import get_settings
from .domain.notifications import Notifier
from .infrastructure.notifier import LoggingNotifier
from .infrastructure.repositories import SqlAlchemyReservationRepository
from .usecases.sweep import sweep_expired
from .utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


async def run_sweep_once(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: Notifier,
    clock: Clock = utc_now,
) -> int:
    async with session_factory() as session:
        async with session.begin():
            notified = await sweep_expired(SqlAlchemyReservationRepository(session), notifier, now=clock())
    return len(notified)


async def run_sweeper(
    interval_seconds: int,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: Notifier | None = None,
    clock: Clock = utc_now,
) -> None:
    if session_factory is None:
        from .database import async_session

        session_factory = async_session
    notifier = notifier or LoggingNotifier()
    logger.info("sweeper started, interval=%ss", interval_seconds)
    while True:
        try:
            await run_sweep_once(session_factory, notifier, clock)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("sweep pass failed")
        await asyncio.sleep(interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    try:
        asyncio.run(run_sweeper(get_settings().sweep_interval_seconds))
    except KeyboardInterrupt:
        logger.info("sweeper stopped")
