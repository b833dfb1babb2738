from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DomainError
from ..domain.repositories import ReservationRepository
from ..usecases import reservations as reservation_usecase
from .errors import to_http


async def reservation_booking_key(
    session: AsyncSession, res_repo: ReservationRepository, reservation_id: int
) -> tuple[int, date]:
    """
    Find the (resource, day) a reservation occupies, in a short read of its own.

    Transitions take the booking lock for that key first and only then open
    the transaction that locks and changes the rows.
    """
    async with session.begin():
        try:
            return await reservation_usecase.booking_key_of(res_repo, reservation_id=reservation_id)
        except DomainError as exc:
            raise to_http(exc) from exc
