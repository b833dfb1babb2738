from typing import Protocol

from ..models import Reservation


class Notifier(Protocol):
    async def reservation_created(self, reservation: Reservation) -> None: ...

    async def reservation_expired(self, reservation: Reservation) -> None: ...
