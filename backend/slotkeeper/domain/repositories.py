from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Protocol, Sequence

from ..models import BlockedDate, Offering, PaymentStatus, Reservation, ReservationStatus, Resource, ResourceKind
from .schedule import DaySchedule, ScheduleRow


class ResourceRepository(Protocol):
    async def get(self, resource_id: int) -> Resource | None: ...

    async def get_for_update(self, resource_id: int) -> Resource | None: ...

    async def create(
        self,
        *,
        owner_id: int,
        name: str,
        kind: ResourceKind,
        slot_granularity: int,
        break_minutes: int,
        auto_confirm: bool,
    ) -> Resource: ...

    async def list_schedule(self, resource_id: int) -> list[ScheduleRow]: ...

    async def replace_schedule(self, resource_id: int, days: dict[int, DaySchedule]) -> None: ...

    async def list_offerings(self, resource_id: int) -> list[Offering]: ...

    async def replace_offerings(self, resource_id: int, offerings: Sequence[tuple[str, int, bool]]) -> list[Offering]: ...

    async def save(self, resource: Resource) -> Resource: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def list_for_day(self, resource_id: int, day: date) -> list[Reservation]: ...

    async def list_for_range(self, resource_id: int, start: date, end: date) -> list[Reservation]: ...

    async def create(
        self,
        *,
        resource_id: int,
        day: date,
        whole_day: bool,
        start_time: Optional[time],
        end_time: Optional[time],
        duration_minutes: Optional[int],
        offering_ids: list[int],
        customer_name: str,
        customer_phone: str,
        customer_email: Optional[str],
        party_size: int,
        notes: Optional[str],
        status: ReservationStatus,
        expires_at: Optional[datetime],
        payment_reference: Optional[str] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Reservation: ...

    async def list_expired_unnotified(self, now: datetime) -> list[Reservation]: ...

    async def save(self, reservation: Reservation) -> Reservation: ...


class BlockedDateRepository(Protocol):
    async def list_for_resource(
        self, resource_id: int, start: date | None = None, end: date | None = None
    ) -> list[BlockedDate]: ...

    async def is_blocked(self, resource_id: int, day: date) -> bool: ...

    async def create(self, resource_id: int, day: date, reason: str | None) -> BlockedDate: ...

    async def delete(self, resource_id: int, day: date) -> bool: ...
