from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import List, Optional, Sequence

from sqlalchemy import Select, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.intervals import format_clock, to_minutes, to_time
from ..domain.repositories import BlockedDateRepository, ReservationRepository, ResourceRepository
from ..domain.schedule import DaySchedule, ScheduleRow
from ..models import (
    BlockedDate,
    Offering,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Resource,
    ResourceKind,
    ScheduleDay,
)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyResourceRepository(ResourceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, resource_id: int) -> Resource | None:
        return await self.session.get(Resource, resource_id)

    async def get_for_update(self, resource_id: int) -> Resource | None:
        stmt = (
            select(Resource)
            .where(Resource.id == resource_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Resource) else None

    async def create(
        self,
        *,
        owner_id: int,
        name: str,
        kind: ResourceKind,
        slot_granularity: int,
        break_minutes: int,
        auto_confirm: bool,
    ) -> Resource:
        now = _utc_now_naive()
        resource = Resource(
            owner_id=owner_id,
            name=name,
            kind=kind,
            is_active=True,
            slot_granularity=slot_granularity,
            break_minutes=break_minutes,
            auto_confirm=auto_confirm,
            created_at=now,
            updated_at=now,
        )
        self.session.add(resource)
        await self.session.flush()
        return resource

    async def list_schedule(self, resource_id: int) -> List[ScheduleRow]:
        stmt = select(ScheduleDay).where(ScheduleDay.resource_id == resource_id).order_by(ScheduleDay.weekday)
        rows = await self.session.scalars(stmt)
        return [
            ScheduleRow(
                weekday=row.weekday,
                is_open=row.is_open,
                opens_at=format_clock(to_minutes(row.opens_at)),
                closes_at=format_clock(to_minutes(row.closes_at)),
            )
            for row in rows
        ]

    async def replace_schedule(self, resource_id: int, days: dict[int, DaySchedule]) -> None:
        await self.session.execute(delete(ScheduleDay).where(ScheduleDay.resource_id == resource_id))
        for weekday, day in sorted(days.items()):
            self.session.add(
                ScheduleDay(
                    resource_id=resource_id,
                    weekday=weekday,
                    is_open=day.is_open,
                    opens_at=to_time(to_minutes(day.opens_at)),
                    closes_at=to_time(to_minutes(day.closes_at)),
                )
            )
        await self.session.flush()

    async def list_offerings(self, resource_id: int) -> List[Offering]:
        stmt = select(Offering).where(Offering.resource_id == resource_id).order_by(Offering.id)
        return list(await self.session.scalars(stmt))

    async def replace_offerings(self, resource_id: int, offerings: Sequence[tuple[str, int, bool]]) -> List[Offering]:
        # Existing rows are deactivated rather than deleted; reservations keep their offering ids.
        for existing in await self.list_offerings(resource_id):
            existing.is_active = False
        created = [
            Offering(resource_id=resource_id, name=name, duration_minutes=duration, is_active=active)
            for name, duration, active in offerings
        ]
        self.session.add_all(created)
        await self.session.flush()
        return created

    async def save(self, resource: Resource) -> Resource:
        resource.updated_at = _utc_now_naive()
        self.session.add(resource)
        await self.session.flush()
        return resource


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: int) -> Reservation | None:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        # Transitions read the row once before locking it; the locked read must refresh it.
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def list_for_day(self, resource_id: int, day: date) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = (
            select(Reservation)
            .where(Reservation.resource_id == resource_id, Reservation.day == day)
            .order_by(Reservation.start_time, Reservation.id)
        )
        return list(await self.session.scalars(stmt))

    async def list_for_range(self, resource_id: int, start: date, end: date) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = (
            select(Reservation)
            .where(
                Reservation.resource_id == resource_id,
                Reservation.day >= start,
                Reservation.day <= end,
                Reservation.status != ReservationStatus.CANCELLED,
            )
            .order_by(Reservation.day)
        )
        return list(await self.session.scalars(stmt))

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
    ) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            resource_id=resource_id,
            day=day,
            whole_day=whole_day,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            offering_ids=list(offering_ids),
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=customer_email,
            party_size=party_size,
            notes=notes,
            status=status,
            expires_at=expires_at,
            expiry_notice_sent=False,
            payment_reference=payment_reference,
            payment_status=payment_status,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_expired_unnotified(self, now: datetime) -> List[Reservation]:
        cutoff = now.astimezone(timezone.utc).replace(tzinfo=None) if now.tzinfo else now
        stmt: Select[tuple[Reservation]] = (
            select(Reservation)
            .where(
                Reservation.status == ReservationStatus.PENDING,
                Reservation.expires_at.is_not(None),
                Reservation.expires_at <= cutoff,
                Reservation.expiry_notice_sent.is_(False),
            )
            .order_by(Reservation.expires_at)
            .with_for_update(skip_locked=True)
        )
        return list(await self.session.scalars(stmt))

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation


class SqlAlchemyBlockedDateRepository(BlockedDateRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_resource(
        self, resource_id: int, start: date | None = None, end: date | None = None
    ) -> List[BlockedDate]:
        stmt = select(BlockedDate).where(BlockedDate.resource_id == resource_id)
        if start is not None:
            stmt = stmt.where(BlockedDate.day >= start)
        if end is not None:
            stmt = stmt.where(BlockedDate.day <= end)
        return list(await self.session.scalars(stmt.order_by(BlockedDate.day)))

    async def is_blocked(self, resource_id: int, day: date) -> bool:
        stmt = select(BlockedDate.id).where(BlockedDate.resource_id == resource_id, BlockedDate.day == day)
        return await self.session.scalar(stmt) is not None

    async def create(self, resource_id: int, day: date, reason: str | None) -> BlockedDate:
        blocked = BlockedDate(resource_id=resource_id, day=day, reason=reason, created_at=_utc_now_naive())
        self.session.add(blocked)
        await self.session.flush()
        return blocked

    async def delete(self, resource_id: int, day: date) -> bool:
        result = await self.session.execute(
            delete(BlockedDate).where(BlockedDate.resource_id == resource_id, BlockedDate.day == day)
        )
        return bool(result.rowcount)
