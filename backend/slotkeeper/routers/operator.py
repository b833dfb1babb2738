from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_change_feed, get_clock, get_operator_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.change_feed import ChangeEvent, ChangeFeed, reservation_event
from ..infrastructure.repositories import (
    SqlAlchemyBlockedDateRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyResourceRepository,
)
from ..schemas import (
    BlockedDateCreate,
    BlockedDateRead,
    OfferingRead,
    OfferingsUpdate,
    ReservationCancel,
    ReservationRead,
    ReservationTransition,
    ResourceCreate,
    ResourceRead,
    ScheduleRead,
    ScheduleUpdate,
    schedule_to_domain,
)
from ..usecases import blocked_dates as blocked_usecase
from ..usecases import reservations as reservation_usecase
from ..usecases import resources as resource_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.locks import booking_keys, booking_locks
from ..utils.time import Clock
from .errors import audit_failed, to_http
from .locking import reservation_booking_key

router = APIRouter(prefix="/operator", tags=["operator"], dependencies=[Depends(get_operator_id)])


@router.post("/resources", response_model=ResourceRead, status_code=status.HTTP_201_CREATED)
async def create_resource(
    payload: ResourceCreate,
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
    settings: Settings = Depends(get_settings),
) -> ResourceRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    async with session.begin():
        try:
            resource, offerings = await resource_usecase.create_resource(
                resource_repo,
                owner_id=operator_id,
                name=payload.name.strip(),
                kind=payload.kind,
                slot_granularity=payload.slot_granularity or settings.default_slot_granularity,
                break_minutes=payload.break_minutes,
                auto_confirm=payload.auto_confirm,
                schedule=schedule_to_domain(payload.schedule) if payload.schedule else None,
                offerings=[o.as_tuple() for o in payload.offerings],
            )
        except DomainError as exc:
            raise to_http(exc) from exc
    return ResourceRead.from_db(resource=resource, offerings=offerings)


@router.put("/resources/{resource_id}/schedule", response_model=ScheduleRead)
async def update_schedule(
    payload: ScheduleUpdate,
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
) -> ScheduleRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    async with session.begin():
        try:
            week = await resource_usecase.update_schedule(
                resource_repo,
                resource_id=resource_id,
                operator_id=operator_id,
                days=payload.to_domain(),
                slot_granularity=payload.slot_granularity,
                break_minutes=payload.break_minutes,
            )
        except DomainError as exc:
            raise to_http(exc) from exc
    return ScheduleRead.from_domain(week)


@router.put("/resources/{resource_id}/offerings", response_model=List[OfferingRead])
async def replace_offerings(
    payload: OfferingsUpdate,
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
) -> list[OfferingRead]:
    resource_repo = SqlAlchemyResourceRepository(session)
    async with session.begin():
        try:
            offerings = await resource_usecase.replace_offerings(
                resource_repo,
                resource_id=resource_id,
                operator_id=operator_id,
                offerings=[o.as_tuple() for o in payload.offerings],
            )
        except DomainError as exc:
            raise to_http(exc) from exc
    return [OfferingRead.from_db(offering=o) for o in offerings]


@router.post("/resources/{resource_id}/deactivate", response_model=ResourceRead)
async def deactivate_resource(
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
) -> ResourceRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    async with session.begin():
        try:
            resource = await resource_usecase.deactivate_resource(
                resource_repo,
                resource_id=resource_id,
                operator_id=operator_id,
            )
        except DomainError as exc:
            raise to_http(exc) from exc
    return ResourceRead.from_db(resource=resource)


@router.get("/resources/{resource_id}/reservations", response_model=List[ReservationRead])
async def list_day_reservations(
    resource_id: int = Path(..., ge=1),
    day: date = Query(...),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
    clock: Clock = Depends(get_clock),
) -> list[ReservationRead]:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    now = clock()
    try:
        rows = await reservation_usecase.list_day_reservations(
            resource_repo,
            res_repo,
            resource_id=resource_id,
            operator_id=operator_id,
            day=day,
            now=now,
        )
    except DomainError as exc:
        raise to_http(exc) from exc
    return [ReservationRead.from_db(reservation=res, now=now) for res, _ in rows]


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationRead)
async def confirm_reservation(
    payload: ReservationTransition,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
    clock: Clock = Depends(get_clock),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ReservationRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    resource_id, day = await reservation_booking_key(session, res_repo, reservation_id)
    async with booking_locks.acquire(booking_keys(resource_id, [day])):
        async with session.begin():
            try:
                reservation, previous = await reservation_usecase.confirm_reservation(
                    resource_repo,
                    res_repo,
                    reservation_id=reservation_id,
                    operator_id=operator_id,
                    clock=clock,
                    version=payload.version,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            try:
                emit_audit_log(
                    action="reservation.confirmed",
                    initiator="operator",
                    resource_id=reservation.resource_id,
                    reservation_id=reservation.id,
                    day=reservation.day,
                    status_from=previous,
                    status_to=reservation.status,
                    version=reservation.version,
                    extra={"operator_id": operator_id},
                )
            except RuntimeError as exc:
                raise audit_failed() from exc

    feed.publish(
        reservation_event(
            "reservation.confirmed",
            reservation.resource_id,
            reservation.day,
            reservation.id,
            reservation.status.value,
        )
    )
    return ReservationRead.from_db(reservation=reservation, now=clock())


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    payload: ReservationCancel,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
    clock: Clock = Depends(get_clock),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ReservationRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    resource_id, day = await reservation_booking_key(session, res_repo, reservation_id)
    async with booking_locks.acquire(booking_keys(resource_id, [day])):
        async with session.begin():
            try:
                reservation, previous = await reservation_usecase.cancel_reservation(
                    resource_repo,
                    res_repo,
                    reservation_id=reservation_id,
                    clock=clock,
                    operator_id=operator_id,
                    version=payload.version,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            if previous is not None:
                try:
                    emit_audit_log(
                        action="reservation.cancelled",
                        initiator="operator",
                        resource_id=reservation.resource_id,
                        reservation_id=reservation.id,
                        day=reservation.day,
                        status_from=previous,
                        status_to=reservation.status,
                        version=reservation.version,
                        extra={"operator_id": operator_id},
                    )
                except RuntimeError as exc:
                    raise audit_failed() from exc

    if previous is not None:
        feed.publish(
            reservation_event(
                "reservation.cancelled",
                reservation.resource_id,
                reservation.day,
                reservation.id,
                reservation.status.value,
            )
        )
    return ReservationRead.from_db(reservation=reservation, now=clock())


@router.get("/resources/{resource_id}/blocked-dates", response_model=List[BlockedDateRead])
async def list_blocked_dates(
    resource_id: int = Path(..., ge=1),
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
) -> list[BlockedDateRead]:
    resource_repo = SqlAlchemyResourceRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)
    try:
        rows = await blocked_usecase.list_blocked_dates(
            resource_repo,
            blocked_repo,
            resource_id=resource_id,
            operator_id=operator_id,
            start=start,
            end=end,
        )
    except DomainError as exc:
        raise to_http(exc) from exc
    return [BlockedDateRead.from_db(blocked=b) for b in rows]


@router.post(
    "/resources/{resource_id}/blocked-dates",
    response_model=BlockedDateRead,
    status_code=status.HTTP_201_CREATED,
)
async def block_date(
    payload: BlockedDateCreate,
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
    clock: Clock = Depends(get_clock),
    feed: ChangeFeed = Depends(get_change_feed),
) -> BlockedDateRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)
    try:
        async with session.begin():
            try:
                blocked = await blocked_usecase.block_date(
                    resource_repo,
                    blocked_repo,
                    resource_id=resource_id,
                    operator_id=operator_id,
                    day=payload.day,
                    now=clock(),
                    reason=payload.reason,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            try:
                emit_audit_log(
                    action="blocked_date.created",
                    initiator="operator",
                    resource_id=resource_id,
                    day=payload.day,
                    message=payload.reason,
                    extra={"operator_id": operator_id},
                )
            except RuntimeError as exc:
                raise audit_failed() from exc
    except IntegrityError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="day already blocked") from exc

    feed.publish(ChangeEvent(resource_id=resource_id, day=payload.day.isoformat(), kind="blocked_date.created"))
    return BlockedDateRead.from_db(blocked=blocked)


@router.delete("/resources/{resource_id}/blocked-dates/{day}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_date(
    day: date,
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    operator_id: int = Depends(get_operator_id),
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    resource_repo = SqlAlchemyResourceRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)
    async with session.begin():
        try:
            removed = await blocked_usecase.unblock_date(
                resource_repo,
                blocked_repo,
                resource_id=resource_id,
                operator_id=operator_id,
                day=day,
            )
        except DomainError as exc:
            raise to_http(exc) from exc
        if not removed:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="day is not blocked")
        try:
            emit_audit_log(
                action="blocked_date.deleted",
                initiator="operator",
                resource_id=resource_id,
                day=day,
                extra={"operator_id": operator_id},
            )
        except RuntimeError as exc:
            raise audit_failed() from exc

    feed.publish(ChangeEvent(resource_id=resource_id, day=day.isoformat(), kind="blocked_date.deleted"))
