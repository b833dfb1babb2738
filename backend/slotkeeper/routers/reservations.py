import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_change_feed, get_clock, get_notifier, get_payment_provider, get_session
from ..domain.errors import DomainError
from ..domain.notifications import Notifier
from ..infrastructure.change_feed import ChangeFeed, reservation_event
from ..infrastructure.repositories import (
    SqlAlchemyBlockedDateRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyResourceRepository,
)
from ..models import PaymentStatus, Reservation
from ..schemas import (
    ContactIn,
    DayReservationCreate,
    PaymentEvent,
    ReservationCancel,
    ReservationRead,
    SlotReservationCreate,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.locks import booking_keys, booking_locks
from ..utils.time import Clock
from .errors import audit_failed, to_http
from .locking import reservation_booking_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["reservations"])


def _contact(payload: ContactIn) -> reservation_usecase.ContactDetails:
    return reservation_usecase.ContactDetails(
        name=payload.customer_name,
        phone=payload.customer_phone,
        email=payload.customer_email,
        party_size=payload.party_size,
        notes=payload.notes,
    )


async def _announce_created(reservations: list[Reservation], feed: ChangeFeed, notifier: Notifier) -> None:
    for reservation in reservations:
        feed.publish(
            reservation_event(
                "reservation.created",
                reservation.resource_id,
                reservation.day,
                reservation.id,
                reservation.status.value,
            )
        )
        try:
            await notifier.reservation_created(reservation)
        except Exception:
            # The reservation is committed; a failed message does not undo it.
            logger.exception("creation notice for reservation %s failed", reservation.id)


@router.post(
    "/resources/{resource_id}/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_slot_reservation(
    payload: SlotReservationCreate,
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ReservationRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)
    async with booking_locks.acquire(booking_keys(resource_id, [payload.day])):
        now = clock()
        async with session.begin():
            try:
                reservation = await reservation_usecase.create_slot_reservation(
                    resource_repo,
                    res_repo,
                    blocked_repo,
                    resource_id=resource_id,
                    day=payload.day,
                    start_time=payload.start_time,
                    offering_ids=payload.offering_ids,
                    contact=_contact(payload),
                    now=now,
                    hold_minutes=settings.hold_minutes,
                    default_buffer=settings.default_min_service_minutes,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            try:
                emit_audit_log(
                    action="reservation.created",
                    initiator="requester",
                    resource_id=resource_id,
                    reservation_id=reservation.id,
                    day=reservation.day,
                    status_to=reservation.status,
                    version=reservation.version,
                    extra={"start_time": payload.start_time, "duration_minutes": reservation.duration_minutes},
                )
            except RuntimeError as exc:
                raise audit_failed() from exc

    await _announce_created([reservation], feed, notifier)
    return ReservationRead.from_db(reservation=reservation, now=now)


@router.post(
    "/resources/{resource_id}/day-reservations",
    response_model=List[ReservationRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_day_reservations(
    payload: DayReservationCreate,
    resource_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> list[ReservationRead]:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)
    async with booking_locks.acquire(booking_keys(resource_id, payload.days)):
        now = clock()
        async with session.begin():
            try:
                created = await reservation_usecase.create_day_reservations(
                    resource_repo,
                    res_repo,
                    blocked_repo,
                    resource_id=resource_id,
                    days=payload.days,
                    contact=_contact(payload),
                    now=now,
                    hold_minutes=settings.hold_minutes,
                    max_dates=settings.max_selected_dates,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            try:
                for reservation in created:
                    emit_audit_log(
                        action="reservation.created",
                        initiator="requester",
                        resource_id=resource_id,
                        reservation_id=reservation.id,
                        day=reservation.day,
                        status_to=reservation.status,
                        version=reservation.version,
                        extra={"whole_day": True},
                    )
            except RuntimeError as exc:
                raise audit_failed() from exc

    await _announce_created(created, feed, notifier)
    return [ReservationRead.from_db(reservation=r, now=now) for r in created]


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    phone: str = Query(..., min_length=8, max_length=32),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(
            res_repo, reservation_id=reservation_id, customer_phone=phone
        )
    except DomainError as exc:
        raise to_http(exc) from exc
    return ReservationRead.from_db(reservation=reservation, now=clock())


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    payload: ReservationCancel,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
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
                    customer_phone=payload.customer_phone,
                    version=payload.version,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            if previous is not None:
                try:
                    emit_audit_log(
                        action="reservation.cancelled",
                        initiator="requester",
                        resource_id=reservation.resource_id,
                        reservation_id=reservation.id,
                        day=reservation.day,
                        status_from=previous,
                        status_to=reservation.status,
                        version=reservation.version,
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


@router.post("/reservations/{reservation_id}/payment", response_model=ReservationRead)
async def record_payment(
    payload: PaymentEvent,
    reservation_id: int = Path(..., ge=1),
    provider: str = Depends(get_payment_provider),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ReservationRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    resource_id, day = await reservation_booking_key(session, res_repo, reservation_id)
    async with booking_locks.acquire(booking_keys(resource_id, [day])):
        async with session.begin():
            try:
                reservation, previous = await reservation_usecase.record_payment(
                    resource_repo,
                    res_repo,
                    reservation_id=reservation_id,
                    payment_reference=payload.payment_reference,
                    payment_status=payload.status,
                    clock=clock,
                )
            except DomainError as exc:
                raise to_http(exc) from exc
            try:
                emit_audit_log(
                    action="reservation.paid" if payload.status == PaymentStatus.PAID else "reservation.payment_updated",
                    initiator="payment",
                    resource_id=reservation.resource_id,
                    reservation_id=reservation.id,
                    day=reservation.day,
                    status_from=previous,
                    status_to=reservation.status,
                    version=reservation.version,
                    extra={
                        "provider": provider,
                        "payment_status": payload.status.value,
                        "payment_reference": payload.payment_reference,
                    },
                )
            except RuntimeError as exc:
                raise audit_failed() from exc

    if previous is not None:
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
