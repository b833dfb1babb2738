from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

from ..domain import full_day, lifecycle
from ..domain.availability import DEFAULT_MIN_SERVICE_MINUTES, min_buffer_minutes, requested_duration
from ..domain.conflicts import BookedInterval, is_slot_free
from ..domain.errors import (
    BookingModeError,
    NotPendingError,
    ReservationNotFoundError,
    ResourceClosedError,
    SlotTakenError,
)
from ..domain.intervals import format_clock, parse_clock, to_time
from ..domain.lifecycle import EffectiveStatus
from ..domain.repositories import BlockedDateRepository, ReservationRepository, ResourceRepository
from ..domain.schedule import slots_for_day
from ..models import PaymentStatus, Reservation, ReservationStatus, Resource, ResourceKind
from ..utils.time import Clock, local_minute_of_day, local_today
from .resources import load_resource, load_week, require_owner


@dataclass(frozen=True)
class ContactDetails:
    name: str
    phone: str
    email: Optional[str] = None
    party_size: int = 1
    notes: Optional[str] = None


def normalize_phone(phone: str) -> str:
    return "".join(ch for ch in phone if ch.isdigit())


def _ensure_not_past(day: date, now: datetime, start_minute: Optional[int] = None) -> None:
    today = local_today(now)
    if day < today:
        raise ResourceClosedError(f"{day.isoformat()} is in the past")
    if start_minute is not None and day == today and start_minute <= local_minute_of_day(now):
        raise ResourceClosedError("requested time has already passed")


async def create_slot_reservation(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    day: date,
    start_time: str,
    offering_ids: Sequence[int],
    contact: ContactDetails,
    now: datetime,
    hold_minutes: int = lifecycle.HOLD_MINUTES,
    default_buffer: int = DEFAULT_MIN_SERVICE_MINUTES,
) -> Reservation:
    """
    Admit a slot reservation. Must run inside the caller's transaction and while
    holding the (resource, day) booking lock; the conflict check below is the
    authoritative one, whatever availability the caller saw earlier.
    """
    resource = await load_resource(resource_repo, resource_id, for_update=True)
    if resource.kind != ResourceKind.PROFESSIONAL:
        raise BookingModeError("resource is booked by whole days")

    offerings = await resource_repo.list_offerings(resource.id)
    duration = requested_duration(offering_ids, offerings)
    start_minute = parse_clock(start_time)

    if await blocked_repo.is_blocked(resource.id, day):
        raise ResourceClosedError(f"{day.isoformat()} is blocked")
    week = await load_week(resource_repo, resource)
    day_slots = slots_for_day(week, day)
    if not day_slots:
        raise ResourceClosedError(f"closed on {day.isoformat()}")
    if format_clock(start_minute) not in day_slots:
        raise ResourceClosedError(f"{start_time} is not a bookable start time")
    _ensure_not_past(day, now, start_minute)
    end_time = to_time(start_minute + duration)

    existing = [
        BookedInterval.from_reservation(r) for r in await res_repo.list_for_day(resource.id, day) if not r.whole_day
    ]
    buffer = min_buffer_minutes(offerings, default_buffer)
    if not is_slot_free(start_minute, duration, existing, buffer, now=now):
        raise SlotTakenError(f"{start_time} on {day.isoformat()} is no longer available")

    status, expires_at = lifecycle.initial_state(now, auto_confirm=resource.auto_confirm, hold_minutes=hold_minutes)
    return await res_repo.create(
        resource_id=resource.id,
        day=day,
        whole_day=False,
        start_time=to_time(start_minute),
        end_time=end_time,
        duration_minutes=duration,
        offering_ids=list(offering_ids),
        customer_name=contact.name,
        customer_phone=contact.phone,
        customer_email=contact.email,
        party_size=contact.party_size,
        notes=contact.notes,
        status=status,
        expires_at=expires_at,
    )


async def create_day_reservations(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    days: Sequence[date],
    contact: ContactDetails,
    now: datetime,
    hold_minutes: int = lifecycle.HOLD_MINUTES,
    max_dates: int = full_day.MAX_SELECTED_DATES,
) -> list[Reservation]:
    """Admit one whole-day reservation per selected day; any unavailable day rejects them all."""
    selected = full_day.validate_selection(days, max_dates)
    resource = await load_resource(resource_repo, resource_id, for_update=True)
    if resource.kind != ResourceKind.VENUE:
        raise BookingModeError("resource is booked by time slots")

    for day in selected:
        _ensure_not_past(day, now)
        blocked = await blocked_repo.list_for_resource(resource.id, day, day)
        existing = await res_repo.list_for_day(resource.id, day)
        if not full_day.is_date_selectable(day, existing, {b.day for b in blocked}, now=now):
            raise SlotTakenError(f"{day.isoformat()} is no longer available")

    status, expires_at = lifecycle.initial_state(now, auto_confirm=resource.auto_confirm, hold_minutes=hold_minutes)
    created: list[Reservation] = []
    for day in selected:
        created.append(
            await res_repo.create(
                resource_id=resource.id,
                day=day,
                whole_day=True,
                start_time=None,
                end_time=None,
                duration_minutes=None,
                offering_ids=[],
                customer_name=contact.name,
                customer_phone=contact.phone,
                customer_email=contact.email,
                party_size=contact.party_size,
                notes=contact.notes,
                status=status,
                expires_at=expires_at,
            )
        )
    return created


def _same_phone(given: Optional[str], stored: str) -> bool:
    return given is not None and normalize_phone(given) == normalize_phone(stored)


async def get_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    customer_phone: Optional[str] = None,
) -> Reservation:
    """Look a reservation up; with `customer_phone`, only the requester who booked it sees it."""
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    if customer_phone is not None and not _same_phone(customer_phone, reservation.customer_phone):
        raise ReservationNotFoundError("reservation not found")
    return reservation


async def booking_key_of(res_repo: ReservationRepository, *, reservation_id: int) -> tuple[int, date]:
    """The (resource, day) a reservation occupies; transitions lock on it before touching the row."""
    reservation = await get_reservation(res_repo, reservation_id=reservation_id)
    return reservation.resource_id, reservation.day


async def _lock_rows(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    reservation_id: int,
) -> tuple[Resource, Reservation]:
    # Resource row first, the same order admission locks in.
    resource_id, _ = await booking_key_of(res_repo, reservation_id=reservation_id)
    resource = await load_resource(resource_repo, resource_id, for_update=True, require_active=False)
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return resource, reservation


async def confirm_reservation(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    operator_id: int,
    clock: Clock,
    version: Optional[int] = None,
) -> tuple[Reservation, ReservationStatus]:
    """
    Confirm a live hold. The caller holds the reservation's booking lock; the
    clock is read only once both rows are locked, so the expiry check sees the
    same instant a competing admission would.
    """
    resource, reservation = await _lock_rows(resource_repo, res_repo, reservation_id)
    if resource.owner_id != operator_id:
        raise ReservationNotFoundError("reservation not found")
    lifecycle.check_version(reservation, version)
    previous = lifecycle.confirm(reservation, clock())
    return await res_repo.save(reservation), previous


async def cancel_reservation(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    clock: Clock,
    operator_id: Optional[int] = None,
    customer_phone: Optional[str] = None,
    version: Optional[int] = None,
) -> tuple[Reservation, Optional[ReservationStatus]]:
    """
    Cancel on behalf of the operator (operator_id) or the requester (customer_phone).
    Already-cancelled reservations come back unchanged with a None previous status.
    """
    resource, reservation = await _lock_rows(resource_repo, res_repo, reservation_id)
    if operator_id is not None:
        if resource.owner_id != operator_id:
            raise ReservationNotFoundError("reservation not found")
    elif not _same_phone(customer_phone, reservation.customer_phone):
        raise ReservationNotFoundError("reservation not found")

    if reservation.status == ReservationStatus.CANCELLED:
        return reservation, None
    lifecycle.check_version(reservation, version)
    previous = lifecycle.cancel(reservation, clock())
    return await res_repo.save(reservation), previous


async def record_payment(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    payment_reference: str,
    payment_status: PaymentStatus,
    clock: Clock,
) -> tuple[Reservation, Optional[ReservationStatus]]:
    """
    Store a payment event. A `paid` event confirms a live hold exactly like an
    operator confirmation; returns the status it confirmed from, else None.
    """
    _, reservation = await _lock_rows(resource_repo, res_repo, reservation_id)
    if reservation.payment_reference not in (None, payment_reference):
        raise NotPendingError("reservation already carries a different payment")
    reservation.payment_reference = payment_reference
    previous: Optional[ReservationStatus] = None
    if payment_status == PaymentStatus.PAID and reservation.status != ReservationStatus.CONFIRMED:
        previous = lifecycle.confirm(reservation, clock())
    reservation.payment_status = payment_status
    return await res_repo.save(reservation), previous


async def list_day_reservations(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    *,
    resource_id: int,
    operator_id: int,
    day: date,
    now: datetime,
) -> list[tuple[Reservation, EffectiveStatus]]:
    resource = await load_resource(resource_repo, resource_id, require_active=False)
    require_owner(resource, operator_id)
    rows = await res_repo.list_for_day(resource.id, day)
    return [(r, lifecycle.effective_status(r, now)) for r in rows]
