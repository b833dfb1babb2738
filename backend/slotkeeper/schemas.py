from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from .domain.intervals import format_clock, to_minutes
from .domain.lifecycle import EffectiveStatus, effective_status
from .domain.schedule import WEEKDAYS, DaySchedule, WeeklySchedule
from .models import BlockedDate, Offering, PaymentStatus, Reservation, ReservationStatus, Resource, ResourceKind
from .utils.time import utc_naive_to_local

CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class DayScheduleIn(BaseModel):
    weekday: Weekday
    is_open: bool
    opens_at: str = Field(pattern=CLOCK_PATTERN)
    closes_at: str = Field(pattern=CLOCK_PATTERN)


class ScheduleUpdate(BaseModel):
    slot_granularity: int = Field(ge=1, le=240)
    break_minutes: int = Field(default=0, ge=0, le=240)
    days: list[DayScheduleIn] = Field(min_length=1, max_length=7)

    @field_validator("days")
    @classmethod
    def _unique_weekdays(cls, days: list[DayScheduleIn]) -> list[DayScheduleIn]:
        if len({d.weekday for d in days}) != len(days):
            raise ValueError("each weekday may appear only once")
        return days

    def to_domain(self) -> dict[int, DaySchedule]:
        return schedule_to_domain(self.days)


def schedule_to_domain(days: list[DayScheduleIn]) -> dict[int, DaySchedule]:
    return {
        WEEKDAYS.index(d.weekday): DaySchedule(is_open=d.is_open, opens_at=d.opens_at, closes_at=d.closes_at)
        for d in days
    }


class DayScheduleRead(BaseModel):
    weekday: Weekday
    is_open: bool
    opens_at: str
    closes_at: str


class ScheduleRead(BaseModel):
    slot_granularity: int
    break_minutes: int
    days: list[DayScheduleRead]

    @classmethod
    def from_domain(cls, week: WeeklySchedule) -> "ScheduleRead":
        return cls(
            slot_granularity=week.granularity,
            break_minutes=week.break_minutes,
            days=[
                DayScheduleRead(weekday=WEEKDAYS[i], is_open=d.is_open, opens_at=d.opens_at, closes_at=d.closes_at)
                for i, d in sorted(week.days.items())
            ],
        )


class OfferingIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    duration_minutes: int = Field(ge=1, le=24 * 60)
    is_active: bool = True

    def as_tuple(self) -> tuple[str, int, bool]:
        return self.name.strip(), self.duration_minutes, self.is_active


class OfferingsUpdate(BaseModel):
    offerings: list[OfferingIn] = Field(min_length=1)


class OfferingRead(BaseModel):
    offering_id: int
    name: str
    duration_minutes: int
    is_active: bool

    @classmethod
    def from_db(cls, *, offering: Offering) -> "OfferingRead":
        return cls(
            offering_id=offering.id,
            name=offering.name,
            duration_minutes=offering.duration_minutes,
            is_active=offering.is_active,
        )


class ResourceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    kind: ResourceKind
    slot_granularity: Optional[int] = Field(default=None, ge=1, le=240)
    break_minutes: int = Field(default=0, ge=0, le=240)
    auto_confirm: bool = False
    schedule: Optional[list[DayScheduleIn]] = None
    offerings: list[OfferingIn] = Field(default_factory=list)


class ResourceRead(BaseModel):
    resource_id: int
    owner_id: int
    name: str
    kind: ResourceKind
    is_active: bool
    slot_granularity: int
    break_minutes: int
    auto_confirm: bool
    offerings: list[OfferingRead] = Field(default_factory=list)

    @classmethod
    def from_db(cls, *, resource: Resource, offerings: Optional[list[Offering]] = None) -> "ResourceRead":
        return cls(
            resource_id=resource.id,
            owner_id=resource.owner_id,
            name=resource.name,
            kind=resource.kind,
            is_active=resource.is_active,
            slot_granularity=resource.slot_granularity,
            break_minutes=resource.break_minutes,
            auto_confirm=resource.auto_confirm,
            offerings=[OfferingRead.from_db(offering=o) for o in offerings or []],
        )


class ContactIn(BaseModel):
    customer_name: str = Field(max_length=255)
    customer_phone: str = Field(max_length=50)
    customer_email: Optional[str] = Field(default=None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    party_size: int = Field(default=1, ge=1, le=100)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("customer_name")
    @classmethod
    def _name(cls, value: str) -> str:
        value = " ".join(value.split())
        if len(value) < 3:
            raise ValueError("name must have at least 3 characters")
        return value

    @field_validator("customer_phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        digits = "".join(ch for ch in value if ch.isdigit())
        if not 8 <= len(digits) <= 15:
            raise ValueError("phone must have between 8 and 15 digits")
        return digits

    @field_validator("notes")
    @classmethod
    def _notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class SlotReservationCreate(ContactIn):
    day: date
    start_time: str = Field(pattern=CLOCK_PATTERN)
    offering_ids: list[int] = Field(min_length=1)


class DayReservationCreate(ContactIn):
    days: list[date] = Field(min_length=1)


class ReservationCancel(BaseModel):
    customer_phone: Optional[str] = None
    version: Optional[int] = Field(default=None, ge=1)


class ReservationTransition(BaseModel):
    version: Optional[int] = Field(default=None, ge=1)


class PaymentEvent(BaseModel):
    payment_reference: str = Field(min_length=1, max_length=255)
    status: PaymentStatus


class ReservationRead(BaseModel):
    reservation_id: int
    resource_id: int
    day: date
    whole_day: bool
    start_time: Optional[str]
    end_time: Optional[str]
    duration_minutes: Optional[int]
    offering_ids: list[int]
    status: EffectiveStatus
    stored_status: ReservationStatus
    expires_at: Optional[datetime]
    customer_name: str
    party_size: int
    payment_status: Optional[PaymentStatus] = None
    version: int

    @field_serializer("expires_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, *, reservation: Reservation, now: datetime) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            resource_id=reservation.resource_id,
            day=reservation.day,
            whole_day=reservation.whole_day,
            start_time=format_clock(to_minutes(reservation.start_time)) if reservation.start_time else None,
            end_time=format_clock(to_minutes(reservation.end_time)) if reservation.end_time else None,
            duration_minutes=reservation.duration_minutes,
            offering_ids=list(reservation.offering_ids or []),
            status=effective_status(reservation, now),
            stored_status=reservation.status,
            expires_at=utc_naive_to_local(reservation.expires_at) if reservation.expires_at else None,
            customer_name=reservation.customer_name,
            party_size=reservation.party_size,
            payment_status=reservation.payment_status,
            version=reservation.version,
        )


class SlotAvailability(BaseModel):
    resource_id: int
    day: date
    duration_minutes: Optional[int]
    slots: list[str]


class SelectableDays(BaseModel):
    resource_id: int
    start: date
    end: date
    days: list[date]


class BlockedDateCreate(BaseModel):
    day: date
    reason: Optional[str] = Field(default=None, max_length=255)


class BlockedDateRead(BaseModel):
    blocked_date_id: int
    resource_id: int
    day: date
    reason: Optional[str]

    @classmethod
    def from_db(cls, *, blocked: BlockedDate) -> "BlockedDateRead":
        return cls(
            blocked_date_id=blocked.id,
            resource_id=blocked.resource_id,
            day=blocked.day,
            reason=blocked.reason,
        )
