from __future__ import annotations

from datetime import date, datetime, time
from enum import StrEnum
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, Date, DateTime, Integer, SmallInteger, String, Time


class Base(DeclarativeBase):
    pass


class ResourceKind(StrEnum):
    VENUE = "venue"
    PROFESSIONAL = "professional"


class ReservationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class Resource(Base):
    __tablename__ = "resources"
    __table_args__ = (
        CheckConstraint("slot_granularity >= 1", name="chk_resources_granularity"),
        CheckConstraint("break_minutes >= 0", name="chk_resources_break"),
        Index("idx_resources_owner", "owner_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[ResourceKind] = mapped_column(_str_enum(ResourceKind), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    slot_granularity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auto_confirm: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    schedule_days: Mapped[list["ScheduleDay"]] = relationship(
        back_populates="resource", cascade="all, delete-orphan"
    )
    offerings: Mapped[list["Offering"]] = relationship(back_populates="resource", cascade="all, delete-orphan")


class ScheduleDay(Base):
    __tablename__ = "schedule_days"
    __table_args__ = (
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="chk_schedule_weekday"),
        UniqueConstraint("resource_id", "weekday", name="uq_schedule_resource_weekday"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), nullable=False)
    # Monday == 0, as in date.weekday()
    weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    opens_at: Mapped[time] = mapped_column(Time, nullable=False)
    closes_at: Mapped[time] = mapped_column(Time, nullable=False)

    resource: Mapped["Resource"] = relationship(back_populates="schedule_days")


class Offering(Base):
    __tablename__ = "offerings"
    __table_args__ = (
        CheckConstraint("duration_minutes >= 1", name="chk_offerings_duration"),
        Index("idx_offerings_resource", "resource_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    resource: Mapped["Resource"] = relationship(back_populates="offerings")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("party_size >= 1", name="chk_res_party_size"),
        CheckConstraint("end_time IS NULL OR end_time >= start_time", name="chk_res_interval"),
        Index("idx_res_resource_day", "resource_id", "day"),
        Index("idx_res_status_expiry", "status", "expires_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    whole_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    offering_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[ReservationStatus] = mapped_column(
        _str_enum(ReservationStatus),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    expiry_notice_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_status: Mapped[Optional[PaymentStatus]] = mapped_column(_str_enum(PaymentStatus), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class BlockedDate(Base):
    __tablename__ = "blocked_dates"
    __table_args__ = (UniqueConstraint("resource_id", "day", name="uq_blocked_resource_day"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
