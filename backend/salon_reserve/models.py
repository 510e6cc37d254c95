from __future__ import annotations

import uuid
from datetime import date, datetime, time
from enum import StrEnum
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import Boolean, Date, DateTime, Integer, String, Text, Time


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def _enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [e.value for e in members],
        native_enum=False,
    )


class UserRole(StrEnum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class ReservationStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class BlockedTimeReason(StrEnum):
    HOTPEPPER = "HOTPEPPER"
    TEMPORARY_CLOSURE = "TEMPORARY_CLOSURE"
    MAINTENANCE = "MAINTENANCE"
    OTHER = "OTHER"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(_enum(UserRole), nullable=False, default=UserRole.CUSTOMER)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class StoreSettings(Base):
    __tablename__ = "store_settings"
    __table_args__ = (
        CheckConstraint("open_time < close_time", name="chk_settings_hours"),
        CheckConstraint("slot_duration >= 1", name="chk_settings_slot"),
        CheckConstraint(
            "min_advance_booking_days >= 0 AND min_advance_booking_days <= max_advance_booking_days",
            name="chk_settings_booking_period",
        ),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    # English weekday names, e.g. ["Sunday"]
    closed_days: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    break_time_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    break_time_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    min_advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    cancellation_deadline_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class FeatureFlag(Base):
    __tablename__ = "feature_flags"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_feature_flags_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Staff(Base):
    __tablename__ = "staff"
    __table_args__ = (Index("idx_staff_tenant", "tenant_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    shifts: Mapped[list["StaffShift"]] = relationship(back_populates="staff", cascade="all, delete-orphan")
    vacations: Mapped[list["StaffVacation"]] = relationship(back_populates="staff", cascade="all, delete-orphan")


class StaffShift(Base):
    __tablename__ = "staff_shifts"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_shift_time"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="chk_shift_weekday"),
        UniqueConstraint("staff_id", "day_of_week", name="uq_shift_staff_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    staff_id: Mapped[str] = mapped_column(ForeignKey("staff.id"), nullable=False)
    # Monday == 0, as datetime.date.weekday()
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    staff: Mapped["Staff"] = relationship(back_populates="shifts")


class StaffVacation(Base):
    __tablename__ = "staff_vacations"
    __table_args__ = (CheckConstraint("start_date <= end_date", name="chk_vacation_range"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    staff_id: Mapped[str] = mapped_column(ForeignKey("staff.id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    staff: Mapped["Staff"] = relationship(back_populates="vacations")


class Menu(Base):
    __tablename__ = "menus"
    __table_args__ = (
        CheckConstraint("price >= 0 AND price <= 9999999", name="chk_menu_price"),
        CheckConstraint("duration >= 1 AND duration <= 480", name="chk_menu_duration"),
        Index("idx_menus_tenant", "tenant_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class BlockedTime(Base):
    __tablename__ = "blocked_times"
    __table_args__ = (
        CheckConstraint("start_datetime < end_datetime", name="chk_blocked_time"),
        Index("idx_blocked_tenant_start", "tenant_id", "start_datetime"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # NULL blocks the whole store
    staff_id: Mapped[Optional[str]] = mapped_column(ForeignKey("staff.id"), nullable=True)
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    reason: Mapped[BlockedTimeReason] = mapped_column(_enum(BlockedTimeReason), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("duration >= 1", name="chk_res_duration"),
        Index("idx_res_staff_date", "staff_id", "reserved_date"),
        Index("idx_res_user", "user_id"),
        Index("idx_res_tenant_date", "tenant_id", "reserved_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    staff_id: Mapped[Optional[str]] = mapped_column(ForeignKey("staff.id"), nullable=True)
    menu_id: Mapped[str] = mapped_column(ForeignKey("menus.id"), nullable=False)
    reserved_date: Mapped[date] = mapped_column(Date, nullable=False)
    reserved_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        _enum(ReservationStatus),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
