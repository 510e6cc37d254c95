from datetime import date, datetime, time
from typing import Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from .models import BlockedTimeReason, Reservation, ReservationStatus
from .utils.time import jst_naive_to_aware

T = TypeVar("T")


class CamelModel(BaseModel):
    """JSON uses camelCase; Python code keeps snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _hhmm(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class AvailableSlot(CamelModel):
    time: str
    available: bool
    staff_ids: List[str] = Field(default_factory=list)


class ReservationCreate(CamelModel):
    reserved_date: date
    reserved_time: time
    menu_id: UUID
    staff_id: Optional[UUID] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    # Admin-only: book on behalf of this customer.
    user_id: Optional[UUID] = None


class ReservationUpdate(CamelModel):
    reserved_date: Optional[date] = None
    reserved_time: Optional[time] = None
    menu_id: Optional[UUID] = None
    staff_id: Optional[UUID] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    status: Optional[ReservationStatus] = None
    version: Optional[int] = Field(default=None, ge=1)


class ReservationRead(CamelModel):
    id: str
    user_id: str
    staff_id: Optional[str]
    menu_id: str
    reserved_date: date
    reserved_time: time
    duration: int
    status: ReservationStatus
    notes: Optional[str]
    version: int
    created_at: datetime
    updated_at: datetime

    @field_serializer("reserved_time")
    def _ser_time(self, value: time) -> str:
        return value.strftime("%H:%M")

    @classmethod
    def from_db(cls, reservation: Reservation) -> "ReservationRead":
        return cls.model_validate(reservation)


class MenuCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: int = Field(ge=0, le=9_999_999)
    duration: int = Field(ge=1, le=480)
    category: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = True


class MenuUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0, le=9_999_999)
    duration: Optional[int] = Field(default=None, ge=1, le=480)
    category: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None


class MenuRead(CamelModel):
    id: str
    name: str
    description: Optional[str]
    price: int
    duration: int
    category: Optional[str]
    is_active: bool


class ShiftItem(CamelModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: time) -> str:
        return value.strftime("%H:%M")


class ShiftsReplace(CamelModel):
    shifts: List[ShiftItem]


class VacationCreate(CamelModel):
    start_date: date
    end_date: date
    reason: Optional[str] = Field(default=None, max_length=255)


class VacationRead(VacationCreate):
    id: int


class StaffCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    role: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = True


class StaffUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    role: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None


class StaffRead(CamelModel):
    id: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    role: Optional[str]
    is_active: bool
    shifts: List[ShiftItem] = Field(default_factory=list)
    vacations: List[VacationRead] = Field(default_factory=list)


class BlockedTimeCreate(CamelModel):
    start_datetime: datetime
    end_datetime: datetime
    reason: BlockedTimeReason
    description: Optional[str] = Field(default=None, max_length=500)
    staff_id: Optional[UUID] = None

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("タイムゾーン付きの日時を指定してください")
        return value


class BlockedTimeUpdate(CamelModel):
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    reason: Optional[BlockedTimeReason] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def _require_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            raise ValueError("タイムゾーン付きの日時を指定してください")
        return value


class BlockedTimeRead(CamelModel):
    id: str
    staff_id: Optional[str]
    start_datetime: datetime
    end_datetime: datetime
    reason: BlockedTimeReason
    description: Optional[str]

    @field_serializer("start_datetime", "end_datetime")
    def _ser_datetime(self, dt: datetime) -> str:
        return jst_naive_to_aware(dt).isoformat()


class StoreSettingsRead(CamelModel):
    store_name: str
    open_time: time
    close_time: time
    slot_duration: int
    closed_days: List[str]
    break_time_start: Optional[time]
    break_time_end: Optional[time]
    min_advance_booking_days: int
    max_advance_booking_days: int
    cancellation_deadline_hours: int
    is_public: bool

    @field_serializer("open_time", "close_time", "break_time_start", "break_time_end")
    def _ser_time(self, value: Optional[time]) -> Optional[str]:
        return _hhmm(value)


class StoreSettingsUpdate(CamelModel):
    store_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    slot_duration: Optional[int] = Field(default=None, ge=1, le=240)
    closed_days: Optional[List[str]] = None
    break_time_start: Optional[time] = None
    break_time_end: Optional[time] = None
    min_advance_booking_days: Optional[int] = Field(default=None, ge=0)
    max_advance_booking_days: Optional[int] = Field(default=None, ge=0)
    cancellation_deadline_hours: Optional[int] = Field(default=None, ge=0)
    is_public: Optional[bool] = None
