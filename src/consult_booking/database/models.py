"""Pydantic models for booking engine entities"""

from datetime import date, time, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from consult_booking.utils.date_time_utils import (
    format_time_for_display,
    get_date_label,
    to_practice_time,
)

WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

SUPPORTED_SLOT_DURATIONS = (15, 30, 45, 60, 90, 120)

SlotKey = Tuple[date, time]


class ConsultationType(str, Enum):
    VIRTUAL = "virtual"
    TELEPHONIC = "telephonic"
    FACE_TO_FACE = "face_to_face"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class EventType(str, Enum):
    CREATED = "created"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# ---------------------------------------------------------------------------
# Schedule configuration
# ---------------------------------------------------------------------------


class DayHours(BaseModel):
    """Working hours for one weekday"""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    start: time = time(9, 0)
    end: time = time(17, 0)


class BreakWindow(BaseModel):
    """Recurring break applied to every enabled day"""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time
    label: str = "Break"


class BlockedDate(BaseModel):
    """A full day closed regardless of weekly hours"""

    model_config = ConfigDict(frozen=True)

    blocked_date: date
    reason: str = "Unavailable"


class BlockedTimeRange(BaseModel):
    """A closed sub-range on an otherwise open day"""

    model_config = ConfigDict(frozen=True)

    blocked_date: date
    start: time
    end: time
    reason: str = "Unavailable"


def default_weekly_hours() -> Dict[str, DayHours]:
    hours = {day: DayHours() for day in WEEKDAYS[:5]}
    hours["saturday"] = DayHours(enabled=False, start=time(9, 0), end=time(13, 0))
    hours["sunday"] = DayHours(enabled=False, start=time(9, 0), end=time(13, 0))
    return hours


def default_break_windows() -> List[BreakWindow]:
    return [BreakWindow(start=time(13, 0), end=time(14, 0), label="Lunch Break")]


class ScheduleConfiguration(BaseModel):
    """
    Immutable, versioned snapshot of the practice schedule.

    A fresh snapshot is read at the start of every availability computation;
    admin edits replace the whole document and bump ``version``.
    """

    model_config = ConfigDict(frozen=True)

    weekly_hours: Dict[str, DayHours] = Field(default_factory=default_weekly_hours)
    slot_duration_minutes: int = 30
    break_windows: List[BreakWindow] = Field(default_factory=default_break_windows)
    blocked_dates: List[BlockedDate] = Field(default_factory=list)
    blocked_time_ranges: List[BlockedTimeRange] = Field(default_factory=list)
    version: int = 0
    updated_at: Optional[datetime] = None
    # Non-fatal validation findings from the update that produced this snapshot
    warnings: List[str] = Field(default_factory=list, exclude=True)

    @field_validator("weekly_hours", mode="before")
    @classmethod
    def normalise_weekdays(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        normalised = {}
        for day, hours in value.items():
            key = str(day).strip().lower()
            if key not in WEEKDAYS:
                raise ValueError(f"unknown weekday '{day}'")
            normalised[key] = hours
        return normalised

    def hours_for(self, day: date) -> DayHours:
        """Weekly hours for a date's weekday; missing weekdays count as closed"""
        return self.weekly_hours.get(WEEKDAYS[day.weekday()], DayHours(enabled=False))

    def is_blocked(self, day: date) -> bool:
        return any(blocked.blocked_date == day for blocked in self.blocked_dates)

    def blocked_ranges_on(self, day: date) -> List[BlockedTimeRange]:
        return [r for r in self.blocked_time_ranges if r.blocked_date == day]

    def document(self) -> Dict[str, Any]:
        """JSON-ready body without the version bookkeeping fields"""
        return self.model_dump(mode="json", exclude={"version", "updated_at", "warnings"})


# ---------------------------------------------------------------------------
# Slots, holds and appointments
# ---------------------------------------------------------------------------


class Slot(BaseModel):
    """A bookable, schedule-aligned window (never persisted on its own)"""

    model_config = ConfigDict(frozen=True)

    slot_date: date
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def check_order(self) -> "Slot":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def key(self) -> SlotKey:
        return (self.slot_date, self.start_time)

    def describe(self, today: date) -> str:
        return f"{get_date_label(self.slot_date, today)} at {format_time_for_display(self.start_time)}"


class Hold(BaseModel):
    """Session-owned, time-bounded claim on one slot"""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    slot_date: date
    start_time: time
    end_time: time
    session_id: str = Field(min_length=1)
    created_at: datetime
    expires_at: datetime

    @property
    def key(self) -> SlotKey:
        return (self.slot_date, self.start_time)

    @property
    def slot(self) -> Slot:
        return Slot(slot_date=self.slot_date, start_time=self.start_time, end_time=self.end_time)

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at


class AppointmentDetails(BaseModel):
    """Customer-supplied data used to create an appointment"""

    customer_name: str = Field(min_length=1)
    customer_email: str = Field(min_length=3)
    customer_phone: str = Field(min_length=1)
    consultation_type: ConsultationType
    price: Optional[Decimal] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: Optional[str] = None

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("customer_email must be an email address")
        return value


class Appointment(BaseModel):
    """Durable booking record"""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    customer_name: str
    customer_email: str
    customer_phone: str
    consultation_type: ConsultationType
    appointment_date: date
    start_time: time
    end_time: time
    price: Decimal
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    location: Optional[str] = None
    notes: Optional[str] = None
    previous_slot: Optional[Slot] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> SlotKey:
        return (self.appointment_date, self.start_time)

    @property
    def slot(self) -> Slot:
        return Slot(
            slot_date=self.appointment_date,
            start_time=self.start_time,
            end_time=self.end_time,
        )

    @property
    def is_scheduled(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED


class LifecycleEvent(BaseModel):
    """Event emitted once per appointment state transition"""

    model_config = ConfigDict(frozen=True)

    event_type: EventType
    appointment: Appointment
    previous_slot: Optional[Slot] = None
    occurred_at: datetime

    @property
    def idempotency_key(self) -> str:
        return f"{self.appointment.id}:{self.event_type.value}:{self.occurred_at.isoformat()}"

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready payload handed to the notification dispatcher"""
        today = to_practice_time(self.occurred_at).date()
        payload = self.model_dump(mode="json")
        payload["type"] = "appointment_lifecycle"
        payload["idempotency_key"] = self.idempotency_key
        payload["display"] = {"slot": self.appointment.slot.describe(today)}
        if self.previous_slot is not None:
            payload["display"]["previous_slot"] = self.previous_slot.describe(today)
        return payload
