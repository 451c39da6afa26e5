"""Time slot, appointment and availability data models."""

import re
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that hold a customer's single active booking.
ACTIVE_STATUSES: tuple[AppointmentStatus, ...] = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
)

# Statuses that occupy slot capacity.
OCCUPYING_STATUSES: tuple[AppointmentStatus, ...] = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
)

STATUS_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


class SampleType(str, Enum):
    """Fixed catalog of samples collected on a home visit."""

    VENOUS_BLOOD = "Sangre venosa"
    CAPILLARY_BLOOD = "Sangre capilar"
    URINE = "Orina"
    STOOL = "Deposiciones"
    SPUTUM = "Esputo"
    OTHER = "Otros"


class TimeSlot(BaseModel):
    """Daily time window in which home visits happen."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    start_time: str
    end_time: str
    is_active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError(f"time must be HH:MM, got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "TimeSlot":
        if self.start_time >= self.end_time:
            raise ValueError(
                f"start_time {self.start_time} must be before end_time {self.end_time}"
            )
        return self

    @property
    def label(self) -> str:
        return f"{self.start_time} - {self.end_time}"


class Appointment(BaseModel):
    """Persisted home-visit booking."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    appointment_date: date
    time_slot_id: str
    sample_type: SampleType
    special_instructions: Optional[str] = None
    medical_order_received: bool = False
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    total_amount: int
    late_cancellation: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def reference(self) -> str:
        """Short reference shown to customers."""
        return self.id[:8].upper()

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class SlotAvailability(BaseModel):
    """Occupancy of one time slot on one date."""

    date: date
    time_slot: TimeSlot
    available: bool
    booked_count: int = 0


class DayCapacity(BaseModel):
    """Per-day capacity summary."""

    date: date
    total_slots: int
    available_slots: int
    booked_count: int
    booked_percentage: int
    is_full: bool


class CancellationDecision(BaseModel):
    """Outcome of the cancellation notice check."""

    appointment_id: str
    allowed: bool
    minutes_remaining: int
    requires_late_override: bool
    scheduled_start: datetime
    reason: str = Field(default="")
