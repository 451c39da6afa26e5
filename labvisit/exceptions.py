"""
Scheduling error taxonomy.

Recoverable errors (validation, address, capacity) keep the conversation
alive and trigger a re-prompt. ``StoreUnavailable`` is the only error the
conversation layer reports as "try again later".
"""

from typing import Optional


class SchedulingError(Exception):
    """Base exception for the scheduling engine."""


class ValidationError(SchedulingError):
    """Malformed or out-of-range input."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class OutOfServiceArea(ValidationError):
    """Address falls outside the urban service perimeter."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field="address")


class AddressTooVague(ValidationError):
    """Address lacks enough detail to locate the home visit."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field="address")


class NotFound(SchedulingError):
    """Unknown customer, appointment, time slot or session."""

    def __init__(self, resource: str, identifier: object) -> None:
        super().__init__(f"{resource} with id {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class Conflict(SchedulingError):
    """A write collided with existing state."""


class SlotFull(Conflict):
    """The (date, time slot) pair reached capacity at write time."""

    def __init__(self, appointment_date: object, time_slot_id: str) -> None:
        super().__init__(f"Time slot {time_slot_id} is fully booked for {appointment_date}")
        self.appointment_date = appointment_date
        self.time_slot_id = time_slot_id


class InvalidTransition(SchedulingError):
    """Requested appointment status change is not in the transition table."""


class LateCancellationRequired(SchedulingError):
    """Cancellation inside the notice window needs an explicit second confirmation."""

    def __init__(self, appointment_id: str, minutes_remaining: int) -> None:
        super().__init__(
            f"Appointment {appointment_id} starts in {minutes_remaining} minutes; "
            "late cancellation must be confirmed"
        )
        self.appointment_id = appointment_id
        self.minutes_remaining = minutes_remaining


class StoreUnavailable(SchedulingError):
    """Datastore connectivity failure or timeout. Safe to retry."""
