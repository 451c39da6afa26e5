"""Conversation session state and turn results."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from labvisit.schemas.booking_schema import Appointment, SampleType, TimeSlot


class BookingStep(str, Enum):
    """All steps of the booking conversation."""
    START = "start"
    COLLECT_ADDRESS = "collect_address"
    SELECT_DATE = "select_date"
    SELECT_TIME = "select_time"
    SELECT_SAMPLE_TYPE = "select_sample_type"
    CONFIRM = "confirm"
    MODIFY = "modify"
    BOOKED = "booked"
    ABORTED = "aborted"


class CancellationStep(str, Enum):
    """Steps of the conversational cancellation."""
    CONFIRM = "cancel_confirm"
    LATE_CONFIRM = "late_cancel_confirm"
    CANCELLED = "cancelled"
    KEPT = "kept"
    NOTHING_TO_CANCEL = "nothing_to_cancel"


TERMINAL_STEPS: frozenset[str] = frozenset({
    BookingStep.BOOKED.value,
    BookingStep.ABORTED.value,
    CancellationStep.CANCELLED.value,
    CancellationStep.KEPT.value,
    CancellationStep.NOTHING_TO_CANCEL.value,
})


@dataclass
class StepEntry:
    """Recorded history entry for a step visit."""
    step: BookingStep
    entered_at: datetime
    trigger: Optional[str] = None


@dataclass
class BookingSession:
    """
    Per-conversation selections carried between booking turns.

    Lives in the session store only until the booking is persisted,
    aborted or expires. No appointment row exists before ``confirm``.
    """
    session_id: str
    customer_id: str
    created_at: datetime
    last_activity: datetime
    step: BookingStep = BookingStep.START
    selected_date: Optional[date] = None
    candidate_slots: list[TimeSlot] = field(default_factory=list)
    selected_slot: Optional[TimeSlot] = None
    sample_type: Optional[SampleType] = None
    appointment_id: Optional[str] = None
    history: list[StepEntry] = field(default_factory=list)
    attempts: dict[str, int] = field(default_factory=dict)

    def selection_complete(self) -> bool:
        return (
            self.selected_date is not None
            and self.selected_slot is not None
            and self.sample_type is not None
        )

    def record_attempt(self) -> int:
        count = self.attempts.get(self.step.value, 0) + 1
        self.attempts[self.step.value] = count
        return count


@dataclass
class CancellationSession:
    """Per-conversation state of a cancellation request."""
    session_id: str
    customer_id: str
    appointment_id: Optional[str]
    created_at: datetime
    last_activity: datetime
    step: CancellationStep = CancellationStep.CONFIRM
    minutes_remaining: Optional[int] = None


class TurnResult(BaseModel):
    """What the transport sends back to the customer after one turn."""

    session_id: str
    prompt: str
    state: str
    terminal: bool = False
    appointment: Optional[Appointment] = None


class SessionHandle(TurnResult):
    """Opening turn of a new conversation, carrying its session ID."""
