"""
Finite state machine for the booking conversation.

Every booking follows a deterministic path through the step graph. Each
turn handler fires a trigger; moves that are not in the table are rejected
with the list of triggers valid from the current step.

Usage:
    sm = BookingStateMachine(session, now)
    sm.transition(BookingTrigger.NEEDS_ADDRESS)
    assert session.step == BookingStep.COLLECT_ADDRESS
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from labvisit.schemas.conversation_schema import BookingSession, BookingStep, StepEntry

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that move a booking session between steps."""
    NEEDS_ADDRESS = "needs_address"
    HAS_ADDRESS = "has_address"
    ACTIVE_CONFLICT = "active_conflict"
    ADDRESS_ACCEPTED = "address_accepted"
    DATE_SELECTED = "date_selected"
    TIME_SELECTED = "time_selected"
    SAMPLE_SELECTED = "sample_selected"
    SELECTION_RESTORED = "selection_restored"
    CUSTOMER_CONFIRMED = "customer_confirmed"
    CHANGE_REQUESTED = "change_requested"
    SLOT_TAKEN = "slot_taken"
    MODIFY_DATE = "modify_date"
    MODIFY_TIME = "modify_time"
    MODIFY_SAMPLE = "modify_sample"
    MODIFY_ADDRESS = "modify_address"
    ABORT = "abort"


@dataclass
class Transition:
    """A single valid step transition."""
    from_step: BookingStep
    to_step: BookingStep
    trigger: BookingTrigger


class InvalidTransitionError(Exception):
    """Raised when a trigger is not valid from the current step."""


_IN_PROGRESS = (
    BookingStep.START,
    BookingStep.COLLECT_ADDRESS,
    BookingStep.SELECT_DATE,
    BookingStep.SELECT_TIME,
    BookingStep.SELECT_SAMPLE_TYPE,
    BookingStep.CONFIRM,
    BookingStep.MODIFY,
)


class BookingStateMachine:
    """
    Deterministic step control over one ``BookingSession``.

    The session holds the current step and history so the machine itself
    is cheap to rebuild on every turn.
    """

    TRANSITIONS: list[Transition] = [
        # --- Start ---
        Transition(BookingStep.START, BookingStep.COLLECT_ADDRESS, BookingTrigger.NEEDS_ADDRESS),
        Transition(BookingStep.START, BookingStep.SELECT_DATE, BookingTrigger.HAS_ADDRESS),
        Transition(BookingStep.START, BookingStep.ABORTED, BookingTrigger.ACTIVE_CONFLICT),

        # --- Address ---
        Transition(BookingStep.COLLECT_ADDRESS, BookingStep.SELECT_DATE,
                   BookingTrigger.ADDRESS_ACCEPTED),
        Transition(BookingStep.COLLECT_ADDRESS, BookingStep.CONFIRM,
                   BookingTrigger.SELECTION_RESTORED),

        # --- Selection ---
        Transition(BookingStep.SELECT_DATE, BookingStep.SELECT_TIME,
                   BookingTrigger.DATE_SELECTED),
        Transition(BookingStep.SELECT_TIME, BookingStep.SELECT_SAMPLE_TYPE,
                   BookingTrigger.TIME_SELECTED),
        Transition(BookingStep.SELECT_TIME, BookingStep.CONFIRM,
                   BookingTrigger.SELECTION_RESTORED),
        Transition(BookingStep.SELECT_SAMPLE_TYPE, BookingStep.CONFIRM,
                   BookingTrigger.SAMPLE_SELECTED),

        # --- Confirmation gate ---
        Transition(BookingStep.CONFIRM, BookingStep.BOOKED, BookingTrigger.CUSTOMER_CONFIRMED),
        Transition(BookingStep.CONFIRM, BookingStep.MODIFY, BookingTrigger.CHANGE_REQUESTED),
        Transition(BookingStep.CONFIRM, BookingStep.SELECT_DATE, BookingTrigger.SLOT_TAKEN),

        # --- Modify ---
        Transition(BookingStep.MODIFY, BookingStep.SELECT_DATE, BookingTrigger.MODIFY_DATE),
        Transition(BookingStep.MODIFY, BookingStep.SELECT_TIME, BookingTrigger.MODIFY_TIME),
        Transition(BookingStep.MODIFY, BookingStep.SELECT_SAMPLE_TYPE,
                   BookingTrigger.MODIFY_SAMPLE),
        Transition(BookingStep.MODIFY, BookingStep.COLLECT_ADDRESS,
                   BookingTrigger.MODIFY_ADDRESS),
    ] + [
        # --- Explicit exit from any step in progress ---
        Transition(step, BookingStep.ABORTED, BookingTrigger.ABORT) for step in _IN_PROGRESS
    ]

    def __init__(self, session: BookingSession, now: datetime) -> None:
        self._session = session
        self._now = now
        if not session.history:
            session.history.append(StepEntry(step=session.step, entered_at=now))

    @property
    def current_state(self) -> BookingStep:
        return self._session.step

    def transition(self, trigger: BookingTrigger) -> BookingStep:
        """
        Execute a step transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new step.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_step == self._session.step and t.trigger == trigger:
                old_step = self._session.step
                self._session.step = t.to_step
                self._session.history.append(StepEntry(
                    step=t.to_step,
                    entered_at=self._now,
                    trigger=trigger.value,
                ))
                logger.debug(
                    "Step transition: %s -> %s (trigger: %s)",
                    old_step.value, t.to_step.value, trigger.value,
                )
                return t.to_step

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._session.step.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[BookingTrigger]:
        """Return all triggers valid from the current step."""
        return [t.trigger for t in self.TRANSITIONS if t.from_step == self._session.step]

    def get_history(self) -> list[StepEntry]:
        return list(self._session.history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of step names visited."""
        return [entry.step.value for entry in self._session.history]

    def is_terminal(self) -> bool:
        return self._session.step in (BookingStep.BOOKED, BookingStep.ABORTED)
