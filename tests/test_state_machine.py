"""Tests for the booking state machine."""

import pytest

from labvisit.conversation.state_machine import (
    BookingStateMachine,
    BookingTrigger,
    InvalidTransitionError,
)
from labvisit.schemas.conversation_schema import BookingSession, BookingStep
from tests.helpers import NOW


@pytest.fixture
def session():
    return BookingSession(session_id="s-1", customer_id="c-1", created_at=NOW, last_activity=NOW)


@pytest.fixture
def state_machine(session):
    return BookingStateMachine(session, NOW)


def walk(machine, *triggers):
    for trigger in triggers:
        machine.transition(trigger)
    return machine.current_state


class TestInitialState:
    def test_starts_in_start(self, state_machine):
        assert state_machine.current_state == BookingStep.START

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_not_terminal_at_start(self, state_machine):
        assert not state_machine.is_terminal()

    def test_rebuild_keeps_history(self, session, state_machine):
        state_machine.transition(BookingTrigger.NEEDS_ADDRESS)
        rebuilt = BookingStateMachine(session, NOW)
        assert rebuilt.current_state == BookingStep.COLLECT_ADDRESS
        assert rebuilt.get_state_trace() == ["start", "collect_address"]


class TestHappyPath:
    def test_new_customer_path(self, state_machine):
        final = walk(
            state_machine,
            BookingTrigger.NEEDS_ADDRESS,
            BookingTrigger.ADDRESS_ACCEPTED,
            BookingTrigger.DATE_SELECTED,
            BookingTrigger.TIME_SELECTED,
            BookingTrigger.SAMPLE_SELECTED,
            BookingTrigger.CUSTOMER_CONFIRMED,
        )
        assert final == BookingStep.BOOKED
        assert state_machine.is_terminal()
        assert state_machine.get_state_trace() == [
            "start", "collect_address", "select_date", "select_time",
            "select_sample_type", "confirm", "booked",
        ]

    def test_returning_customer_skips_address(self, state_machine):
        assert walk(state_machine, BookingTrigger.HAS_ADDRESS) == BookingStep.SELECT_DATE

    def test_active_conflict_aborts(self, state_machine):
        assert walk(state_machine, BookingTrigger.ACTIVE_CONFLICT) == BookingStep.ABORTED


class TestConfirmGate:
    def _to_confirm(self, machine):
        walk(
            machine,
            BookingTrigger.HAS_ADDRESS,
            BookingTrigger.DATE_SELECTED,
            BookingTrigger.TIME_SELECTED,
            BookingTrigger.SAMPLE_SELECTED,
        )

    def test_change_goes_to_modify(self, state_machine):
        self._to_confirm(state_machine)
        assert walk(state_machine, BookingTrigger.CHANGE_REQUESTED) == BookingStep.MODIFY

    def test_slot_taken_returns_to_date(self, state_machine):
        self._to_confirm(state_machine)
        assert walk(state_machine, BookingTrigger.SLOT_TAKEN) == BookingStep.SELECT_DATE

    @pytest.mark.parametrize("trigger,expected", [
        (BookingTrigger.MODIFY_DATE, BookingStep.SELECT_DATE),
        (BookingTrigger.MODIFY_TIME, BookingStep.SELECT_TIME),
        (BookingTrigger.MODIFY_SAMPLE, BookingStep.SELECT_SAMPLE_TYPE),
        (BookingTrigger.MODIFY_ADDRESS, BookingStep.COLLECT_ADDRESS),
    ])
    def test_modify_targets(self, state_machine, trigger, expected):
        self._to_confirm(state_machine)
        state_machine.transition(BookingTrigger.CHANGE_REQUESTED)
        assert state_machine.transition(trigger) == expected

    def test_restored_selection_returns_to_confirm(self, state_machine):
        self._to_confirm(state_machine)
        walk(state_machine, BookingTrigger.CHANGE_REQUESTED, BookingTrigger.MODIFY_TIME)
        assert walk(state_machine, BookingTrigger.SELECTION_RESTORED) == BookingStep.CONFIRM


class TestInvalidTransitions:
    def test_cannot_book_from_start(self, state_machine):
        with pytest.raises(InvalidTransitionError, match="Valid triggers"):
            state_machine.transition(BookingTrigger.CUSTOMER_CONFIRMED)

    def test_terminal_has_no_triggers(self, state_machine):
        walk(state_machine, BookingTrigger.ABORT)
        assert state_machine.get_valid_triggers() == []
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(BookingTrigger.HAS_ADDRESS)

    @pytest.mark.parametrize("path", [
        (),
        (BookingTrigger.NEEDS_ADDRESS,),
        (BookingTrigger.HAS_ADDRESS,),
        (BookingTrigger.HAS_ADDRESS, BookingTrigger.DATE_SELECTED),
    ])
    def test_abort_valid_while_in_progress(self, state_machine, path):
        walk(state_machine, *path)
        assert BookingTrigger.ABORT in state_machine.get_valid_triggers()
        assert walk(state_machine, BookingTrigger.ABORT) == BookingStep.ABORTED
