"""
Turn handlers for the booking conversation.

Each customer message is routed to the handler of the session's current
step. Handlers validate the input, update the typed ``BookingSession`` and
fire a trigger on the ``BookingStateMachine``. Recoverable errors keep the
step and re-prompt; only the confirm step writes to the appointment store.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from labvisit.conversation.guardrails import (
    InputGuardrail,
    MenuChoiceParser,
    Reply,
    ReplyClassifier,
)
from labvisit.conversation.state_machine import BookingStateMachine, BookingTrigger
from labvisit.dates import parse_date_expression
from labvisit.exceptions import NotFound, SchedulingError, SlotFull, StoreUnavailable, ValidationError
from labvisit.logging_context import get_session_logger
from labvisit.prompts import messages
from labvisit.schemas.booking_schema import ACTIVE_STATUSES, Appointment, TimeSlot
from labvisit.schemas.conversation_schema import BookingSession, BookingStep
from labvisit.schemas.customer_schema import Customer
from labvisit.tools.availability import AvailabilityCalculator
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.customer import CustomerDirectory
from labvisit.tools.notifications import Notifier, notify_safely
from labvisit.tools.slots import SlotCatalog
from labvisit.utils import Clock

logger = get_session_logger(__name__)

# Option names accepted in place of the menu number, in menu order.
SAMPLE_ALIASES: tuple[tuple[str, ...], ...] = (
    ("venosa",),
    ("capilar",),
    ("orina",),
    ("deposiciones", "heces", "materia fecal"),
    ("esputo",),
    ("otros", "otro"),
)
MODIFY_ALIASES: tuple[tuple[str, ...], ...] = (
    ("fecha", "dia"),
    ("horario", "hora"),
    ("muestra", "tipo"),
    ("direccion",),
)


@dataclass
class FlowReply:
    """Prompt for the customer plus the appointment once booked."""
    prompt: str
    appointment: Optional[Appointment] = None


Handler = Callable[[BookingSession, BookingStateMachine, str], FlowReply]


class BookingFlow:
    """Drives one booking session per call; holds no per-session state."""

    def __init__(
        self,
        catalog: SlotCatalog,
        directory: CustomerDirectory,
        store: AppointmentStore,
        availability: AvailabilityCalculator,
        notifier: Notifier,
        clock: Clock,
        *,
        min_address_length: int = 10,
        max_input_length: int = 500,
        summary_days: int = 7,
        alternatives_days: int = 5,
        min_notice_minutes: int = 120,
    ) -> None:
        self._catalog = catalog
        self._directory = directory
        self._store = store
        self._availability = availability
        self._notifier = notifier
        self._clock = clock
        self._min_address_length = min_address_length
        self._summary_days = summary_days
        self._alternatives_days = alternatives_days
        self._min_notice_hours = max(min_notice_minutes // 60, 1)

        self._input = InputGuardrail(max_input_length)
        self._replies = ReplyClassifier()
        self._menu = MenuChoiceParser()
        self._handlers: dict[BookingStep, Handler] = {
            BookingStep.START: self._on_start,
            BookingStep.COLLECT_ADDRESS: self._on_address,
            BookingStep.SELECT_DATE: self._on_date,
            BookingStep.SELECT_TIME: self._on_time,
            BookingStep.SELECT_SAMPLE_TYPE: self._on_sample_type,
            BookingStep.CONFIRM: self._on_confirm,
            BookingStep.MODIFY: self._on_modify,
        }

    def start(self, session: BookingSession) -> FlowReply:
        """Run the ``start`` step: active-booking gate, then address or date."""
        machine = BookingStateMachine(session, self._clock())
        return self._guarded(session, lambda: self._on_start(session, machine, ""))

    def handle(self, session: BookingSession, raw_text: Optional[str]) -> FlowReply:
        """Process one customer message for the session's current step."""
        machine = BookingStateMachine(session, self._clock())
        if machine.is_terminal():
            raise ValueError(f"Session {session.session_id} already ended in {session.step.value}")

        check = self._input.check(raw_text)
        if not check.passed:
            return FlowReply(messages.empty_input())
        text = check.text

        if session.step not in (BookingStep.START, BookingStep.CONFIRM) and self._replies.is_abort(text):
            machine.transition(BookingTrigger.ABORT)
            logger.info("Booking aborted by customer at %s", session.history[-2].step.value)
            return FlowReply(messages.booking_aborted())

        handler = self._handlers[session.step]
        return self._guarded(session, lambda: handler(session, machine, text))

    def _guarded(self, session: BookingSession, call: Callable[[], FlowReply]) -> FlowReply:
        try:
            return call()
        except StoreUnavailable:
            attempts = session.record_attempt()
            logger.warning(
                "Datastore unavailable at step %s (attempt %d)", session.step.value, attempts
            )
            return FlowReply(messages.store_unavailable())
        except NotFound as exc:
            logger.error("%s %s vanished during session", exc.resource, exc.identifier)
            return FlowReply(messages.not_found())

    # --- Step handlers ---

    def _on_start(self, session: BookingSession, machine: BookingStateMachine, _text: str) -> FlowReply:
        customer = self._directory.get(session.customer_id)
        if self._directory.has_active_appointment(customer.id):
            machine.transition(BookingTrigger.ACTIVE_CONFLICT)
            logger.info("Customer %s already holds an active appointment", customer.id)
            return FlowReply(self._conflict_prompt(customer.id))

        if not customer.has_address:
            machine.transition(BookingTrigger.NEEDS_ADDRESS)
            return FlowReply(messages.ask_address(customer.name))

        machine.transition(BookingTrigger.HAS_ADDRESS)
        return FlowReply(self._date_prompt(customer))

    def _on_address(self, session: BookingSession, machine: BookingStateMachine, text: str) -> FlowReply:
        if len(text) < self._min_address_length:
            session.record_attempt()
            return FlowReply(messages.address_too_short(self._min_address_length))

        try:
            customer = self._directory.update_address(session.customer_id, text)
        except ValidationError as exc:
            attempts = session.record_attempt()
            logger.info("Address rejected (%s, attempt %d)", type(exc).__name__, attempts)
            return FlowReply(messages.address_rejected(str(exc)))

        if session.selection_complete():
            machine.transition(BookingTrigger.SELECTION_RESTORED)
            return FlowReply(self._summary_prompt(session, customer))

        machine.transition(BookingTrigger.ADDRESS_ACCEPTED)
        return FlowReply(self._date_prompt(customer))

    def _on_date(self, session: BookingSession, machine: BookingStateMachine, text: str) -> FlowReply:
        today = self._clock().date()
        day = parse_date_expression(text, today)
        if day is None:
            session.record_attempt()
            return FlowReply(messages.date_not_understood())
        if day < today:
            session.record_attempt()
            return FlowReply(messages.past_date())

        try:
            open_slots = self._availability.available_slots(day)
        except ValidationError as exc:
            return FlowReply(messages.date_out_of_range(str(exc)))

        if not open_slots:
            logger.info("No availability on %s", day)
            return FlowReply(messages.no_availability(self._alternatives(today)))

        session.selected_date = day
        session.candidate_slots = [entry.time_slot for entry in open_slots]
        session.selected_slot = None
        machine.transition(BookingTrigger.DATE_SELECTED)
        return FlowReply(messages.time_options(day, session.candidate_slots))

    def _on_time(self, session: BookingSession, machine: BookingStateMachine, text: str) -> FlowReply:
        index = self._menu.parse(text, len(session.candidate_slots))
        if index is None:
            session.record_attempt()
            return FlowReply(messages.invalid_option("el horario que prefieres"))

        session.selected_slot = session.candidate_slots[index]
        if session.sample_type is not None:
            machine.transition(BookingTrigger.SELECTION_RESTORED)
            return FlowReply(self._summary_prompt(session))

        machine.transition(BookingTrigger.TIME_SELECTED)
        return FlowReply(messages.sample_type_options())

    def _on_sample_type(self, session: BookingSession, machine: BookingStateMachine, text: str) -> FlowReply:
        index = self._menu.parse(text, len(messages.SAMPLE_TYPES), SAMPLE_ALIASES)
        if index is None:
            session.record_attempt()
            return FlowReply(messages.invalid_option("el tipo de muestra"))

        session.sample_type = messages.SAMPLE_TYPES[index]
        machine.transition(BookingTrigger.SAMPLE_SELECTED)
        return FlowReply(self._summary_prompt(session))

    def _on_confirm(self, session: BookingSession, machine: BookingStateMachine, text: str) -> FlowReply:
        reply = self._replies.classify(text)
        if reply == Reply.AFFIRMATIVE:
            return self._book(session, machine)
        named = self._menu.match_name(text, MODIFY_ALIASES)
        if reply == Reply.NEGATIVE or (reply == Reply.UNKNOWN and named is not None):
            machine.transition(BookingTrigger.CHANGE_REQUESTED)
            if named is not None:
                return self._modify_field(session, machine, named)
            return FlowReply(messages.modify_menu())
        if reply == Reply.ABORT:
            machine.transition(BookingTrigger.ABORT)
            logger.info("Booking aborted at confirmation")
            return FlowReply(messages.booking_aborted())

        session.record_attempt()
        return FlowReply(messages.confirmation_not_understood())

    def _on_modify(self, session: BookingSession, machine: BookingStateMachine, text: str) -> FlowReply:
        index = self._menu.parse(text, len(messages.MODIFY_OPTIONS), MODIFY_ALIASES)
        if index is None:
            session.record_attempt()
            return FlowReply(
                f"{messages.invalid_option('lo que quieres modificar')}\n\n{messages.modify_menu()}"
            )
        return self._modify_field(session, machine, index)

    def _modify_field(self, session: BookingSession, machine: BookingStateMachine, index: int) -> FlowReply:
        if index == 0:
            machine.transition(BookingTrigger.MODIFY_DATE)
            return FlowReply(messages.ask_date())

        if index == 1:
            open_slots = self._open_slots(session.selected_date)
            if not open_slots:
                session.selected_slot = None
                machine.transition(BookingTrigger.MODIFY_DATE)
                return FlowReply(messages.no_availability(self._alternatives(self._clock().date())))
            session.candidate_slots = [entry.time_slot for entry in open_slots]
            machine.transition(BookingTrigger.MODIFY_TIME)
            return FlowReply(messages.time_options(session.selected_date, session.candidate_slots))

        if index == 2:
            machine.transition(BookingTrigger.MODIFY_SAMPLE)
            return FlowReply(messages.sample_type_options())

        customer = self._directory.get(session.customer_id)
        machine.transition(BookingTrigger.MODIFY_ADDRESS)
        return FlowReply(messages.ask_address(customer.name, customer.address))

    # --- Helpers ---

    def _book(self, session: BookingSession, machine: BookingStateMachine) -> FlowReply:
        if not session.selection_complete():
            raise ValueError(f"Session {session.session_id} reached confirm without a full selection")

        if self._directory.has_active_appointment(session.customer_id):
            machine.transition(BookingTrigger.ABORT)
            return FlowReply(self._conflict_prompt(session.customer_id))

        slot = session.selected_slot
        try:
            appointment = self._store.create(
                session.customer_id,
                session.selected_date,
                slot.id,
                session.sample_type,
            )
        except SlotFull:
            logger.info("Slot %s filled up before confirmation on %s", slot.id, session.selected_date)
            session.selected_slot = None
            session.candidate_slots = []
            machine.transition(BookingTrigger.SLOT_TAKEN)
            return FlowReply(messages.slot_full(self._alternatives(self._clock().date())))

        session.appointment_id = appointment.id
        machine.transition(BookingTrigger.CUSTOMER_CONFIRMED)
        self._notify_booked(appointment, slot)
        return FlowReply(
            messages.booking_success(appointment, self._min_notice_hours),
            appointment=appointment,
        )

    def _notify_booked(self, appointment: Appointment, slot: TimeSlot) -> None:
        try:
            customer = self._directory.get(appointment.customer_id)
        except SchedulingError:
            logger.exception("Could not load customer for booking notification")
            return
        notify_safely(self._notifier, "appointment_booked", appointment, customer, slot)

    def _open_slots(self, day: Optional[date]):
        if day is None:
            return []
        try:
            return self._availability.available_slots(day)
        except ValidationError:
            return []

    def _alternatives(self, today: date) -> str:
        return self._availability.availability_summary(today, self._alternatives_days)

    def _date_prompt(self, customer: Customer) -> str:
        today = self._clock().date()
        summary = self._availability.availability_summary(today, self._summary_days)
        return f"{summary}\n\n{messages.ask_date(customer.name)}"

    def _summary_prompt(self, session: BookingSession, customer: Optional[Customer] = None) -> str:
        customer = customer or self._directory.get(session.customer_id)
        return messages.booking_summary(
            customer,
            session.selected_date,
            session.selected_slot,
            session.sample_type,
            self._store.base_price,
        )

    def _conflict_prompt(self, customer_id: str) -> str:
        active = self._store.get_customer_appointments(customer_id, statuses=ACTIVE_STATUSES, limit=1)
        if not active:
            return messages.not_found()
        appointment = active[0]
        try:
            slot = self._catalog.get_slot(appointment.time_slot_id)
        except NotFound:
            slot = None
        return messages.active_appointment_conflict(appointment, slot)
