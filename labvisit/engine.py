"""
Composition root and public surface of the scheduling engine.

``build_engine`` wires every component once, explicitly, and hands back a
``SchedulingEngine``. The messaging transport only talks to the engine:
it opens sessions, forwards customer messages and relays the prompts.

Usage:
    engine = build_engine("sqlite:///./labvisit.db")
    handle = engine.start_booking_by_phone("+57 315 555 1234", "María")
    turn = engine.submit_input(handle.session_id, "mañana")
"""

from datetime import date, datetime
from typing import Optional

from labvisit.config import AppConfig, settings
from labvisit.conversation.booking_flow import BookingFlow
from labvisit.conversation.cancel_flow import CancellationFlow
from labvisit.conversation.session_store import Session, SessionStore
from labvisit.db import Database
from labvisit.exceptions import NotFound
from labvisit.logging_context import get_session_logger, session_context
from labvisit.prompts import messages
from labvisit.schemas.booking_schema import ACTIVE_STATUSES, Appointment, AppointmentStatus, TimeSlot
from labvisit.schemas.conversation_schema import (
    TERMINAL_STEPS,
    BookingSession,
    SessionHandle,
    TurnResult,
)
from labvisit.tools.availability import AvailabilityCalculator
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.cancellation import CancellationPolicy
from labvisit.tools.customer import CustomerDirectory
from labvisit.tools.notifications import LoggingNotifier, Notifier
from labvisit.tools.slots import SlotCatalog
from labvisit.utils import Clock, make_clock

logger = get_session_logger(__name__)


class SchedulingEngine:
    """Booking and cancellation conversations over shared scheduling components."""

    def __init__(
        self,
        *,
        config: AppConfig,
        database: Database,
        catalog: SlotCatalog,
        directory: CustomerDirectory,
        store: AppointmentStore,
        availability: AvailabilityCalculator,
        policy: CancellationPolicy,
        notifier: Notifier,
        clock: Clock,
        sessions: Optional[SessionStore] = None,
    ) -> None:
        self.config = config
        self.database = database
        self.catalog = catalog
        self.directory = directory
        self.store = store
        self.availability = availability
        self.policy = policy
        self.notifier = notifier
        self.sessions = sessions or SessionStore(config.conversation.idle_timeout_seconds)
        self._clock = clock

        self.booking_flow = BookingFlow(
            catalog, directory, store, availability, notifier, clock,
            min_address_length=config.conversation.min_address_length,
            max_input_length=config.conversation.max_input_length,
            summary_days=config.scheduling.summary_days,
            alternatives_days=config.scheduling.alternatives_days,
            min_notice_minutes=config.cancellation.min_notice_minutes,
        )
        self.cancel_flow = CancellationFlow(
            catalog, directory, store, policy, notifier, clock,
            max_input_length=config.conversation.max_input_length,
        )

    # --- Conversations ---

    def start_booking(self, customer_id: str) -> SessionHandle:
        """Open a booking conversation for a known customer.

        Raises:
            NotFound: Unknown customer.
        """
        self.directory.get(customer_id)
        session = self.sessions.new_booking(customer_id, self._clock())
        with session_context(session.session_id), self.sessions.turn_lock(session.session_id):
            logger.info("Booking session started for customer %s", customer_id)
            reply = self.booking_flow.start(session)
            return self._result(SessionHandle, session, reply.prompt, reply.appointment)

    def start_booking_by_phone(self, phone: str, display_name: Optional[str] = None) -> SessionHandle:
        """First contact from the transport: find or create the customer, then book."""
        customer = self.directory.find_or_create(phone, display_name)
        return self.start_booking(customer.id)

    def start_cancellation(
        self, customer_id: str, appointment_id: Optional[str] = None
    ) -> SessionHandle:
        """Open a cancellation conversation; defaults to the customer's active appointment."""
        self.directory.get(customer_id)
        session = self.sessions.new_cancellation(customer_id, appointment_id, self._clock())
        with session_context(session.session_id), self.sessions.turn_lock(session.session_id):
            prompt = self.cancel_flow.start(session)
            return self._result(SessionHandle, session, prompt, None)

    def submit_input(self, session_id: str, raw_text: Optional[str]) -> TurnResult:
        """Process one customer message. Turns of one session run one at a time.

        Raises:
            NotFound: Unknown, finished or expired session.
        """
        self.sessions.get(session_id)
        with session_context(session_id), self.sessions.turn_lock(session_id):
            session = self.sessions.get(session_id)
            session.last_activity = self._clock()
            if isinstance(session, BookingSession):
                reply = self.booking_flow.handle(session, raw_text)
                prompt, appointment = reply.prompt, reply.appointment
            else:
                prompt, appointment = self.cancel_flow.handle(session, raw_text)
            return self._result(TurnResult, session, prompt, appointment)

    def _result(
        self,
        result_cls: type[TurnResult],
        session: Session,
        prompt: str,
        appointment: Optional[Appointment],
    ) -> TurnResult:
        state = session.step.value
        terminal = state in TERMINAL_STEPS
        if terminal:
            self.sessions.discard(session.session_id)
            logger.info("Session finished in state %s", state)
        return result_cls(
            session_id=session.session_id,
            prompt=prompt,
            state=state,
            terminal=terminal,
            appointment=appointment,
        )

    def expire_idle_sessions(self) -> list[str]:
        """Discard sessions idle past the configured timeout."""
        return self.sessions.expire_idle(self._clock())

    # --- Direct operations ---

    def cancel_appointment(
        self,
        appointment_id: str,
        now: Optional[datetime] = None,
        late_override_confirmed: bool = False,
    ) -> Appointment:
        """Cancel outside a conversation.

        Raises:
            NotFound: Unknown appointment.
            LateCancellationRequired: Inside the notice window without the override.
            InvalidTransition: Already cancelled or completed.
        """
        appointment = self.policy.cancel(
            appointment_id, now or self._clock(), late_override_confirmed=late_override_confirmed
        )
        self.cancel_flow.notify_cancelled(appointment)
        return appointment

    def get_availability_summary(
        self, from_date: Optional[date] = None, days: Optional[int] = None
    ) -> str:
        return self.availability.availability_summary(
            from_date, days or self.config.scheduling.summary_days
        )

    def get_customer_summary(self, customer_id: str) -> str:
        customer = self.directory.get(customer_id)
        return messages.customer_summary(customer, self.directory.get_stats(customer_id))

    def get_customer_appointments_summary(self, customer_id: str, limit: int = 10) -> str:
        """Render the customer's active and last completed appointments.

        Raises:
            NotFound: Unknown customer.
        """
        customer = self.directory.get(customer_id)
        history = self.store.get_customer_appointments(customer_id, limit=limit)
        pending = [
            (appointment, self._slot_or_none(appointment.time_slot_id))
            for appointment in history
            if appointment.status in ACTIVE_STATUSES
        ]
        completed = [a for a in history if a.status == AppointmentStatus.COMPLETED][:3]
        return messages.customer_appointments(
            customer, pending, completed, self.directory.get_stats(customer_id)
        )

    def _slot_or_none(self, time_slot_id: str) -> Optional[TimeSlot]:
        try:
            return self.catalog.get_slot(time_slot_id)
        except NotFound:
            return None

    def close(self) -> None:
        self.database.close()


def build_engine(
    database_url: Optional[str] = None,
    *,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
    config: Optional[AppConfig] = None,
) -> SchedulingEngine:
    """Wire all components and seed the default time slot if the catalog is empty."""
    config = config or settings
    clock = clock or make_clock(config.service.timezone)

    database = Database(
        database_url or config.database.url,
        timeout_seconds=config.database.timeout_seconds,
        echo=config.database.echo,
    )
    database.init_schema()

    catalog = SlotCatalog(database)
    catalog.ensure_default_slot(config.service.default_slot_start, config.service.default_slot_end)

    directory = CustomerDirectory(
        database,
        clock,
        max_address_length=config.conversation.max_address_length,
        max_name_length=config.conversation.max_name_length,
    )
    store = AppointmentStore(
        database,
        clock,
        capacity=config.service.slot_capacity,
        base_price=config.service.base_price,
    )
    availability = AvailabilityCalculator(
        catalog,
        store,
        clock,
        max_advance_days=config.scheduling.max_advance_days,
        max_range_days=config.scheduling.max_range_days,
        lookahead_days=config.scheduling.next_slot_lookahead_days,
    )
    policy = CancellationPolicy(store, catalog, config.cancellation.min_notice_minutes)

    logger.info(
        "Scheduling engine ready for %s (capacity %d per slot, base price %d COP)",
        config.service.service_area, config.service.slot_capacity, config.service.base_price,
    )
    return SchedulingEngine(
        config=config,
        database=database,
        catalog=catalog,
        directory=directory,
        store=store,
        availability=availability,
        policy=policy,
        notifier=notifier or LoggingNotifier(config.service.name),
        clock=clock,
    )
