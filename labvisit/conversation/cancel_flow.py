"""
Conversational cancellation: one confirmation, or two inside the notice window.

    cancel_confirm --sí--> cancelled
                   --sí (late)--> late_cancel_confirm --"confirmar cancelación"--> cancelled
                   --no--> kept
"""

from datetime import datetime
from typing import Optional

from labvisit.conversation.guardrails import InputGuardrail, Reply, ReplyClassifier
from labvisit.exceptions import LateCancellationRequired, NotFound, SchedulingError, StoreUnavailable
from labvisit.logging_context import get_session_logger
from labvisit.prompts import messages
from labvisit.schemas.booking_schema import ACTIVE_STATUSES, Appointment
from labvisit.schemas.conversation_schema import CancellationSession, CancellationStep
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.cancellation import CancellationPolicy
from labvisit.tools.customer import CustomerDirectory
from labvisit.tools.notifications import Notifier, notify_safely
from labvisit.tools.slots import SlotCatalog
from labvisit.utils import Clock

logger = get_session_logger(__name__)

LATE_CONFIRMATION_PHRASE = "confirmar cancelación"


class CancelReplyClassifier(ReplyClassifier):
    """In this conversation "cancelar" means yes and "mantener" means no."""

    AFFIRMATIVE = ReplyClassifier.AFFIRMATIVE | {"cancelar", "cancela", "cancelala"}
    NEGATIVE = frozenset({"no", "mantener", "conservar", "mantenerla"})
    ABORT = frozenset()


class CancellationFlow:
    """Drives cancellation sessions through the policy."""

    def __init__(
        self,
        catalog: SlotCatalog,
        directory: CustomerDirectory,
        store: AppointmentStore,
        policy: CancellationPolicy,
        notifier: Notifier,
        clock: Clock,
        max_input_length: int = 500,
    ) -> None:
        self._catalog = catalog
        self._directory = directory
        self._store = store
        self._policy = policy
        self._notifier = notifier
        self._clock = clock
        self._input = InputGuardrail(max_input_length)
        self._replies = CancelReplyClassifier()
        self._min_notice_hours = max(policy.min_notice_minutes // 60, 1)

    def start(self, session: CancellationSession) -> str:
        """Pick the appointment to cancel and ask for the first confirmation."""
        try:
            return self._start(session)
        except StoreUnavailable:
            logger.warning("Datastore unavailable while opening cancellation")
            session.step = CancellationStep.NOTHING_TO_CANCEL
            return messages.store_unavailable()

    def _start(self, session: CancellationSession) -> str:
        if session.appointment_id is None:
            active = self._store.get_customer_appointments(
                session.customer_id, statuses=ACTIVE_STATUSES, limit=1
            )
            if not active:
                session.step = CancellationStep.NOTHING_TO_CANCEL
                return messages.nothing_to_cancel()
            session.appointment_id = active[0].id

        appointment = self._store.find_by_id(session.appointment_id)
        if appointment is None or appointment.customer_id != session.customer_id:
            session.step = CancellationStep.NOTHING_TO_CANCEL
            return messages.nothing_to_cancel()

        decision = self._policy.request_cancellation(appointment.id, self._clock())
        if not decision.allowed:
            session.step = CancellationStep.NOTHING_TO_CANCEL
            return messages.nothing_to_cancel(decision.reason)

        session.minutes_remaining = decision.minutes_remaining
        session.step = CancellationStep.CONFIRM
        slot = self._catalog.get_slot(appointment.time_slot_id)
        return messages.cancel_confirm(
            appointment, slot, decision.requires_late_override, self._min_notice_hours
        )

    def handle(self, session: CancellationSession, raw_text: Optional[str]) -> tuple[str, Optional[Appointment]]:
        """Process one customer message; returns the prompt and the cancelled appointment, if any."""
        check = self._input.check(raw_text)
        if not check.passed:
            return messages.empty_input(), None

        try:
            if session.step == CancellationStep.CONFIRM:
                return self._on_confirm(session, check.text)
            if session.step == CancellationStep.LATE_CONFIRM:
                return self._on_late_confirm(session, check.text)
        except StoreUnavailable:
            logger.warning("Datastore unavailable at step %s", session.step.value)
            return messages.store_unavailable(), None
        except NotFound as exc:
            logger.error("%s %s vanished during cancellation", exc.resource, exc.identifier)
            return messages.not_found(), None
        raise ValueError(f"Session {session.session_id} already ended in {session.step.value}")

    def _on_confirm(self, session: CancellationSession, text: str) -> tuple[str, Optional[Appointment]]:
        reply = self._replies.classify(text)
        if reply == Reply.NEGATIVE:
            return self._keep(session)
        if reply != Reply.AFFIRMATIVE:
            return messages.cancel_not_understood(), None

        now = self._clock()
        decision = self._policy.request_cancellation(session.appointment_id, now)
        if not decision.allowed:
            session.step = CancellationStep.NOTHING_TO_CANCEL
            return messages.nothing_to_cancel(decision.reason), None
        if decision.requires_late_override:
            session.minutes_remaining = decision.minutes_remaining
            session.step = CancellationStep.LATE_CONFIRM
            return messages.late_cancel_confirm(decision.minutes_remaining), None
        return self._cancel(session, now, late_override_confirmed=False)

    def _on_late_confirm(self, session: CancellationSession, text: str) -> tuple[str, Optional[Appointment]]:
        if self._replies.contains_phrase(text, LATE_CONFIRMATION_PHRASE):
            return self._cancel(session, self._clock(), late_override_confirmed=True)
        if self._replies.classify(text) == Reply.NEGATIVE:
            return self._keep(session)
        return messages.late_cancel_confirm(session.minutes_remaining or 0), None

    def _cancel(
        self, session: CancellationSession, now: datetime, late_override_confirmed: bool
    ) -> tuple[str, Optional[Appointment]]:
        try:
            appointment = self._policy.cancel(
                session.appointment_id, now, late_override_confirmed=late_override_confirmed
            )
        except LateCancellationRequired as exc:
            session.minutes_remaining = exc.minutes_remaining
            session.step = CancellationStep.LATE_CONFIRM
            return messages.late_cancel_confirm(exc.minutes_remaining), None
        session.step = CancellationStep.CANCELLED
        self.notify_cancelled(appointment)
        return messages.cancellation_done(appointment), appointment

    def _keep(self, session: CancellationSession) -> tuple[str, Optional[Appointment]]:
        session.step = CancellationStep.KEPT
        reference = (session.appointment_id or "")[:8].upper()
        logger.info("Customer kept appointment %s", reference)
        return messages.appointment_kept(reference), None

    def notify_cancelled(self, appointment: Appointment) -> None:
        try:
            customer = self._directory.get(appointment.customer_id)
            slot = self._catalog.get_slot(appointment.time_slot_id)
        except SchedulingError:
            logger.exception("Could not load details for cancellation notification")
            return
        notify_safely(self._notifier, "appointment_cancelled", appointment, customer, slot)
