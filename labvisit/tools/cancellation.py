"""
Cancellation notice policy.

The policy never refuses to cancel an active appointment. Inside the
minimum-notice window it asks for a second confirmation and the resulting
cancellation carries the late-cancellation marker.
"""

import logging
from datetime import datetime, timedelta

from labvisit.exceptions import LateCancellationRequired
from labvisit.schemas.booking_schema import Appointment, AppointmentStatus, CancellationDecision
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.slots import SlotCatalog

logger = logging.getLogger(__name__)


class CancellationPolicy:
    """Decides between single and double confirmation for a cancellation."""

    def __init__(
        self,
        store: AppointmentStore,
        catalog: SlotCatalog,
        min_notice_minutes: int = 120,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._min_notice = timedelta(minutes=min_notice_minutes)

    @property
    def min_notice_minutes(self) -> int:
        return int(self._min_notice.total_seconds() // 60)

    def scheduled_start(self, appointment: Appointment) -> datetime:
        slot = self._catalog.get_slot(appointment.time_slot_id)
        hours, minutes = (int(part) for part in slot.start_time.split(":"))
        return datetime.combine(appointment.appointment_date, datetime.min.time()).replace(
            hour=hours, minute=minutes
        )

    def request_cancellation(self, appointment_id: str, now: datetime) -> CancellationDecision:
        """
        Evaluate the notice left before the appointment starts.

        ``allowed`` is false only when the appointment is no longer active.
        ``minutes_remaining`` is negative once the start time has passed.
        """
        appointment = self._store.get(appointment_id)
        start = self.scheduled_start(appointment)
        remaining = int((start - now).total_seconds() // 60)

        if not appointment.is_active:
            return CancellationDecision(
                appointment_id=appointment_id,
                allowed=False,
                minutes_remaining=remaining,
                requires_late_override=False,
                scheduled_start=start,
                reason=f"La cita ya está {_status_label(appointment.status)}",
            )

        late = start - now < self._min_notice
        if late:
            logger.info(
                "Late cancellation requested for %s: %d minutes remaining",
                appointment.reference, remaining,
            )
        return CancellationDecision(
            appointment_id=appointment_id,
            allowed=True,
            minutes_remaining=remaining,
            requires_late_override=late,
            scheduled_start=start,
        )

    def cancel(
        self,
        appointment_id: str,
        now: datetime,
        late_override_confirmed: bool = False,
    ) -> Appointment:
        """
        Apply a cancellation that passed the policy.

        Raises:
            LateCancellationRequired: Inside the notice window without the override.
            InvalidTransition: The appointment is already cancelled or completed.
        """
        decision = self.request_cancellation(appointment_id, now)
        if decision.requires_late_override and not late_override_confirmed:
            raise LateCancellationRequired(appointment_id, decision.minutes_remaining)
        return self._store.update_status(
            appointment_id,
            AppointmentStatus.CANCELLED,
            late_cancellation=decision.requires_late_override,
        )


def _status_label(status: AppointmentStatus) -> str:
    return {
        AppointmentStatus.CANCELLED: "cancelada",
        AppointmentStatus.COMPLETED: "completada",
    }.get(status, status.value)
