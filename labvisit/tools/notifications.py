"""
Outbound notification sink.

Delivery (WhatsApp, SMS) lives outside this package. The engine calls the
notifier after a booking or cancellation is stored; failures are logged and
never undo the state change.
"""

import logging
from typing import Protocol

from labvisit.prompts import messages
from labvisit.schemas.booking_schema import Appointment, TimeSlot
from labvisit.schemas.customer_schema import Customer

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def appointment_booked(self, appointment: Appointment, customer: Customer, slot: TimeSlot) -> None:
        ...

    def appointment_cancelled(self, appointment: Appointment, customer: Customer, slot: TimeSlot) -> None:
        ...


class LoggingNotifier:
    """Renders the customer-facing message and logs it instead of sending it."""

    def __init__(self, lab_name: str) -> None:
        self._lab_name = lab_name

    def appointment_booked(self, appointment: Appointment, customer: Customer, slot: TimeSlot) -> None:
        text = messages.confirmation_notification(appointment, customer, slot, self._lab_name)
        logger.info("Confirmation for %s (%s):\n%s", customer.phone_number, appointment.reference, text)

    def appointment_cancelled(self, appointment: Appointment, customer: Customer, slot: TimeSlot) -> None:
        text = messages.cancellation_notification(appointment, customer, slot, self._lab_name)
        logger.info("Cancellation for %s (%s):\n%s", customer.phone_number, appointment.reference, text)


def notify_safely(notifier: Notifier, event: str, *args) -> None:
    """Call ``notifier.<event>(*args)``, logging any failure."""
    try:
        getattr(notifier, event)(*args)
    except Exception:
        logger.exception("Notifier %s failed", event)
