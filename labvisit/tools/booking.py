"""
Appointment store: the only writer of appointment rows.

``create`` is the single cross-session race in the system. The
count-then-insert for one (date, time slot) runs inside one write unit of
work: on SQLite it opens with ``BEGIN IMMEDIATE``, which holds the database
write lock for the whole transaction, and on servers that honour row locks
``SELECT ... FOR UPDATE`` on the time-slot row serializes writers for that
slot. A striped in-process lock keeps threads of one process from queueing
on the database lock.
"""

import logging
from collections import Counter
from datetime import date
from typing import Iterable, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from labvisit.db import AppointmentRow, CustomerRow, Database, TimeSlotRow
from labvisit.exceptions import InvalidTransition, NotFound, SlotFull, ValidationError
from labvisit.schemas.booking_schema import (
    OCCUPYING_STATUSES,
    STATUS_TRANSITIONS,
    Appointment,
    AppointmentStatus,
    SampleType,
)
from labvisit.utils import Clock, StripedLock

logger = logging.getLogger(__name__)

_OCCUPYING = [status.value for status in OCCUPYING_STATUSES]


def coerce_sample_type(value: Union[SampleType, str]) -> SampleType:
    """Accept a ``SampleType`` or its catalog label."""
    if isinstance(value, SampleType):
        return value
    for sample in SampleType:
        if sample.value.lower() == str(value).strip().lower() or sample.name == value:
            return sample
    raise ValidationError(f"Unknown sample type: {value!r}", field="sample_type")


class AppointmentStore:
    """Owns the appointment lifecycle."""

    def __init__(
        self,
        database: Database,
        clock: Clock,
        capacity: int,
        base_price: int,
    ) -> None:
        self._db = database
        self._clock = clock
        self._capacity = capacity
        self._base_price = base_price
        self._locks = StripedLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def base_price(self) -> int:
        return self._base_price

    def _count_occupying(self, session: Session, appointment_date: date, time_slot_id: str) -> int:
        return session.scalar(
            select(func.count())
            .select_from(AppointmentRow)
            .where(
                AppointmentRow.appointment_date == appointment_date,
                AppointmentRow.time_slot_id == time_slot_id,
                AppointmentRow.status.in_(_OCCUPYING),
            )
        ) or 0

    def create(
        self,
        customer_id: str,
        appointment_date: date,
        time_slot_id: str,
        sample_type: Union[SampleType, str],
        special_instructions: Optional[str] = None,
    ) -> Appointment:
        """
        Persist a new ``scheduled`` appointment at the base price.

        Raises:
            NotFound: Unknown customer, or unknown/inactive time slot.
            SlotFull: The pair already holds ``capacity`` appointments. Nothing is inserted.
            StoreUnavailable: Datastore timeout or connectivity failure.
        """
        sample = coerce_sample_type(sample_type)

        with self._locks((appointment_date, time_slot_id)):
            with self._db.unit_of_work(write=True) as session:
                slot = session.scalars(
                    select(TimeSlotRow)
                    .where(TimeSlotRow.id == time_slot_id)
                    .with_for_update()
                ).first()
                if slot is None or not slot.is_active:
                    raise NotFound("TimeSlot", time_slot_id)
                if session.get(CustomerRow, customer_id) is None:
                    raise NotFound("Customer", customer_id)

                booked = self._count_occupying(session, appointment_date, time_slot_id)
                if booked >= self._capacity:
                    logger.info(
                        "Slot full: %s on %s (%d/%d)",
                        time_slot_id, appointment_date, booked, self._capacity,
                    )
                    raise SlotFull(appointment_date, time_slot_id)

                now = self._clock()
                row = AppointmentRow(
                    customer_id=customer_id,
                    appointment_date=appointment_date,
                    time_slot_id=time_slot_id,
                    sample_type=sample.value,
                    special_instructions=special_instructions,
                    status=AppointmentStatus.SCHEDULED.value,
                    total_amount=self._base_price,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.flush()
                appointment = Appointment.model_validate(row)

        logger.info(
            "Appointment created: %s for customer %s on %s (slot %s, %d/%d)",
            appointment.reference, customer_id, appointment_date,
            time_slot_id, booked + 1, self._capacity,
        )
        return appointment

    def update_status(
        self,
        appointment_id: str,
        new_status: Union[AppointmentStatus, str],
        late_cancellation: bool = False,
    ) -> Appointment:
        """Move an appointment along the status graph.

        Raises:
            NotFound: Unknown appointment.
            InvalidTransition: The move is not in ``STATUS_TRANSITIONS``.
        """
        target = AppointmentStatus(new_status)
        with self._db.unit_of_work(write=True) as session:
            row = session.get(AppointmentRow, appointment_id, with_for_update=True)
            if row is None:
                raise NotFound("Appointment", appointment_id)

            current = AppointmentStatus(row.status)
            if target not in STATUS_TRANSITIONS[current]:
                raise InvalidTransition(
                    f"Cannot move appointment {appointment_id} "
                    f"from '{current.value}' to '{target.value}'"
                )

            now = self._clock()
            row.status = target.value
            row.updated_at = now
            if target == AppointmentStatus.CANCELLED:
                row.cancelled_at = now
                row.late_cancellation = late_cancellation
            session.flush()
            appointment = Appointment.model_validate(row)

        logger.info(
            "Appointment %s: %s -> %s%s",
            appointment.reference, current.value, target.value,
            " (late)" if appointment.late_cancellation else "",
        )
        return appointment

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        with self._db.unit_of_work() as session:
            row = session.get(AppointmentRow, appointment_id)
            return Appointment.model_validate(row) if row else None

    def get(self, appointment_id: str) -> Appointment:
        appointment = self.find_by_id(appointment_id)
        if appointment is None:
            raise NotFound("Appointment", appointment_id)
        return appointment

    def get_customer_appointments(
        self,
        customer_id: str,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[Appointment]:
        """Customer history, most recent appointment date first."""
        query = (
            select(AppointmentRow)
            .where(AppointmentRow.customer_id == customer_id)
            .order_by(AppointmentRow.appointment_date.desc(), AppointmentRow.created_at.desc())
        )
        if statuses is not None:
            query = query.where(
                AppointmentRow.status.in_([AppointmentStatus(s).value for s in statuses])
            )
        if limit is not None:
            query = query.limit(limit)

        with self._db.unit_of_work() as session:
            return [Appointment.model_validate(row) for row in session.scalars(query).all()]

    def find_by_date_range(
        self,
        from_date: date,
        to_date: date,
        status: Optional[AppointmentStatus] = None,
    ) -> list[Appointment]:
        """Appointments in ``[from_date, to_date]`` ordered by date and slot start."""
        query = (
            select(AppointmentRow)
            .join(TimeSlotRow, AppointmentRow.time_slot_id == TimeSlotRow.id)
            .where(AppointmentRow.appointment_date.between(from_date, to_date))
            .order_by(AppointmentRow.appointment_date, TimeSlotRow.start_time)
        )
        if status is not None:
            query = query.where(AppointmentRow.status == AppointmentStatus(status).value)

        with self._db.unit_of_work() as session:
            return [Appointment.model_validate(row) for row in session.scalars(query).all()]

    def count_booked(self, from_date: date, to_date: date) -> Counter:
        """Capacity-occupying appointments per ``(date, time_slot_id)`` in the range."""
        with self._db.unit_of_work() as session:
            rows = session.execute(
                select(
                    AppointmentRow.appointment_date,
                    AppointmentRow.time_slot_id,
                    func.count(),
                )
                .where(
                    AppointmentRow.appointment_date.between(from_date, to_date),
                    AppointmentRow.status.in_(_OCCUPYING),
                )
                .group_by(AppointmentRow.appointment_date, AppointmentRow.time_slot_id)
            ).all()
        return Counter({(day, slot_id): count for day, slot_id, count in rows})
