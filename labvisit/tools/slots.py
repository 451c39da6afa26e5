"""
Slot catalog: the fixed daily windows in which home visits happen.

Slots are administrative data. The conversational core only reads them;
``add_slot`` and ``ensure_default_slot`` exist for seeding and operations.
"""

import logging

import pydantic
from sqlalchemy import select

from labvisit.db import Database, TimeSlotRow
from labvisit.exceptions import NotFound, ValidationError
from labvisit.schemas.booking_schema import TimeSlot

logger = logging.getLogger(__name__)


class SlotCatalog:
    """Read access to configured time slots."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def list_active_slots(self) -> list[TimeSlot]:
        """Return active slots ordered by start time."""
        with self._db.unit_of_work() as session:
            rows = session.scalars(
                select(TimeSlotRow)
                .where(TimeSlotRow.is_active.is_(True))
                .order_by(TimeSlotRow.start_time)
            ).all()
            return [TimeSlot.model_validate(row) for row in rows]

    def get_slot(self, slot_id: str) -> TimeSlot:
        """Get a slot by ID, active or not."""
        with self._db.unit_of_work() as session:
            row = session.get(TimeSlotRow, slot_id)
            if row is None:
                raise NotFound("TimeSlot", slot_id)
            return TimeSlot.model_validate(row)

    def add_slot(self, start_time: str, end_time: str, is_active: bool = True) -> TimeSlot:
        """Register a new daily window."""
        try:
            TimeSlot(id="new", start_time=start_time, end_time=end_time)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Invalid time slot {start_time}-{end_time}: {exc.errors()[0]['msg']}",
                field="time_slot",
            ) from None

        with self._db.unit_of_work() as session:
            row = TimeSlotRow(start_time=start_time, end_time=end_time, is_active=is_active)
            session.add(row)
            session.flush()
            slot = TimeSlot.model_validate(row)
        logger.info("Time slot added: %s (%s)", slot.label, slot.id)
        return slot

    def ensure_default_slot(self, start_time: str, end_time: str) -> list[TimeSlot]:
        """Seed the default window when the catalog is empty."""
        slots = self.list_active_slots()
        if slots:
            return slots
        return [self.add_slot(start_time, end_time)]
