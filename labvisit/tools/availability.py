"""
Capacity-aware availability over the slot catalog.

Every query enumerates date x active slot, counts capacity-occupying
appointments per pair and marks ``available = booked_count < capacity``.
Today's slots that already started are dropped.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from labvisit.dates import format_date_for_user
from labvisit.exceptions import ValidationError
from labvisit.schemas.booking_schema import DayCapacity, SlotAvailability
from labvisit.tools.booking import AppointmentStore
from labvisit.tools.slots import SlotCatalog
from labvisit.utils import Clock

logger = logging.getLogger(__name__)

NO_SLOTS_MESSAGE = "No hay disponibilidad en los próximos días. Por favor contacta directamente."
ALL_BOOKED_MESSAGE = (
    "No hay citas disponibles en los próximos días. "
    "Te recomendamos intentar para fechas más adelante."
)


class AvailabilityCalculator:
    """Read-only availability queries built on one primitive."""

    def __init__(
        self,
        catalog: SlotCatalog,
        store: AppointmentStore,
        clock: Clock,
        max_advance_days: int = 90,
        max_range_days: int = 90,
        lookahead_days: int = 30,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._clock = clock
        self._max_advance_days = max_advance_days
        self._max_range_days = max_range_days
        self._lookahead_days = lookahead_days

    def _validate_range(self, from_date: date, to_date: date, today: date) -> None:
        if from_date < today:
            raise ValidationError("No se pueden consultar fechas pasadas", field="from_date")
        if to_date < from_date:
            raise ValidationError(
                "La fecha final no puede ser anterior a la fecha inicial", field="to_date"
            )
        if (to_date - from_date).days > self._max_range_days:
            raise ValidationError(
                f"El rango de fechas no puede ser mayor a {self._max_range_days} días",
                field="date_range",
            )
        if from_date > today + timedelta(days=self._max_advance_days):
            raise ValidationError(
                "No se pueden agendar citas con más de "
                f"{self._max_advance_days} días de anticipación",
                field="from_date",
            )

    def compute_availability(
        self, from_date: date, to_date: Optional[date] = None
    ) -> list[SlotAvailability]:
        """
        Occupancy for every date in ``[from_date, to_date]`` and every active slot.

        Args:
            from_date: First date, not before today.
            to_date: Last date (inclusive). Defaults to ``from_date``.

        Returns:
            Entries ordered by date, then slot start time.

        Raises:
            ValidationError: The range is in the past, inverted, too long or too far ahead.
        """
        to_date = to_date or from_date
        now = self._clock()
        today = now.date()
        self._validate_range(from_date, to_date, today)

        slots = self._catalog.list_active_slots()
        booked = self._store.count_booked(from_date, to_date)
        current_time = now.strftime("%H:%M")
        capacity = self._store.capacity

        result: list[SlotAvailability] = []
        day = from_date
        while day <= to_date:
            for slot in slots:
                if day == today and slot.start_time <= current_time:
                    continue
                count = booked.get((day, slot.id), 0)
                result.append(SlotAvailability(
                    date=day,
                    time_slot=slot,
                    available=count < capacity,
                    booked_count=count,
                ))
            day += timedelta(days=1)

        logger.debug(
            "Availability %s..%s: %d entries, %d open",
            from_date, to_date, len(result), sum(1 for entry in result if entry.available),
        )
        return result

    def available_slots(self, day: date) -> list[SlotAvailability]:
        """Open entries for one date."""
        return [entry for entry in self.compute_availability(day) if entry.available]

    def next_available_slot(self) -> Optional[SlotAvailability]:
        """Earliest open (date, slot) within the lookahead window."""
        today = self._clock().date()
        entries = self.compute_availability(
            today, today + timedelta(days=self._lookahead_days)
        )
        for entry in entries:
            if entry.available:
                return entry
        return None

    def day_capacity(self, day: date) -> DayCapacity:
        """Capacity summary for one date."""
        entries = self.compute_availability(day)
        booked = sum(entry.booked_count for entry in entries)
        seats = len(entries) * self._store.capacity
        available_slots = sum(1 for entry in entries if entry.available)
        return DayCapacity(
            date=day,
            total_slots=len(entries),
            available_slots=available_slots,
            booked_count=booked,
            booked_percentage=round(booked / seats * 100) if seats else 0,
            is_full=available_slots == 0,
        )

    def is_slot_available(self, day: date, time_slot_id: str) -> bool:
        """Whether the pair is still offered and below capacity."""
        self._catalog.get_slot(time_slot_id)
        try:
            entries = self.compute_availability(day)
        except ValidationError:
            return False
        return any(
            entry.available for entry in entries if entry.time_slot.id == time_slot_id
        )

    def availability_summary(self, from_date: Optional[date] = None, days: int = 7) -> str:
        """Human-readable open slots for ``days`` dates starting at ``from_date``."""
        today = self._clock().date()
        from_date = from_date or today
        entries = self.compute_availability(from_date, from_date + timedelta(days=max(days, 1) - 1))

        if not entries:
            return NO_SLOTS_MESSAGE
        open_entries = [entry for entry in entries if entry.available]
        if not open_entries:
            return ALL_BOOKED_MESSAGE

        by_date: dict[date, list[str]] = {}
        for entry in open_entries:
            by_date.setdefault(entry.date, []).append(entry.time_slot.label)

        lines = [
            f"• {format_date_for_user(day, today)}: {', '.join(labels)}"
            for day, labels in by_date.items()
        ]
        return "Disponibilidad próximos días:\n\n" + "\n".join(lines)
