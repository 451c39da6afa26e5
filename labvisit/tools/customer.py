"""
Customer directory keyed by normalized phone number.

Customers are created on first contact with an empty address; the address
is collected during the first booking and validated against the urban
perimeter of Buga with a keyword heuristic (no geocoding).
"""

import logging
import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from labvisit.db import AppointmentRow, CustomerRow, Database
from labvisit.exceptions import (
    AddressTooVague,
    NotFound,
    OutOfServiceArea,
    ValidationError,
)
from labvisit.schemas.booking_schema import ACTIVE_STATUSES, AppointmentStatus
from labvisit.schemas.customer_schema import Customer, CustomerStats
from labvisit.utils import Clock, is_valid_phone, normalize_phone

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Cliente WhatsApp"
FREQUENT_CUSTOMER_THRESHOLD = 3
MIN_ADDRESS_PARTS = 3

URBAN_INDICATORS: tuple[str, ...] = (
    "buga",
    "guadalajara de buga",
    "centro",
    "centro histórico",
    "barrio",
    "carrera",
    "calle",
    "avenida",
    "av.",
    "cr.",
    "cl.",
    "manzana",
    "casa",
    "edificio",
)

EXCLUDED_AREAS: tuple[str, ...] = (
    "corregimiento",
    "vereda",
    "finca",
    "hacienda",
    "rural",
    "campo",
    "tuluá",
    "tulúa",
    "tulua",
    "san pedro",
    "ginebra",
    "el cerrito",
    "guacarí",
    "yotoco",
)


def validate_service_address(address: str) -> None:
    """Reject addresses outside (or too vague for) the urban service area.

    Raises:
        ValidationError: The address is empty.
        OutOfServiceArea: A rural or other-municipality term is present.
        AddressTooVague: No urban indicator, or fewer than three components.
    """
    if not address or not address.strip():
        raise ValidationError(
            "La dirección es requerida para el servicio a domicilio", field="address"
        )

    normalized = address.lower().strip()

    if any(term in normalized for term in EXCLUDED_AREAS):
        raise OutOfServiceArea(
            "Lo sentimos, solo atendemos en el perímetro urbano de Buga. "
            "Esta dirección parece estar fuera de nuestra área de servicio."
        )

    if not any(indicator in normalized for indicator in URBAN_INDICATORS):
        raise AddressTooVague(
            "Por favor proporciona una dirección más específica dentro del perímetro "
            "urbano de Buga (incluye barrio, carrera/calle, etc.)"
        )

    parts = [part for part in re.split(r"[\s,]+", normalized) if part]
    if len(parts) < MIN_ADDRESS_PARTS:
        raise AddressTooVague("La dirección debe incluir al menos: barrio, carrera/calle y número")


class CustomerDirectory:
    """Owns the customer lifecycle."""

    def __init__(
        self,
        database: Database,
        clock: Clock,
        max_address_length: int = 500,
        max_name_length: int = 100,
    ) -> None:
        self._db = database
        self._clock = clock
        self._max_address_length = max_address_length
        self._max_name_length = max_name_length

    def find_by_phone(self, phone: str) -> Optional[Customer]:
        normalized = normalize_phone(phone)
        with self._db.unit_of_work() as session:
            row = session.scalars(
                select(CustomerRow).where(CustomerRow.phone_number == normalized)
            ).first()
            return Customer.model_validate(row) if row else None

    def get(self, customer_id: str) -> Customer:
        with self._db.unit_of_work() as session:
            row = session.get(CustomerRow, customer_id)
            if row is None:
                raise NotFound("Customer", customer_id)
            return Customer.model_validate(row)

    def find_or_create(self, phone: str, display_name: Optional[str] = None) -> Customer:
        """
        Return the customer for this phone, creating a minimal record if needed.

        Safe to call repeatedly. When two first contacts race, the unique
        index on ``phone_number`` rejects the second insert and the existing
        row is returned instead.
        """
        if not is_valid_phone(phone):
            raise ValidationError(
                "Número de teléfono inválido. Debe ser un número colombiano válido",
                field="phone_number",
            )

        existing = self.find_by_phone(phone)
        if existing is not None:
            return existing

        name = (display_name or "").strip() or DEFAULT_CUSTOMER_NAME
        if len(name) > self._max_name_length:
            name = name[: self._max_name_length]

        normalized = normalize_phone(phone)
        now = self._clock()
        try:
            with self._db.unit_of_work() as session:
                row = CustomerRow(
                    phone_number=normalized,
                    name=name,
                    address="",
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.flush()
                customer = Customer.model_validate(row)
        except IntegrityError:
            logger.info("Concurrent first contact for %s, re-reading customer", normalized)
            existing = self.find_by_phone(normalized)
            if existing is None:
                raise
            return existing

        logger.info("Customer created: %s (%s)", customer.id, normalized)
        return customer

    def update_address(
        self,
        customer_id: str,
        address: str,
        neighborhood: Optional[str] = None,
        reference_point: Optional[str] = None,
    ) -> Customer:
        """Validate and store the home-visit address."""
        if address and len(address) > self._max_address_length:
            raise ValidationError(
                f"La dirección no puede exceder {self._max_address_length} caracteres",
                field="address",
            )
        if reference_point and len(reference_point) > self._max_address_length:
            raise ValidationError(
                f"El punto de referencia no puede exceder {self._max_address_length} caracteres",
                field="reference_point",
            )
        validate_service_address(address)

        with self._db.unit_of_work() as session:
            row = session.get(CustomerRow, customer_id)
            if row is None:
                raise NotFound("Customer", customer_id)
            row.address = address.strip()
            if neighborhood is not None:
                row.neighborhood = neighborhood.strip() or None
            if reference_point is not None:
                row.reference_point = reference_point.strip() or None
            row.updated_at = self._clock()
            session.flush()
            customer = Customer.model_validate(row)

        logger.info("Address updated for customer %s", customer_id)
        return customer

    def get_stats(self, customer_id: str) -> CustomerStats:
        """Summarize the customer's appointment history."""
        with self._db.unit_of_work() as session:
            rows = session.execute(
                select(AppointmentRow.status, AppointmentRow.appointment_date)
                .where(AppointmentRow.customer_id == customer_id)
            ).all()

        statuses = [AppointmentStatus(status) for status, _ in rows]
        completed = statuses.count(AppointmentStatus.COMPLETED)
        return CustomerStats(
            total=len(rows),
            completed=completed,
            cancelled=statuses.count(AppointmentStatus.CANCELLED),
            pending=sum(1 for status in statuses if status in ACTIVE_STATUSES),
            last_appointment_date=max((day for _, day in rows), default=None),
            is_frequent=completed >= FREQUENT_CUSTOMER_THRESHOLD,
        )

    def has_active_appointment(self, customer_id: str) -> bool:
        """Single-active-booking gate: any scheduled or confirmed appointment."""
        with self._db.unit_of_work() as session:
            found = session.scalars(
                select(AppointmentRow.id)
                .where(
                    AppointmentRow.customer_id == customer_id,
                    AppointmentRow.status.in_([s.value for s in ACTIVE_STATUSES]),
                )
                .limit(1)
            ).first()
            return found is not None
