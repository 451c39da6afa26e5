"""ORM tables for customers, time slots and appointments."""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def generate_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )


class CustomerRow(Base, TimestampMixin):
    """Customer identified by normalized phone number."""

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    neighborhood: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reference_point: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    appointments: Mapped[list["AppointmentRow"]] = relationship(back_populates="customer")

    def __repr__(self) -> str:
        return f"<Customer {self.id} ({self.phone_number})>"


class TimeSlotRow(Base):
    """Administrative daily time window."""

    __tablename__ = "time_slots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="time_slots_order_check"),
    )

    def __repr__(self) -> str:
        return f"<TimeSlot {self.id} {self.start_time}-{self.end_time}>"


class AppointmentRow(Base, TimestampMixin):
    """Home-visit booking for one (date, time slot)."""

    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    customer_id: Mapped[str] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot_id: Mapped[str] = mapped_column(ForeignKey("time_slots.id"), nullable=False)
    sample_type: Mapped[str] = mapped_column(String(50), nullable=False)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    medical_order_received: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    late_cancellation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    customer: Mapped[CustomerRow] = relationship(back_populates="appointments")
    time_slot: Mapped[TimeSlotRow] = relationship()

    __table_args__ = (
        Index("ix_appointments_date_slot", "appointment_date", "time_slot_id"),
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'cancelled', 'completed')",
            name="appointments_status_check",
        ),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id} - {self.appointment_date} ({self.status})>"
