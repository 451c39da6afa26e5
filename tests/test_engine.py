"""Tests for the engine surface outside the conversations."""

from datetime import datetime, timedelta

import pytest

from labvisit.engine import build_engine
from labvisit.exceptions import LateCancellationRequired, NotFound
from labvisit.schemas.booking_schema import AppointmentStatus
from tests.helpers import NOW, TOMORROW, FixedClock, RecordingNotifier, book


class TestCancelAppointment:
    def test_cancel_with_notice(self, engine, store, notifier, slot, customer_with_address):
        appointment = book(store, customer_with_address.id, slot.id)
        cancelled = engine.cancel_appointment(appointment.id)
        assert cancelled.status == AppointmentStatus.CANCELLED
        assert len(notifier.cancelled) == 1

    def test_late_without_override(self, engine, store, slot, customer_with_address):
        appointment = book(store, customer_with_address.id, slot.id)
        with pytest.raises(LateCancellationRequired):
            engine.cancel_appointment(appointment.id, now=datetime(2025, 3, 6, 4, 0))

    def test_late_with_override(self, engine, store, slot, customer_with_address):
        appointment = book(store, customer_with_address.id, slot.id)
        cancelled = engine.cancel_appointment(
            appointment.id, now=datetime(2025, 3, 6, 4, 0), late_override_confirmed=True
        )
        assert cancelled.late_cancellation

    def test_unknown(self, engine):
        with pytest.raises(NotFound):
            engine.cancel_appointment("missing")


class TestSessions:
    def test_idle_session_expires(self, engine, clock, customer):
        handle = engine.start_booking(customer.id)
        clock.advance(seconds=121)
        assert engine.expire_idle_sessions() == [handle.session_id]
        with pytest.raises(NotFound):
            engine.submit_input(handle.session_id, "Barrio Centro, Carrera 5 #10-25")

    def test_activity_keeps_session_alive(self, engine, clock, customer):
        handle = engine.start_booking(customer.id)
        clock.advance(seconds=100)
        engine.submit_input(handle.session_id, "Calle 1")
        clock.advance(seconds=100)
        assert engine.expire_idle_sessions() == []
        assert len(engine.sessions) == 1

    def test_terminal_sessions_removed(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        engine.submit_input(handle.session_id, "salir")
        assert len(engine.sessions) == 0

    def test_unknown_session(self, engine):
        with pytest.raises(NotFound):
            engine.submit_input("missing", "hola")


class TestSummaries:
    def test_availability_summary(self, engine):
        assert "Mañana: 05:30 - 06:30" in engine.get_availability_summary()

    def test_customer_summary(self, engine, store, slot, customer_with_address):
        for _ in range(3):
            appointment = book(store, customer_with_address.id, slot.id)
            store.update_status(appointment.id, AppointmentStatus.CONFIRMED)
            store.update_status(appointment.id, AppointmentStatus.COMPLETED)
        summary = engine.get_customer_summary(customer_with_address.id)
        assert "Jorge Ramírez" in summary
        assert "316 987 6543" in summary
        assert "Total citas: 3" in summary
        assert "Cliente frecuente" in summary


class TestCustomerAppointmentsSummary:
    def test_no_history(self, engine, customer):
        summary = engine.get_customer_appointments_summary(customer.id)
        assert "No tienes citas registradas" in summary

    def test_active_and_recent_completed(self, engine, store, slot, customer_with_address):
        for offset in range(1, 5):
            done = book(store, customer_with_address.id, slot.id, day=TOMORROW + timedelta(days=offset))
            store.update_status(done.id, AppointmentStatus.CONFIRMED)
            store.update_status(done.id, AppointmentStatus.COMPLETED)
        dropped = book(store, customer_with_address.id, slot.id, day=TOMORROW + timedelta(days=6))
        store.update_status(dropped.id, AppointmentStatus.CANCELLED)
        active = book(store, customer_with_address.id, slot.id, day=TOMORROW + timedelta(days=8))

        summary = engine.get_customer_appointments_summary(customer_with_address.id)
        assert "TUS CITAS - Jorge Ramírez" in summary
        assert "CITAS ACTIVAS" in summary
        assert active.reference in summary
        assert "Estado: Programada" in summary
        assert "05:30 - 06:30" in summary
        assert dropped.reference not in summary
        assert sum(line.endswith(" - Orina") for line in summary.splitlines()) == 3
        assert "Total citas: 6" in summary
        assert "cancelar cita" in summary

    def test_confirmed_label(self, engine, store, slot, customer_with_address):
        appointment = book(store, customer_with_address.id, slot.id)
        store.update_status(appointment.id, AppointmentStatus.CONFIRMED)
        summary = engine.get_customer_appointments_summary(customer_with_address.id)
        assert "Estado: Confirmada" in summary

    def test_unknown_customer(self, engine):
        with pytest.raises(NotFound):
            engine.get_customer_appointments_summary("missing")


class TestBuildEngine:
    def test_wires_components_and_seeds_slot(self, config):
        notifier = RecordingNotifier()
        engine = build_engine("sqlite://", clock=FixedClock(NOW), notifier=notifier, config=config)
        try:
            assert [s.label for s in engine.catalog.list_active_slots()] == ["05:30 - 06:30"]
            assert engine.store.capacity == config.service.slot_capacity
            handle = engine.start_booking_by_phone("3155551234", "María")
            result = engine.submit_input(handle.session_id, "Barrio Centro, Carrera 5 #10-25")
            assert result.state == "select_date"
        finally:
            engine.close()
