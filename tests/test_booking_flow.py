"""End-to-end booking conversations through the scheduling engine."""

from datetime import timedelta

import pytest

from labvisit.engine import SchedulingEngine
from labvisit.exceptions import NotFound, StoreUnavailable
from labvisit.prompts import messages
from labvisit.schemas.booking_schema import AppointmentStatus, SampleType
from tests.helpers import (
    BASE_PRICE,
    TOMORROW,
    VALID_ADDRESS,
    FailingNotifier,
    book,
    fill_slot,
)


def say(engine, session_id, *texts):
    """Send several messages and return the last turn."""
    result = None
    for text in texts:
        result = engine.submit_input(session_id, text)
    return result


def to_confirm(engine, customer_id, day_text="mañana", sample="3"):
    handle = engine.start_booking(customer_id)
    result = say(engine, handle.session_id, day_text, "1", sample)
    assert result.state == "confirm"
    return handle.session_id


class TestNewCustomerBooking:
    def test_full_conversation(self, engine, store, notifier, slot, customer):
        handle = engine.start_booking(customer.id)
        assert handle.state == "collect_address"
        assert "María Fernanda" in handle.prompt

        result = engine.submit_input(handle.session_id, VALID_ADDRESS)
        assert result.state == "select_date"
        assert "Mañana: 05:30 - 06:30" in result.prompt

        result = engine.submit_input(handle.session_id, "mañana")
        assert result.state == "select_time"
        assert "05:30 - 06:30" in result.prompt

        result = engine.submit_input(handle.session_id, "1")
        assert result.state == "select_sample_type"

        result = engine.submit_input(handle.session_id, "3")
        assert result.state == "confirm"
        assert "RESUMEN DE TU CITA" in result.prompt
        assert "Orina" in result.prompt
        assert "$20.000 COP" in result.prompt

        result = engine.submit_input(handle.session_id, "sí")
        assert result.state == "booked"
        assert result.terminal
        assert "CITA AGENDADA EXITOSAMENTE" in result.prompt

        appointment = result.appointment
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.total_amount == BASE_PRICE
        assert appointment.appointment_date == TOMORROW
        assert appointment.sample_type == SampleType.URINE
        assert appointment.reference in result.prompt
        assert store.count_booked(TOMORROW, TOMORROW)[(TOMORROW, slot.id)] == 1
        assert len(notifier.booked) == 1

    def test_address_saved_on_customer(self, engine, directory, customer):
        handle = engine.start_booking(customer.id)
        engine.submit_input(handle.session_id, VALID_ADDRESS)
        assert directory.get(customer.id).address == VALID_ADDRESS

    def test_finished_session_is_gone(self, engine, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        engine.submit_input(session_id, "confirmar")
        with pytest.raises(NotFound):
            engine.submit_input(session_id, "hola")

    def test_start_by_phone_creates_customer(self, engine, directory):
        handle = engine.start_booking_by_phone("+57 300 123 4567", "Ana")
        assert handle.state == "collect_address"
        assert directory.find_by_phone("3001234567").name == "Ana"

    def test_unknown_customer(self, engine):
        with pytest.raises(NotFound):
            engine.start_booking("missing")


class TestReturningCustomer:
    def test_skips_address(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        assert handle.state == "select_date"
        assert "Disponibilidad próximos días" in handle.prompt

    def test_active_appointment_blocks_new_booking(self, engine, store, slot, customer_with_address):
        book(store, customer_with_address.id, slot.id)
        handle = engine.start_booking(customer_with_address.id)
        assert handle.state == "aborted"
        assert handle.terminal
        assert "Ya tienes una cita activa" in handle.prompt

    def test_cancelled_appointment_does_not_block(self, engine, store, slot, customer_with_address):
        previous = book(store, customer_with_address.id, slot.id)
        store.update_status(previous.id, AppointmentStatus.CANCELLED)
        assert engine.start_booking(customer_with_address.id).state == "select_date"

    def test_gate_rechecked_at_confirmation(self, engine, store, slot, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        book(store, customer_with_address.id, slot.id, day=TOMORROW + timedelta(days=3))
        result = engine.submit_input(session_id, "sí")
        assert result.state == "aborted"
        assert "Ya tienes una cita activa" in result.prompt
        assert len(store.get_customer_appointments(customer_with_address.id)) == 1


class TestInvalidInput:
    def test_empty_message_keeps_step(self, engine, customer):
        handle = engine.start_booking(customer.id)
        result = engine.submit_input(handle.session_id, "   ")
        assert result.state == "collect_address"
        assert result.prompt == messages.empty_input()

    def test_short_address(self, engine, customer):
        handle = engine.start_booking(customer.id)
        result = engine.submit_input(handle.session_id, "Calle 1")
        assert result.state == "collect_address"
        assert engine.sessions.get(handle.session_id).attempts["collect_address"] == 1

    def test_rural_address(self, engine, customer):
        handle = engine.start_booking(customer.id)
        result = engine.submit_input(handle.session_id, "Vereda El Placer, finca La Esperanza")
        assert result.state == "collect_address"
        assert "perímetro urbano" in result.prompt

    def test_unparseable_date(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = engine.submit_input(handle.session_id, "cuando puedan")
        assert result.state == "select_date"
        assert result.prompt == messages.date_not_understood()

    def test_past_date(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = engine.submit_input(handle.session_id, "02/01/2024")
        assert result.state == "select_date"
        assert result.prompt == messages.past_date()

    def test_date_too_far_ahead(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = engine.submit_input(handle.session_id, "15 de enero")
        assert result.state == "select_date"
        assert "anticipación" in result.prompt

    def test_full_date_offers_alternatives(self, engine, store, directory, slot, customer_with_address):
        fill_slot(store, directory, slot.id)
        handle = engine.start_booking(customer_with_address.id)
        result = engine.submit_input(handle.session_id, "mañana")
        assert result.state == "select_date"
        assert "viernes 7 de marzo" in result.prompt

    def test_time_option_out_of_range(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = say(engine, handle.session_id, "mañana", "9")
        assert result.state == "select_time"

    def test_unknown_sample_type(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = say(engine, handle.session_id, "mañana", "1", "saliva")
        assert result.state == "select_sample_type"

    def test_sample_type_by_name(self, engine, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = say(engine, handle.session_id, "mañana", "1", "sangre venosa")
        assert result.state == "confirm"
        assert "Sangre venosa" in result.prompt

    def test_unclear_confirmation(self, engine, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        result = engine.submit_input(session_id, "tal vez")
        assert result.state == "confirm"
        assert result.prompt == messages.confirmation_not_understood()


class TestAbort:
    def test_abort_during_selection(self, engine, store, customer_with_address):
        handle = engine.start_booking(customer_with_address.id)
        result = engine.submit_input(handle.session_id, "cancelar")
        assert result.state == "aborted"
        assert result.terminal
        assert store.get_customer_appointments(customer_with_address.id) == []

    def test_abort_at_confirmation(self, engine, store, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        result = engine.submit_input(session_id, "cancelar")
        assert result.state == "aborted"
        assert store.get_customer_appointments(customer_with_address.id) == []

    @pytest.mark.parametrize("text", ["no, no confirmo", "no quiero confirmar", "no, sí quiero cambiar"])
    def test_refusal_with_confirm_word_books_nothing(self, engine, store, customer_with_address, text):
        session_id = to_confirm(engine, customer_with_address.id)
        result = engine.submit_input(session_id, text)
        assert result.state == "modify"
        assert result.appointment is None
        assert store.get_customer_appointments(customer_with_address.id) == []


class TestModify:
    def test_change_sample_type(self, engine, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        assert engine.submit_input(session_id, "no").state == "modify"
        assert engine.submit_input(session_id, "3").state == "select_sample_type"
        result = engine.submit_input(session_id, "esputo")
        assert result.state == "confirm"
        assert "Esputo" in result.prompt

    def test_change_date_keeps_sample(self, engine, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        result = say(engine, session_id, "cambiar", "fecha", "pasado mañana", "1")
        assert result.state == "confirm"
        assert "Orina" in result.prompt
        booked = engine.submit_input(session_id, "sí").appointment
        assert booked.appointment_date == TOMORROW + timedelta(days=1)

    def test_change_time(self, engine, catalog, customer_with_address):
        catalog.add_slot("06:30", "07:30")
        session_id = to_confirm(engine, customer_with_address.id)
        result = say(engine, session_id, "no", "2")
        assert result.state == "select_time"
        result = engine.submit_input(session_id, "2")
        assert result.state == "confirm"
        assert "06:30 - 07:30" in result.prompt

    def test_change_time_when_date_filled_up(self, engine, store, directory, slot, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        engine.submit_input(session_id, "no")
        fill_slot(store, directory, slot.id)
        result = engine.submit_input(session_id, "horario")
        assert result.state == "select_date"

    def test_change_address_returns_to_confirm(self, engine, directory, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        result = say(engine, session_id, "no", "4")
        assert result.state == "collect_address"
        assert VALID_ADDRESS in result.prompt
        new_address = "Barrio La Merced, Calle 7 #12-40"
        result = engine.submit_input(session_id, new_address)
        assert result.state == "confirm"
        assert directory.get(customer_with_address.id).address == new_address

    def test_unknown_modify_option(self, engine, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        result = say(engine, session_id, "no", "el precio")
        assert result.state == "modify"

    @pytest.mark.parametrize(
        "text, state",
        [
            ("cambiar fecha", "select_date"),
            ("no, la hora", "select_time"),
            ("quiero otro tipo de muestra", "select_sample_type"),
            ("corregir la dirección", "collect_address"),
        ],
    )
    def test_named_field_at_confirmation(self, engine, customer_with_address, text, state):
        session_id = to_confirm(engine, customer_with_address.id)
        assert engine.submit_input(session_id, text).state == state

    def test_time_word_inside_another_word(self, engine, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        result = say(engine, session_id, "no", "ahora no sé")
        assert result.state == "modify"


class TestRaceAndFailures:
    def test_slot_filled_before_confirmation(self, engine, store, directory, slot, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)
        fill_slot(store, directory, slot.id)

        result = engine.submit_input(session_id, "sí")
        assert result.state == "select_date"
        assert "se acaba de llenar" in result.prompt
        assert result.appointment is None

        result = say(engine, session_id, "pasado mañana", "1")
        assert result.state == "confirm"
        result = engine.submit_input(session_id, "sí")
        assert result.state == "booked"
        assert result.appointment.appointment_date == TOMORROW + timedelta(days=1)

    def test_store_unavailable_is_retryable(self, engine, store, monkeypatch, customer_with_address):
        session_id = to_confirm(engine, customer_with_address.id)

        def unavailable(*args, **kwargs):
            raise StoreUnavailable("database is locked")

        monkeypatch.setattr(store, "create", unavailable)
        result = engine.submit_input(session_id, "sí")
        assert result.state == "confirm"
        assert result.prompt == messages.store_unavailable()
        assert engine.sessions.get(session_id).attempts["confirm"] == 1

        monkeypatch.undo()
        assert engine.submit_input(session_id, "sí").state == "booked"

    def test_notifier_failure_keeps_booking(
        self, config, database, catalog, directory, store, availability, policy, clock,
        customer_with_address,
    ):
        engine = SchedulingEngine(
            config=config,
            database=database,
            catalog=catalog,
            directory=directory,
            store=store,
            availability=availability,
            policy=policy,
            notifier=FailingNotifier(),
            clock=clock,
        )
        session_id = to_confirm(engine, customer_with_address.id)
        result = engine.submit_input(session_id, "sí")
        assert result.state == "booked"
        assert store.get(result.appointment.id).status == AppointmentStatus.SCHEDULED
