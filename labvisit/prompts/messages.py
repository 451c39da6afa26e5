"""Spanish chat messages for the booking and cancellation conversations."""

from datetime import date
from typing import Optional, Sequence

from labvisit.dates import format_long_date
from labvisit.schemas.booking_schema import Appointment, AppointmentStatus, SampleType, TimeSlot
from labvisit.schemas.customer_schema import Customer, CustomerStats
from labvisit.utils import format_cop, format_phone

SAMPLE_TYPES: tuple[SampleType, ...] = tuple(SampleType)

MODIFY_OPTIONS: tuple[str, ...] = ("Fecha", "Horario", "Tipo de muestra", "Dirección")

DATE_EXAMPLES = '• "hoy" o "mañana"\n• "15 de enero"\n• "el lunes"'


def _numbered(options: Sequence[str]) -> str:
    return "\n".join(f"{index}. {option}" for index, option in enumerate(options, start=1))


def ask_address(customer_name: str, current_address: str = "") -> str:
    """Ask for the home-visit address."""
    lines = [f"Hola {customer_name}, para el servicio a domicilio necesitamos tu dirección."]
    if current_address:
        lines.append(f"Dirección actual: {current_address}")
    lines.append(
        "Escríbela completa dentro del perímetro urbano de Buga "
        "(barrio, carrera/calle y número)."
    )
    return "\n".join(lines)


def address_too_short(min_length: int) -> str:
    return (
        f"La dirección es muy corta (mínimo {min_length} caracteres). "
        "Incluye barrio, carrera/calle y número."
    )


def address_rejected(reason: str) -> str:
    return f"{reason}\n\nPor favor escribe nuevamente tu dirección."


def ask_date(customer_name: Optional[str] = None) -> str:
    """Ask for the appointment date with accepted examples."""
    greeting = f"{customer_name}, ¿" if customer_name else "¿"
    return f"{greeting}para qué fecha quieres tu cita?\n\nPuedes escribir:\n{DATE_EXAMPLES}"


def date_not_understood() -> str:
    return f"No pude entender la fecha. Por favor intenta con:\n{DATE_EXAMPLES}"


def past_date() -> str:
    return "No puedo agendar citas para fechas pasadas. ¿Qué tal mañana o una fecha futura?"


def date_out_of_range(reason: str) -> str:
    return f"{reason}. ¿Para qué otra fecha quieres tu cita?"


def no_availability(alternatives: str) -> str:
    """Offer alternative dates when the requested one is full."""
    return (
        "No hay disponibilidad para esa fecha. Te sugiero estas alternativas:\n\n"
        f"{alternatives}\n\n¿Para qué fecha quieres tu cita?"
    )


def time_options(day: date, slots: Sequence[TimeSlot]) -> str:
    """List the open windows for the chosen date."""
    return (
        f"Disponible para el {format_long_date(day)}.\n\nHorarios disponibles:\n"
        f"{_numbered([slot.label for slot in slots])}\n\n"
        "Responde con el número de tu horario preferido."
    )


def invalid_option(what: str) -> str:
    return f"Opción inválida. Responde con el número correspondiente a {what}."


def sample_type_options() -> str:
    return (
        "¿Qué tipo de muestra necesitas?\n\n"
        f"{_numbered([sample.value for sample in SAMPLE_TYPES])}\n\n"
        "Responde con el número del tipo de muestra."
    )


def booking_summary(
    customer: Customer,
    day: date,
    slot: TimeSlot,
    sample_type: SampleType,
    price: int,
) -> str:
    """Read back the full selection before the booking is persisted."""
    return "\n".join([
        "RESUMEN DE TU CITA",
        "",
        f"Cliente: {customer.name}",
        f"Fecha: {format_long_date(day)}",
        f"Hora: {slot.label}",
        f"Dirección: {customer.address}",
        f"Tipo de muestra: {sample_type.value}",
        f"Precio: {format_cop(price)}",
        "",
        "¿Confirmas estos datos?",
        '• "sí" o "confirmar" para agendar',
        '• "no" o "cambiar" para modificar',
        '• "cancelar" para salir',
    ])


def confirmation_not_understood() -> str:
    return (
        "No estoy seguro de tu respuesta. Por favor responde:\n"
        '• "sí" para confirmar la cita\n'
        '• "no" para hacer cambios\n'
        '• "cancelar" para salir'
    )


def modify_menu() -> str:
    return (
        "¿Qué te gustaría cambiar?\n\n"
        f"{_numbered(MODIFY_OPTIONS)}\n\n"
        "Responde con el número de lo que quieres modificar."
    )


def booking_success(appointment: Appointment, min_notice_hours: int) -> str:
    """Final message after the appointment is stored."""
    return "\n".join([
        "¡CITA AGENDADA EXITOSAMENTE!",
        "",
        f"Número de cita: {appointment.reference}",
        "",
        "¿Qué sigue?",
        "• Recibirás un recordatorio el día anterior",
        "• Ten lista tu orden médica",
        "• Asegúrate de estar en casa en el horario acordado",
        "",
        f"Para cancelar contacta con mínimo {min_notice_hours} horas de anticipación.",
        "",
        "¡Gracias por confiar en nosotros!",
    ])


def booking_aborted() -> str:
    return (
        "Proceso de agendamiento cancelado.\n\n"
        'Si cambias de opinión escribe "agendar cita" para empezar de nuevo.'
    )


def active_appointment_conflict(appointment: Appointment, slot: Optional[TimeSlot]) -> str:
    """Tell the customer they already hold an active booking."""
    when = format_long_date(appointment.appointment_date)
    if slot is not None:
        when = f"{when} ({slot.label})"
    return (
        f"Ya tienes una cita activa: {appointment.reference} para el {when}.\n\n"
        "Solo puedes tener una cita activa a la vez. "
        "Si necesitas cambiarla, primero cancélala."
    )


def slot_full(alternatives: str) -> str:
    return (
        "Lo sentimos, ese horario se acaba de llenar.\n\n"
        f"{alternatives}\n\n¿Para qué fecha quieres tu cita?"
    )


def store_unavailable() -> str:
    return "Tenemos un problema temporal con nuestro sistema. Por favor intenta de nuevo en un momento."


def not_found() -> str:
    return "No pudimos encontrar esa información. Por favor intenta de nuevo."


def empty_input() -> str:
    return "No recibí ningún mensaje. ¿Podrías escribirlo de nuevo?"


# --- Cancellation ---

def cancel_confirm(appointment: Appointment, slot: TimeSlot, late: bool, min_notice_hours: int) -> str:
    """Ask for the first cancellation confirmation."""
    lines = [
        f"Cita {appointment.reference}",
        f"Fecha: {format_long_date(appointment.appointment_date)}",
        f"Hora: {slot.label}",
        "",
    ]
    if late:
        lines.append(
            f"Faltan menos de {min_notice_hours} horas para tu cita, "
            "la cancelación quedará registrada como tardía."
        )
    lines.append('¿Seguro que quieres cancelarla? Responde "sí" o "no".')
    return "\n".join(lines)


def late_cancel_confirm(minutes_remaining: int) -> str:
    return (
        f"Tu cita empieza en {max(minutes_remaining, 0)} minutos.\n\n"
        'Para cancelar de todas formas escribe "confirmar cancelación". '
        'Escribe "no" para mantener tu cita.'
    )


def cancellation_done(appointment: Appointment) -> str:
    suffix = " (cancelación tardía)" if appointment.late_cancellation else ""
    return (
        f"Tu cita {appointment.reference} ha sido cancelada{suffix}.\n\n"
        'Si quieres una nueva cita escribe "agendar cita".'
    )


def appointment_kept(appointment_reference: str) -> str:
    return f"Perfecto, tu cita {appointment_reference} se mantiene."


def cancel_not_understood() -> str:
    return 'No entendí tu respuesta. Responde "sí" para cancelar o "no" para mantener tu cita.'


def nothing_to_cancel(reason: Optional[str] = None) -> str:
    return reason or "No encontramos citas activas para cancelar."


# --- Notifications ---

def confirmation_notification(
    appointment: Appointment, customer: Customer, slot: TimeSlot, lab_name: str
) -> str:
    """Outbound confirmation sent after a booking."""
    lines = [
        f"CITA CONFIRMADA - {lab_name}",
        "",
        f"Hola {customer.name},",
        "Tu cita ha sido confirmada:",
        f"Fecha: {format_long_date(appointment.appointment_date)}",
        f"Hora: {slot.label}",
        f"Dirección: {customer.address}",
        f"Tipo de muestra: {appointment.sample_type.value}",
        f"Valor: {format_cop(appointment.total_amount)}",
    ]
    if appointment.special_instructions:
        lines += ["", f"Instrucciones especiales: {appointment.special_instructions}"]
    return "\n".join(lines)


def cancellation_notification(
    appointment: Appointment, customer: Customer, slot: TimeSlot, lab_name: str
) -> str:
    """Outbound notice sent after a cancellation."""
    return "\n".join([
        f"CITA CANCELADA - {lab_name}",
        "",
        f"Hola {customer.name},",
        "Tu cita ha sido cancelada:",
        f"Fecha: {format_long_date(appointment.appointment_date)}",
        f"Hora: {slot.label}",
        "",
        "¿Deseas reprogramar? Responde a este mensaje y te ayudaremos.",
    ])


def customer_summary(customer: Customer, stats: CustomerStats) -> str:
    """Short customer card for chat operators."""
    lines = [customer.name, format_phone(customer.phone_number)]
    if customer.has_address:
        lines.append(customer.address)
    lines += [
        "",
        "Historial:",
        f"• Total citas: {stats.total}",
        f"• Completadas: {stats.completed}",
        f"• Pendientes: {stats.pending}",
    ]
    if stats.last_appointment_date:
        lines.append(f"• Última cita: {stats.last_appointment_date.strftime('%d/%m/%Y')}")
    if stats.is_frequent:
        lines += ["", "⭐ Cliente frecuente"]
    return "\n".join(lines)


def customer_appointments(
    customer: Customer,
    pending: Sequence[tuple[Appointment, Optional[TimeSlot]]],
    completed: Sequence[Appointment],
    stats: CustomerStats,
) -> str:
    """The customer's own view: active appointments first, then recent completed ones."""
    if not pending and not completed and stats.total == 0:
        return (
            "No tienes citas registradas.\n\n"
            'Si quieres agendar tu primera cita escribe "agendar cita".'
        )

    lines = [f"TUS CITAS - {customer.name}", ""]
    if pending:
        lines += ["CITAS ACTIVAS:", ""]
        for appointment, slot in pending:
            status = "Confirmada" if appointment.status == AppointmentStatus.CONFIRMED else "Programada"
            lines += [
                format_long_date(appointment.appointment_date),
                f"Hora: {slot.label if slot is not None else 'sin horario'}",
                f"Muestra: {appointment.sample_type.value}",
                f"Estado: {status}",
                f"Valor: {format_cop(appointment.total_amount)}",
                f"Número de cita: {appointment.reference}",
                "",
            ]
    if completed:
        lines += ["CITAS COMPLETADAS (últimas 3):"]
        lines += [
            f"• {appointment.appointment_date.strftime('%d/%m/%Y')} - {appointment.sample_type.value}"
            for appointment in completed
        ]
        lines.append("")

    lines += [
        "RESUMEN:",
        f"• Total citas: {stats.total}",
        f"• Completadas: {stats.completed}",
        f"• Pendientes: {stats.pending}",
    ]
    if stats.is_frequent:
        lines.append("⭐ Cliente frecuente")
    if pending:
        lines += ["", 'Para cancelar tu cita escribe "cancelar cita".']
    return "\n".join(lines)
