"""
Offline console demo: runs booking and cancellation chats in the terminal.

Uses the real scheduling engine over an in-memory SQLite database (or
DATABASE_URL when --persist is given). No messaging transport, no network
calls. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario cancel
"""

import argparse
from typing import Optional

from labvisit.config import settings
from labvisit.engine import SchedulingEngine, build_engine
from labvisit.schemas.conversation_schema import TurnResult

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_PHONE = "+57 315 555 1234"
DEMO_NAME = "María Fernanda"


class ConsoleSession:
    """Simulates a WhatsApp chat with the laboratory in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "agendar",
            "Barrio Centro, Carrera 5 #10-25",
            "mañana",
            "1",
            "3",
            "sí",
        ],
        "modify": [
            "agendar",
            "Barrio Centro, Carrera 5 #10-25",
            "mañana",
            "1",
            "1",
            "no",
            "3",
            "Orina",
            "confirmar",
        ],
        "cancel": [
            "agendar",
            "Barrio Centro, Carrera 5 #10-25",
            "pasado mañana",
            "1",
            "2",
            "sí",
            "cancelar cita",
            "sí",
        ],
    }

    def __init__(self, engine: SchedulingEngine, phone: str = DEMO_PHONE, name: str = DEMO_NAME) -> None:
        self.engine = engine
        self.customer = engine.directory.find_or_create(phone, name)
        self.session_id: Optional[str] = None

    def lab_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Laboratorio]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _show(self, result: TurnResult) -> None:
        self.lab_say(result.prompt)
        self.system_log(f"State: {result.state}")
        if result.appointment is not None:
            self.system_log(
                f"Appointment {result.appointment.reference}: {result.appointment.status.value}"
            )
        self.session_id = None if result.terminal else result.session_id

    def _process_input(self, text: str) -> None:
        if self.session_id is not None:
            self._show(self.engine.submit_input(self.session_id, text))
            return

        lower = text.lower()
        if "cancelar" in lower:
            self._show(self.engine.start_cancellation(self.customer.id))
        elif "mis citas" in lower or "ver cita" in lower or "consultar" in lower:
            self.lab_say(self.engine.get_customer_appointments_summary(self.customer.id))
        elif "agendar" in lower or "cita" in lower:
            self._show(self.engine.start_booking(self.customer.id))
        elif "disponib" in lower:
            self.lab_say(self.engine.get_availability_summary())
        elif "perfil" in lower:
            self.lab_say(self.engine.get_customer_summary(self.customer.id))
        else:
            self.lab_say(
                'Escribe "agendar" para una cita, "mis citas", "cancelar cita", '
                '"disponibilidad" o "perfil".'
            )

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.service.name} - {title}{RESET}")
        print(f"{BOLD}  Cliente: {self.customer.name} ({self.customer.phone_number}){RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}[Cliente] {RESET}{step}")
            self._process_input(step)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}{self.engine.get_customer_summary(self.customer.id)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        self._banner("Console Demo (type 'quit' to exit)")
        self.lab_say(
            f"Hola {self.customer.name}, bienvenido. "
            'Escribe "agendar" para programar tu toma de muestras a domicilio.'
        )

        while True:
            user_input = input(f"\n{BLUE}[Cliente] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            self._process_input(user_input)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help=f"Use DATABASE_URL ({settings.database.url}) instead of an in-memory database",
    )
    args = parser.parse_args(argv)

    engine = build_engine(None if args.persist else "sqlite://")
    try:
        session = ConsoleSession(engine)
        if args.scenario:
            session.run_scenario(args.scenario)
        else:
            session.run()
    finally:
        engine.close()


if __name__ == "__main__":
    main()
