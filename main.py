"""
Command-line entry point for the scheduling engine.

Usage:
    Seed database:  python main.py init-db
    Add a slot:     python main.py add-slot 06:30 07:30
    Availability:   python main.py availability --days 5
    Console mode:   python main.py console [--scenario booking]
"""

import argparse
import logging
import sys
from typing import Optional

from labvisit.config import settings
from labvisit.engine import build_engine
from labvisit.exceptions import SchedulingError

logger = logging.getLogger(__name__)


def _run_init_db() -> None:
    """Create the tables and seed the default time slot."""
    engine = build_engine()
    try:
        for slot in engine.catalog.list_active_slots():
            print(f"{slot.id}  {slot.label}")
    finally:
        engine.close()


def _run_add_slot(start_time: str, end_time: str) -> None:
    engine = build_engine()
    try:
        slot = engine.catalog.add_slot(start_time, end_time)
        print(f"{slot.id}  {slot.label}")
    finally:
        engine.close()


def _run_availability(days: Optional[int]) -> None:
    engine = build_engine()
    try:
        print(engine.get_availability_summary(days=days))
    finally:
        engine.close()


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo."""
    from console_demo import main as console_main

    console_main(argv)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=settings.service.name)
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("init-db", help="Create tables and seed the default time slot")
    add_slot = commands.add_parser("add-slot", help="Register a daily time window")
    add_slot.add_argument("start_time", help="HH:MM")
    add_slot.add_argument("end_time", help="HH:MM")
    availability = commands.add_parser("availability", help="Print upcoming availability")
    availability.add_argument("--days", type=int, default=None)
    commands.add_parser("console", help="Interactive console demo", add_help=False)

    args, rest = parser.parse_known_args(argv)
    try:
        if args.command == "init-db":
            _run_init_db()
        elif args.command == "add-slot":
            _run_add_slot(args.start_time, args.end_time)
        elif args.command == "availability":
            _run_availability(args.days)
        else:
            _run_console_mode(rest)
    except SchedulingError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
