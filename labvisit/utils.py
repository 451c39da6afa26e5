"""Shared utilities used across the scheduling engine."""

import re
import threading
from datetime import datetime
from typing import Callable, Hashable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

COUNTRY_CODE = "57"
LOCAL_AREA_CODE = "2"


def normalize_phone(value: str) -> str:
    """Normalize a Colombian phone number to its canonical digit-only form.

    Strips everything except digits, drops the ``57`` country code from
    12-digit numbers and prefixes the Valle del Cauca area code to 7-digit
    local landlines.

    Examples:
        >>> normalize_phone("+57 315 555 1234")
        '3155551234'
        >>> normalize_phone("236 1234")
        '22361234'
    """
    digits = re.sub(r"\D", "", value)
    if len(digits) == 12 and digits.startswith(COUNTRY_CODE):
        digits = digits[len(COUNTRY_CODE):]
    if len(digits) == 7:
        digits = LOCAL_AREA_CODE + digits
    return digits


def is_valid_phone(value: str) -> bool:
    """Accept Colombian mobiles (``3XXXXXXXXX``) and Valle del Cauca landlines."""
    cleaned = normalize_phone(value)
    if len(cleaned) == 10:
        return cleaned[0] in "23"
    return len(cleaned) == 8 and cleaned.startswith(LOCAL_AREA_CODE)


def format_phone(value: str) -> str:
    """Format a phone number for display: ``315 555 1234`` or ``(2) 236 1234``."""
    cleaned = normalize_phone(value)
    if len(cleaned) == 10:
        if cleaned.startswith("3"):
            return f"{cleaned[:3]} {cleaned[3:6]} {cleaned[6:]}"
        return f"({cleaned[:1]}) {cleaned[1:4]} {cleaned[4:]}"
    if len(cleaned) == 8:
        return f"({cleaned[:1]}) {cleaned[1:4]} {cleaned[4:]}"
    return value


def format_cop(amount: int) -> str:
    """Format an amount in Colombian pesos: ``$20.000 COP``."""
    return f"${amount:,} COP".replace(",", ".")


def make_clock(timezone: str) -> Clock:
    """Return a clock yielding naive wall-clock time in the given timezone."""
    zone = ZoneInfo(timezone)

    def _now() -> datetime:
        return datetime.now(zone).replace(tzinfo=None)

    return _now


class KeyedLock:
    """One lock per key; callers working on the same key run one at a time."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def __call__(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def discard(self, key: Hashable) -> None:
        with self._guard:
            self._locks.pop(key, None)


class StripedLock:
    """A fixed pool of locks; a key always maps to the same stripe."""

    def __init__(self, stripes: int = 64) -> None:
        if stripes < 1:
            raise ValueError("stripes must be at least 1")
        self._locks = tuple(threading.Lock() for _ in range(stripes))

    def __len__(self) -> int:
        return len(self._locks)

    def __call__(self, key: Hashable) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]
