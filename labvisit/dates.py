"""
Spanish date expressions used in the chat.

Parsing is deliberately small: relative days ("hoy", "mañana",
"pasado mañana"), weekday names, "<día> de <mes>" and numeric dd/mm or
dd/mm/yyyy. Anything else yields ``None`` so the caller can re-prompt.

Examples:
    >>> parse_date_expression("mañana", date(2025, 3, 5))
    datetime.date(2025, 3, 6)
    >>> parse_date_expression("el lunes", date(2025, 3, 5))
    datetime.date(2025, 3, 10)
"""

import re
import unicodedata
from datetime import date, timedelta
from typing import Optional

# Indexed by date.weekday(): Monday is 0.
WEEKDAYS: tuple[str, ...] = (
    "lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo",
)

MONTHS: tuple[str, ...] = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

_MONTH_ALIASES = {"setiembre": 9}

_DAY_OF_MONTH = re.compile(r"\b(\d{1,2})\s*de\s*([a-z]+)\b")
_NUMERIC = re.compile(r"\b(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2}|\d{4}))?\b")


def _fold(text: str) -> str:
    """Lowercase and strip accents so "miércoles" and "miercoles" match."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def _month_number(name: str) -> Optional[int]:
    for index, month in enumerate(MONTHS, start=1):
        if _fold(month) == name:
            return index
    return _MONTH_ALIASES.get(name)


def _rolled(today: date, month: int, day: int, year: Optional[int] = None) -> Optional[date]:
    try:
        candidate = date(year or today.year, month, day)
    except ValueError:
        return None
    if year is None and candidate < today:
        try:
            candidate = candidate.replace(year=today.year + 1)
        except ValueError:
            return None
    return candidate


def parse_date_expression(text: str, today: date) -> Optional[date]:
    """Map a free-text Spanish date expression to a calendar date.

    Weekday names map to the next occurrence on or after ``today``.
    "<día> de <mes>" and "dd/mm" use the current year, rolled to the next
    one when the date has already passed. Returns ``None`` when nothing
    matches.
    """
    folded = _fold(text).strip()
    if not folded:
        return None

    if _has_word(folded, "pasado manana"):
        return today + timedelta(days=2)
    if _has_word(folded, "hoy"):
        return today
    if _has_word(folded, "manana"):
        return today + timedelta(days=1)

    match = _DAY_OF_MONTH.search(folded)
    if match:
        month = _month_number(match.group(2))
        if month is not None:
            return _rolled(today, month, int(match.group(1)))

    match = _NUMERIC.search(folded)
    if match:
        day, month = int(match.group(1)), int(match.group(2))
        year = match.group(3)
        if year is not None:
            full_year = int(year) if len(year) == 4 else 2000 + int(year)
            return _rolled(today, month, day, full_year)
        return _rolled(today, month, day)

    for index, name in enumerate(WEEKDAYS):
        if _has_word(folded, _fold(name)):
            return today + timedelta(days=(index - today.weekday()) % 7)

    return None


def format_date_for_user(value: date, today: date) -> str:
    """Render "Hoy", "Mañana" or e.g. "viernes 14 de marzo"."""
    if value == today:
        return "Hoy"
    if value == today + timedelta(days=1):
        return "Mañana"
    return f"{WEEKDAYS[value.weekday()]} {value.day} de {MONTHS[value.month - 1]}"


def format_long_date(value: date) -> str:
    """Render e.g. "viernes, 14 de marzo de 2025"."""
    return (
        f"{WEEKDAYS[value.weekday()]}, {value.day} de "
        f"{MONTHS[value.month - 1]} de {value.year}"
    )
