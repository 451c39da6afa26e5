"""
Input guardrails for the chat conversations.

Three independent checks run on every customer message:
1. InputGuardrail    : normalizes whitespace and bounds message length
2. ReplyClassifier   : maps free text to affirmative / negative / abort
3. MenuChoiceParser  : resolves numbered menu answers or option names
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


def fold(text: str) -> str:
    """Lowercase and strip accents: "Sí" -> "si", "Dirección" -> "direccion"."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def tokenize(text: str) -> list[str]:
    return re.findall(r"[a-z0-9]+", fold(text))


@dataclass
class GuardrailResult:
    """Outcome of the input check."""
    passed: bool
    text: str = ""
    violation_type: Optional[str] = None


class InputGuardrail:
    """Cleans raw transport text before it reaches the state machine."""

    def __init__(self, max_length: int = 500) -> None:
        self.max_length = max_length

    def check(self, raw_text: Optional[str]) -> GuardrailResult:
        text = re.sub(r"\s+", " ", raw_text or "").strip()
        if not text:
            return GuardrailResult(passed=False, violation_type="empty_input")
        if len(text) > self.max_length:
            logger.info("Input truncated from %d to %d characters", len(text), self.max_length)
            text = text[: self.max_length]
        return GuardrailResult(passed=True, text=text)


class Reply(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    ABORT = "abort"
    UNKNOWN = "unknown"


class ReplyClassifier:
    """Keyword classification of yes / no / exit answers."""

    AFFIRMATIVE = frozenset({"si", "confirmar", "confirmo", "acepto", "dale", "ok", "listo"})
    NEGATIVE = frozenset({"no", "cambiar", "modificar", "corregir"})
    ABORT = frozenset({"cancelar", "salir"})

    def classify(self, text: str) -> Reply:
        """Negative wins over affirmative, affirmative over abort.

        "no, no confirmo" and "no quiero confirmar" are refusals.
        """
        words = set(tokenize(text))
        if words & self.NEGATIVE:
            return Reply.NEGATIVE
        if words & self.AFFIRMATIVE:
            return Reply.AFFIRMATIVE
        if words & self.ABORT:
            return Reply.ABORT
        return Reply.UNKNOWN

    def is_abort(self, text: str) -> bool:
        return bool(set(tokenize(text)) & self.ABORT)

    def contains_phrase(self, text: str, phrase: str) -> bool:
        return fold(phrase) in " ".join(tokenize(text))


class MenuChoiceParser:
    """Resolves "2", "2." or an option's name to a zero-based index."""

    def parse(
        self,
        text: str,
        option_count: int,
        names: Sequence[Sequence[str]] = (),
    ) -> Optional[int]:
        match = re.match(r"^\s*(\d+)\b", text)
        if match:
            index = int(match.group(1)) - 1
            return index if 0 <= index < option_count else None

        return self.match_name(text, names)

    def match_name(self, text: str, names: Sequence[Sequence[str]]) -> Optional[int]:
        """Index of the first option whose alias appears as whole words in ``text``."""
        padded = f" {' '.join(tokenize(text))} "
        for index, aliases in enumerate(names):
            if any(f" {' '.join(tokenize(alias))} " in padded for alias in aliases):
                return index
        return None
