"""Per-turn correlation ID for conversation logs.

The engine binds the booking or cancellation session ID around every turn;
``SessionIdFilter`` copies it onto each record so one customer's chat can
be followed across the flow, store and notifier logs.

Usage:
    from labvisit.logging_context import get_session_logger, session_context

    logger = get_session_logger(__name__)
    with session_context("a1b2c3d4"):
        logger.info("Processing turn")  # [a1b2c3d4] Processing turn
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

NO_SESSION = "-"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def set_session_id(session_id: str) -> None:
    _session_id.set(session_id)


def get_session_id() -> str:
    return _session_id.get()


@contextmanager
def session_context(session_id: str) -> Iterator[None]:
    """Bind ``session_id`` for the duration of one turn, then restore the previous value."""
    token = _session_id.set(session_id)
    try:
        yield
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Stamps ``session_id`` on records that don't carry one already."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def get_session_logger(name: str) -> logging.Logger:
    """Module logger with ``SessionIdFilter`` attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger
