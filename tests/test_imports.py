"""Every module imports cleanly."""

import importlib

import pytest

MODULES = [
    "labvisit",
    "labvisit.config",
    "labvisit.dates",
    "labvisit.engine",
    "labvisit.exceptions",
    "labvisit.logging_context",
    "labvisit.utils",
    "labvisit.conversation",
    "labvisit.conversation.booking_flow",
    "labvisit.conversation.cancel_flow",
    "labvisit.conversation.guardrails",
    "labvisit.conversation.session_store",
    "labvisit.conversation.state_machine",
    "labvisit.db",
    "labvisit.db.models",
    "labvisit.db.session",
    "labvisit.prompts.messages",
    "labvisit.schemas.booking_schema",
    "labvisit.schemas.conversation_schema",
    "labvisit.schemas.customer_schema",
    "labvisit.tools.availability",
    "labvisit.tools.booking",
    "labvisit.tools.cancellation",
    "labvisit.tools.customer",
    "labvisit.tools.notifications",
    "labvisit.tools.slots",
    "main",
    "console_demo",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    assert importlib.import_module(name) is not None


def test_version():
    import labvisit

    assert labvisit.__version__
