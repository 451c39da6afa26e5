from labvisit.conversation.booking_flow import BookingFlow, FlowReply
from labvisit.conversation.cancel_flow import CancellationFlow
from labvisit.conversation.guardrails import InputGuardrail, MenuChoiceParser, Reply, ReplyClassifier
from labvisit.conversation.session_store import SessionStore
from labvisit.conversation.state_machine import (
    BookingStateMachine,
    BookingTrigger,
    InvalidTransitionError,
)

__all__ = [
    "BookingFlow",
    "FlowReply",
    "CancellationFlow",
    "BookingStateMachine",
    "BookingTrigger",
    "InvalidTransitionError",
    "SessionStore",
    "InputGuardrail",
    "MenuChoiceParser",
    "Reply",
    "ReplyClassifier",
]
