"""Gateway module for routing messages, running reasoning cycles and chat commands."""

from relaybot.gateway.loop import CycleResult, LoopState, ReasoningLoop
from relaybot.gateway.preferences import PreferenceStateMachine
from relaybot.gateway.protocol import Answer, SearchRequest, parse_reply
from relaybot.gateway.router import Router
from relaybot.gateway.transport import MessageHandle, Transport

__all__ = [
    "Router",
    "ReasoningLoop",
    "CycleResult",
    "LoopState",
    "PreferenceStateMachine",
    "Answer",
    "SearchRequest",
    "parse_reply",
    "Transport",
    "MessageHandle",
]
