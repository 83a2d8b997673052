"""Conversation state and request assembly."""

from .assembler import build_request, resolve_model, window_messages
from .models import ConversationState, Message, Role

__all__ = [
    "ConversationState",
    "Message",
    "Role",
    "build_request",
    "resolve_model",
    "window_messages",
]
