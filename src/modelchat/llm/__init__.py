from .base import ChatBackend
from .factory import create_chat_backend
from .models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    DirectReply,
    ProviderReply,
    ProxyReply,
    Source,
    normalize_reply,
)
from .providers import GeminiBackend, OpenAICompatibleBackend, ProxyBackend

__all__ = [
    "ChatBackend",
    "create_chat_backend",
    "ChatMessage",
    "ChatRequest",
    "ChatResult",
    "DirectReply",
    "ProviderReply",
    "ProxyReply",
    "Source",
    "normalize_reply",
    "GeminiBackend",
    "OpenAICompatibleBackend",
    "ProxyBackend",
]
