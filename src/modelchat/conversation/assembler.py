"""Request assembly for a chat turn.

Bounds the history sent to the provider and decides which optional context
fields travel with the request.
"""

import logging

from ..config import CONTEXT_WINDOW_SIZE, PROVIDER_CUSTOM
from ..llm.models import ChatMessage, ChatRequest
from ..registry import ProviderConfig
from .models import ConversationState, Message, Role

logger = logging.getLogger(__name__)


def window_messages(messages: list[Message], size: int = CONTEXT_WINDOW_SIZE) -> list[ChatMessage]:
    """Take the last ``size`` log entries and drop error entries.

    Cropping happens before filtering, so error entries still count against
    the window. Chronological order is preserved.
    """
    recent = messages[-size:] if size > 0 else []
    return [msg.to_chat_message() for msg in recent if msg.role != Role.ERROR]


def resolve_model(state: ConversationState, provider_config: ProviderConfig | None = None) -> str:
    """Model a request should address for the state's provider.

    A custom-server turn falls back to the configured default model until a
    selection has been made for that provider.
    """
    if state.provider == PROVIDER_CUSTOM and not state.custom_model:
        config = provider_config or ProviderConfig()
        return config.default_custom_model
    return state.active_model


def build_request(
    state: ConversationState,
    new_user_text: str,
    provider_config: ProviderConfig | None = None,
) -> ChatRequest | None:
    """Assemble the request payload for a new user turn.

    Args:
        state: Current conversation state (the new turn is not in it yet)
        new_user_text: Text the user just entered
        provider_config: Backend configuration, for the custom model

    Returns:
        ChatRequest, or None when the text is blank and nothing should be sent
    """
    if not new_user_text or not new_user_text.strip():
        logger.debug("Ignoring blank message")
        return None

    messages = window_messages(state.messages)
    messages.append(ChatMessage(role=Role.USER.value, content=new_user_text))

    system_prompt = None
    if state.use_system_prompt and state.system_prompt.strip():
        system_prompt = state.system_prompt.strip()

    return ChatRequest(
        provider=state.provider,
        model=resolve_model(state, provider_config),
        messages=messages,
        system_prompt=system_prompt,
        use_rag=state.use_rag,
    )
