"""Data models for conversation state.

The conversation lives in memory only; a new chat starts from an empty log.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_GEMINI_MODEL, DEFAULT_SYSTEM_PROMPT, PROVIDER_CUSTOM, PROVIDER_GEMINI
from ..llm.models import ChatMessage, ChatResult


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Author of a conversation log entry."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    ERROR = "error"        # Display-only, never sent to a provider


class Message(BaseModel):
    """An immutable entry in the conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_now)
    result: ChatResult | None = Field(
        default=None,
        description="Stats and sources of the turn that produced an assistant message"
    )

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(role=self.role.value, content=self.content)


class ConversationState(BaseModel):
    """Session state passed explicitly to every engine operation.

    Holds the ordered log, the active provider, one model selection per
    provider and the two context toggles. Operations mutate it and hand it
    back.
    """

    messages: list[Message] = Field(default_factory=list)
    provider: str = PROVIDER_GEMINI
    model: str = Field(default=DEFAULT_GEMINI_MODEL, description="Selected Gemini model")
    custom_model: str | None = Field(
        default=None,
        description="Selected custom-server model; None until seeded from the backend config"
    )
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    use_system_prompt: bool = True
    use_rag: bool = True

    def append(self, message: Message) -> "ConversationState":
        self.messages.append(message)
        return self

    def add_user(self, content: str) -> Message:
        message = Message(role=Role.USER, content=content)
        self.append(message)
        return message

    def add_assistant(self, result: ChatResult) -> Message:
        message = Message(role=Role.ASSISTANT, content=result.content, result=result)
        self.append(message)
        return message

    def add_error(self, detail: str) -> Message:
        message = Message(role=Role.ERROR, content=f"Error: {detail}")
        self.append(message)
        return message

    @property
    def active_model(self) -> str | None:
        """Model selected for the active provider."""
        return self.model_for(self.provider)

    def model_for(self, provider: str) -> str | None:
        if provider == PROVIDER_CUSTOM:
            return self.custom_model
        return self.model

    def select_model(self, name: str, provider: str | None = None) -> None:
        """Record ``name`` as the selection for ``provider`` (default: the active one)."""
        if (provider or self.provider) == PROVIDER_CUSTOM:
            self.custom_model = name
        else:
            self.model = name

    def reset(self) -> "ConversationState":
        """Start a new chat, keeping provider, model and toggles."""
        self.messages = []
        return self

    @property
    def system_context_active(self) -> bool:
        """Whether the system text will be sent with the next turn."""
        return self.use_system_prompt and bool(self.system_prompt.strip())
