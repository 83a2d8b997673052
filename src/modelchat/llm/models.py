from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A single dialogue turn as sent to a provider."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


class ChatRequest(BaseModel):
    """Provider-agnostic request payload for one chat turn."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: str
    model: str
    messages: list[ChatMessage]
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    use_rag: bool = Field(default=False, alias="useRag")

    def with_model(self, model: str) -> "ChatRequest":
        """Return a copy of this request addressed to another model."""
        return self.model_copy(update={"model": model})

    def to_payload(self) -> dict[str, Any]:
        """Wire form for the backend; ``systemPrompt`` is omitted when unset."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Source(BaseModel):
    """A grounding document that supported an answer."""

    model_config = ConfigDict(frozen=True)

    document: str
    similarity: float | None = Field(default=None, description="Raw relevance fraction, 0-1")


class ChatResult(BaseModel):
    """Canonical result of a chat turn, whichever backend served it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: str
    model: str
    prompt_tokens: int = Field(default=0, alias="promptTokens")
    response_tokens: int = Field(default=0, alias="responseTokens")
    total_tokens: int = Field(default=0, alias="totalTokens")
    sources: list[Source] | None = None


class DirectReply(BaseModel):
    """Reply from a provider SDK called directly.

    ``usage`` follows the SDK convention of prompt/completion/total counts and
    may be missing entirely.
    """

    model_config = ConfigDict(frozen=True)

    dialect: Literal["direct"] = "direct"
    content: str
    model: str
    usage: dict[str, int] | None = None


class ProxyStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    model: str | None = None
    prompt_tokens: int | None = Field(default=None, alias="promptTokens")
    response_tokens: int | None = Field(default=None, alias="responseTokens")
    total_tokens: int | None = Field(default=None, alias="totalTokens")


class ProxyReply(BaseModel):
    """Reply from the chat backend that proxies to the actual provider."""

    model_config = ConfigDict(frozen=True)

    dialect: Literal["proxy"] = "proxy"
    content: str = ""
    stats: ProxyStats | None = None
    sources: list[Source] | None = None


ProviderReply = Annotated[DirectReply | ProxyReply, Field(discriminator="dialect")]


def normalize_reply(reply: DirectReply | ProxyReply, request: ChatRequest) -> ChatResult:
    """Map either reply dialect to a ``ChatResult``.

    Args:
        reply: Reply produced by a transport
        request: Request that produced the reply

    Returns:
        ChatResult with token counts defaulted to 0 and sources attached only
        when grounding was requested and documents came back
    """
    if isinstance(reply, DirectReply):
        usage = reply.usage or {}
        return ChatResult(
            content=reply.content,
            model=reply.model or request.model,
            prompt_tokens=usage.get("prompt_tokens") or 0,
            response_tokens=usage.get("completion_tokens") or 0,
            total_tokens=usage.get("total_tokens") or 0,
        )

    stats = reply.stats or ProxyStats()
    sources = reply.sources if request.use_rag and reply.sources else None
    return ChatResult(
        content=reply.content,
        model=stats.model or request.model,
        prompt_tokens=stats.prompt_tokens or 0,
        response_tokens=stats.response_tokens or 0,
        total_tokens=stats.total_tokens or 0,
        sources=sources,
    )
