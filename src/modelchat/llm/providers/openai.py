"""Self-hosted model server transport.

Ollama, vLLM and llama.cpp all expose an OpenAI-compatible API, so the
OpenAI SDK pointed at a custom ``base_url`` reaches any of them.
"""

import logging
from typing import Any

import openai
from openai import AsyncOpenAI

from ...config import PROVIDER_CUSTOM
from ...errors import HttpError, ModelUnavailable, NetworkError
from ..base import ChatBackend
from ..models import ChatRequest, DirectReply

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend(ChatBackend):
    """Custom-server transport via the OpenAI Chat Completions API.

    Hidden design decisions:
    - OpenAI API client initialization against a custom base URL
    - Message format conversion
    - Mapping SDK errors to modelchat error types
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "not-needed",
        timeout: float = 120.0,
        temperature: float = 0.7,
        **client_kwargs: Any
    ):
        """Initialize the backend.

        Args:
            base_url: Server URL including the ``/v1`` prefix
            api_key: API key; most local servers ignore it
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._temperature = temperature
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            **client_kwargs
        )

    @property
    def provider(self) -> str:
        return PROVIDER_CUSTOM

    async def list_models(self) -> list[str]:
        try:
            page = await self._client.models.list()
        except openai.APIConnectionError as e:
            raise NetworkError(f"Cannot reach custom server: {e}") from e
        except openai.APIStatusError as e:
            raise HttpError(e.status_code, e.message) from e

        return [model.id for model in page.data]

    async def generate(self, request: ChatRequest) -> DirectReply:
        """Generate a reply with the custom server."""
        openai_messages = []
        if request.system_prompt:
            openai_messages.append({"role": "system", "content": request.system_prompt})
        openai_messages.extend(
            {"role": msg.role, "content": msg.content}
            for msg in request.messages
        )

        try:
            completion = await self._client.chat.completions.create(
                model=request.model,
                messages=openai_messages,
                temperature=self._temperature,
            )
        except openai.NotFoundError as e:
            raise ModelUnavailable(request.model, e.status_code, e.message) from e
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass
            raise NetworkError(f"Cannot reach custom server: {e}") from e
        except openai.APIStatusError as e:
            raise HttpError(e.status_code, e.message) from e

        usage = None
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens
            }

        content = completion.choices[0].message.content if completion.choices else None
        return DirectReply(
            content=content or "",
            model=completion.model or request.model,
            usage=usage
        )

    async def close(self) -> None:
        """Close the OpenAI client."""
        await self._client.close()
