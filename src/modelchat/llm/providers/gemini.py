"""Google Gemini chat transport.

Talks to the Gemini API through the google-genai SDK.

Note: Gemini can return empty candidates due to safety filtering. Those turns
come back as an empty string rather than an error.
"""

import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ...config import PROVIDER_GEMINI
from ...errors import HttpError, ModelUnavailable, NetworkError
from ..base import ChatBackend
from ..models import ChatMessage, ChatRequest, DirectReply

logger = logging.getLogger(__name__)

# Relaxed so that ordinary questions about uploaded documents are not blocked
_RELAXED_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold="BLOCK_ONLY_HIGH")
    for category in _RELAXED_CATEGORIES
]

# Gemini calls the assistant side of a dialogue "model"
_GEMINI_ROLES = {"user": "user", "assistant": "model"}

GENERATE_ACTION = "generateContent"


class GeminiBackend(ChatBackend):
    """Google Gemini transport calling the API directly.

    Hidden design decisions:
    - Google GenAI client initialization
    - Message format conversion (assistant -> model role, system instruction)
    - Filtering discovery to models that support content generation
    - Mapping SDK errors to modelchat error types
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = 120.0,
        temperature: float = 0.7,
        **client_kwargs
    ):
        """Initialize Gemini backend.

        Args:
            api_key: Google AI API key
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            **client_kwargs: Additional kwargs for Client
        """
        self._temperature = temperature
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            **client_kwargs
        )

    @property
    def provider(self) -> str:
        return PROVIDER_GEMINI

    def _convert_messages(self, messages: list[ChatMessage]) -> tuple[str | None, list[types.Content]]:
        """Split a dialogue into Gemini's system instruction and contents.

        The last system entry wins; roles Gemini has no name for are skipped.
        """
        system_entries = [m.content for m in messages if m.role == "system"]
        contents = [
            types.Content(role=_GEMINI_ROLES[m.role], parts=[types.Part(text=m.content)])
            for m in messages
            if m.role in _GEMINI_ROLES
        ]
        return (system_entries[-1] if system_entries else None), contents

    def _extract_content(self, response: types.GenerateContentResponse) -> str:
        """Extract text content from a Gemini response, tolerating empty candidates."""
        if response.candidates:
            candidate = response.candidates[0]
            if candidate.content and candidate.content.parts:
                texts = [part.text for part in candidate.content.parts if part.text]
                if texts:
                    return "".join(texts)

        try:
            return response.text or ""
        except (ValueError, AttributeError):
            return ""

    def _translate_error(self, error: genai_errors.APIError, model: str | None = None) -> HttpError:
        body = error.message or str(error)
        if model is not None and error.code == 404:
            return ModelUnavailable(model, error.code, body)
        return HttpError(error.code or 500, body)

    async def list_models(self) -> list[str]:
        """List Gemini models that support content generation."""
        names = []
        try:
            pager = await self._client.aio.models.list(config={"page_size": 100})
            async for model in pager:
                if model.name and GENERATE_ACTION in (model.supported_actions or []):
                    names.append(model.name)
        except genai_errors.APIError as e:
            raise self._translate_error(e) from e
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot reach Gemini API: {e}") from e

        logger.debug("Gemini reports %d chat-capable models", len(names))
        return names

    async def generate(self, request: ChatRequest) -> DirectReply:
        """Generate a reply with Gemini.

        The system prompt travels as the system instruction. Grounding is a
        backend feature, so ``use_rag`` has no effect on a direct call.
        """
        system_instruction, contents = self._convert_messages(request.messages)
        if request.system_prompt:
            system_instruction = request.system_prompt
        if request.use_rag:
            logger.debug("Document grounding is not available on direct Gemini calls")

        config = types.GenerateContentConfig(
            temperature=self._temperature,
            system_instruction=system_instruction,
            safety_settings=DEFAULT_SAFETY_SETTINGS,
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=request.model,
                contents=contents,
                config=config
            )
        except genai_errors.APIError as e:
            raise self._translate_error(e, request.model) from e
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot reach Gemini API: {e}") from e

        return DirectReply(
            content=self._extract_content(response),
            model=request.model,
            usage=_usage_counts(response.usage_metadata),
        )

    async def close(self) -> None:
        # The GenAI client holds no connections that need closing
        return None


def _usage_counts(metadata: types.GenerateContentResponseUsageMetadata | None) -> dict[str, int] | None:
    """Token counts keyed the way ``normalize_reply`` reads them."""
    if metadata is None:
        return None
    return {
        "prompt_tokens": metadata.prompt_token_count or 0,
        "completion_tokens": metadata.candidates_token_count or 0,
        "total_tokens": metadata.total_token_count or 0,
    }
