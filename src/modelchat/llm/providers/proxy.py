"""Backend-proxied chat transport.

The chat backend owns provider credentials and retrieval; this client only
speaks its JSON API. Both providers are reached through the same routes, with
the provider named in the request body.
"""

import logging

from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from ...config import CHAT_API_PATH, PROVIDER_GEMINI
from ...errors import HttpError, ModelUnavailable, is_not_found
from ...registry import load_provider_config
from ...transport import BackendClient, decode_json
from ..base import ChatBackend
from ..models import ChatRequest, ProxyReply

logger = logging.getLogger(__name__)


class _ModelListing(BaseModel):
    models: list[str] = []

    @field_validator("models", mode="before")
    @classmethod
    def _models_default(cls, value: object) -> object:
        return [] if value is None else value


class ProxyBackend(ChatBackend):
    """Chat transport that goes through the backend's ``/api/chat`` routes.

    Hidden design decisions:
    - Route layout of the backend
    - Detection of provider not-found failures wrapped by the backend
    """

    def __init__(self, client: BackendClient, provider: str = PROVIDER_GEMINI, owns_client: bool = False):
        """Initialize the proxy backend.

        Args:
            client: Shared backend client
            provider: Provider named in each request ('gemini' or 'custom')
            owns_client: Close the client when this backend closes
        """
        self._client = client
        self._provider = provider
        self._owns_client = owns_client

    @property
    def provider(self) -> str:
        return self._provider

    async def list_models(self) -> list[str]:
        """List models the backend can serve for this provider.

        The custom server exposes a single configured model, so its catalog
        comes from the config route.

        Raises:
            NetworkError: Backend unreachable
            HttpError: Backend failed or answered with an unexpected shape
        """
        if self._provider != PROVIDER_GEMINI:
            config = await load_provider_config(self._client)
            return [config.default_custom_model] if config.custom_server_configured else []

        data = await self._client.get_json(f"{CHAT_API_PATH}/models")
        try:
            return _ModelListing.model_validate(data).models
        except PydanticValidationError as e:
            raise HttpError(200, f"Unexpected models response: {e}") from e

    async def generate(self, request: ChatRequest) -> ProxyReply:
        """Post one chat turn to the backend."""
        try:
            response = await self._client.request("POST", CHAT_API_PATH, json=request.to_payload())
        except HttpError as e:
            if is_not_found(e.status, e.body):
                logger.info("Backend reports model %s unavailable", request.model)
                raise ModelUnavailable(request.model, e.status, e.body) from e
            raise

        try:
            return ProxyReply.model_validate(decode_json(response))
        except PydanticValidationError as e:
            raise HttpError(response.status_code, f"Unexpected chat response: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
