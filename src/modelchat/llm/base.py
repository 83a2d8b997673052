from abc import ABC, abstractmethod
from typing import Any

from .models import ChatRequest, DirectReply, ProxyReply


class ChatBackend(ABC):
    """Abstract base class for chat transports.

    This module hides the design decision of how a provider is reached.
    Implementations must handle transport-specific details like:
    - Client setup and authentication
    - Request/response format conversion
    - Translating library failures into ``modelchat.errors`` types

    A missing model must surface as ``ModelUnavailable`` so the dispatcher
    can fall back without inspecting error text.

    Supports async context manager protocol for proper resource cleanup:
        async with backend:
            reply = await backend.generate(request)
        # Automatically cleaned up
    """

    @property
    @abstractmethod
    def provider(self) -> str:
        """Provider identifier this backend serves ('gemini' or 'custom')."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """List chat-capable model identifiers, possibly namespaced.

        Raises:
            NetworkError: No response from the provider
            HttpError: Provider rejected the request
        """

    @abstractmethod
    async def generate(self, request: ChatRequest) -> DirectReply | ProxyReply:
        """Send one chat turn.

        Args:
            request: Assembled request payload

        Returns:
            Reply in this transport's dialect

        Raises:
            ModelUnavailable: The requested model is not served
            HttpError: Any other non-2xx response
            NetworkError: No response from the provider
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def __aenter__(self) -> "ChatBackend":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            # Suppress harmless cleanup errors from httpx/anyio
            if "Event loop is closed" not in str(e):
                raise
