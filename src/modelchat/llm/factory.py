from typing import Any

from ..config import PROVIDER_CUSTOM, PROVIDER_GEMINI
from ..transport import BackendClient
from .base import ChatBackend
from .providers import GeminiBackend, OpenAICompatibleBackend, ProxyBackend


def create_chat_backend(
    provider: str,
    transport: str = "proxy",
    client: BackendClient | None = None,
    **config: Any
) -> ChatBackend:
    """Create a chat transport for a provider.

    This factory function hides which transport serves which provider.

    Args:
        provider: Provider type ('gemini' or 'custom')
        transport: 'proxy' (through the chat backend) or 'direct' (provider SDK)
        client: Backend client, required for the proxy transport
        **config: Transport-specific configuration
            For direct Gemini:
                - api_key: str (required)
                - timeout: float
            For direct custom server:
                - base_url: str (required)
                - api_key: str
                - timeout: float

    Returns:
        Initialized chat backend

    Raises:
        ValueError: If provider or transport is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> backend = create_chat_backend("gemini", client=BackendClient("http://localhost:3001"))

        >>> backend = create_chat_backend(
        ...     "custom",
        ...     transport="direct",
        ...     base_url="http://localhost:11434/v1"
        ... )
    """
    provider_lower = provider.lower()
    if provider_lower not in (PROVIDER_GEMINI, PROVIDER_CUSTOM):
        raise ValueError(
            f"Unsupported provider: {provider}. "
            f"Supported providers: 'gemini', 'custom'"
        )

    if transport == "proxy":
        if client is None:
            raise TypeError("Proxy transport requires a BackendClient")
        return ProxyBackend(client, provider=provider_lower)

    if transport != "direct":
        raise ValueError(
            f"Unsupported transport: {transport}. "
            f"Supported transports: 'proxy', 'direct'"
        )

    if provider_lower == PROVIDER_GEMINI:
        if not config.get("api_key"):
            raise TypeError("Direct Gemini transport requires 'api_key' in config")
        return GeminiBackend(**config)

    if not config.get("base_url"):
        raise TypeError("Direct custom transport requires 'base_url' in config")
    return OpenAICompatibleBackend(**config)
