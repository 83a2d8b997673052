"""Session orchestration.

``ChatEngine`` wires the registry, assembler, dispatcher and asset manager
together and exposes the operations a shell calls: start, switch provider,
send a message, start a new chat. State is always passed in and handed back.
"""

import logging
from typing import Any

from .assets import AssetManager
from .config import PROVIDER_CUSTOM, PROVIDER_GEMINI, PROVIDERS, Settings
from .conversation import ConversationState, Message, build_request
from .dispatcher import Dispatcher
from .errors import ChatError, HttpError, NetworkError, ValidationError
from .llm import ChatBackend, create_chat_backend
from .registry import ModelRegistry, ProviderConfig, load_provider_config
from .transport import BackendClient

logger = logging.getLogger(__name__)


class ChatEngine:
    """Entry point for shells.

    Example:
        >>> async with ChatEngine(Settings.from_env()) as engine:
        ...     state = await engine.start(engine.new_state())
        ...     state, reply = await engine.send_message(state, "Hello!")
    """

    def __init__(
        self,
        settings: Settings,
        client: BackendClient | None = None,
        backends: dict[str, ChatBackend] | None = None,
    ):
        """Initialize the engine.

        Args:
            settings: Engine settings
            client: Backend client (created from settings if omitted)
            backends: Prebuilt transports keyed by provider; missing ones are
                created on first use
        """
        self.settings = settings
        self.client = client or BackendClient(settings.backend_url, timeout=settings.request_timeout)
        self.registry = ModelRegistry()
        self.dispatcher = Dispatcher(self.registry)
        self.assets = AssetManager(self.client)
        self._backends: dict[str, ChatBackend] = dict(backends or {})

    @property
    def provider_config(self) -> ProviderConfig:
        return self.registry.provider_config

    def new_state(self) -> ConversationState:
        """Empty conversation using the configured provider, model and system text."""
        return ConversationState(
            provider=self.settings.provider,
            model=self.settings.gemini_model,
            system_prompt=self.settings.system_prompt,
        )

    def backend(self, provider: str) -> ChatBackend:
        """Transport for ``provider``, created on first use."""
        if provider not in self._backends:
            self._backends[provider] = create_chat_backend(
                provider,
                transport=self.settings.transport,
                client=self.client,
                **self._direct_config(provider)
            )
        return self._backends[provider]

    def _direct_config(self, provider: str) -> dict[str, Any]:
        if self.settings.transport != "direct":
            return {}
        if provider == PROVIDER_GEMINI:
            return {"api_key": self.settings.gemini_api_key, "timeout": self.settings.request_timeout}
        return {
            "base_url": self.settings.custom_server_url,
            "api_key": self.settings.custom_server_api_key,
            "timeout": self.settings.request_timeout,
        }

    async def load_config(self) -> ProviderConfig:
        """Load (or reload) the custom-server configuration.

        Through the proxy it comes from the backend; a failure keeps the
        current configuration. Direct transports read it from settings.
        """
        if self.settings.transport == "direct":
            config = ProviderConfig(
                custom_server_configured=bool(self.settings.custom_server_url),
                default_custom_model=self.settings.custom_model,
            )
        else:
            try:
                config = await load_provider_config(self.client)
            except (NetworkError, HttpError) as e:
                logger.warning("Could not load backend config: %s", e)
                return self.registry.provider_config

        self.registry.provider_config = config
        return config

    async def start(self, state: ConversationState) -> ConversationState:
        """Load configuration and discover models for the state's provider."""
        await self.load_config()
        return await self.refresh_models(state)

    async def refresh_models(self, state: ConversationState) -> ConversationState:
        return await self.registry.refresh(state, self.backend(state.provider))

    async def switch_provider(self, state: ConversationState, provider: str) -> ConversationState:
        """Make ``provider`` active and revalidate the model selection.

        Raises:
            ValidationError: Unknown provider
        """
        if provider not in PROVIDERS:
            raise ValidationError(f"Unsupported provider: {provider}. Supported providers: {', '.join(PROVIDERS)}")

        state.provider = provider
        return await self.refresh_models(state)

    def can_send(self, state: ConversationState) -> bool:
        """Whether a new turn may be dispatched right now."""
        if self.dispatcher.busy:
            return False
        if state.provider == PROVIDER_CUSTOM:
            return self.provider_config.custom_server_configured
        return True

    async def send_message(
        self,
        state: ConversationState,
        text: str,
    ) -> tuple[ConversationState, Message | None]:
        """Run one user turn.

        Blank text and sends while a turn is in flight are ignored. Otherwise
        the user message is logged, the request dispatched, and either the
        assistant reply or an error entry is appended.

        Returns:
            Tuple of (updated state, appended reply or error message, or None
            when nothing was sent)
        """
        if self.dispatcher.busy:
            logger.debug("Send ignored, a turn is already in flight")
            return state, None

        request = build_request(state, text, self.provider_config)
        if request is None:
            return state, None

        if state.provider == PROVIDER_CUSTOM and not self.provider_config.custom_server_configured:
            return state, state.add_error("Custom server is not configured on the backend")

        state.add_user(text)
        try:
            state, result = await self.dispatcher.send(state, request, self.backend(state.provider))
        except ChatError as e:
            logger.error("Chat turn failed: %s", e)
            return state, state.add_error(e.detail)

        return state, state.add_assistant(result)

    def new_chat(self, state: ConversationState) -> ConversationState:
        return state.reset()

    async def close(self) -> None:
        for backend in self._backends.values():
            await backend.close()
        await self.client.close()

    async def __aenter__(self) -> "ChatEngine":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
