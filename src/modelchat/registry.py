"""Model discovery and selection.

This module hides how model catalogs are obtained and which model counts as
"best". Selection is a deterministic first-match scan over a preference list;
there is no scoring.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import (
    CHAT_API_PATH,
    DEFAULT_CUSTOM_MODEL,
    DEFAULT_GEMINI_MODEL,
    GEMINI_OFFLINE_CATALOG,
    GEMINI_PREFERRED_MODELS,
    PROVIDER_GEMINI,
)
from .errors import HttpError, NetworkError
from .transport import BackendClient

if TYPE_CHECKING:
    from .conversation.models import ConversationState
    from .llm.base import ChatBackend

logger = logging.getLogger(__name__)


def normalize_model_name(name: str) -> str:
    """Strip any namespace: ``models/gemini-2.5-flash`` -> ``gemini-2.5-flash``."""
    return name.rsplit("/", 1)[-1]


class ModelCatalog(BaseModel):
    """Models a provider can serve, in the order the provider listed them."""

    model_config = ConfigDict(frozen=True)

    provider: str
    models: list[str] = Field(default_factory=list, description="Raw identifiers, possibly namespaced")
    offline: bool = Field(default=False, description="Built-in defaults used because discovery failed")

    @property
    def names(self) -> list[str]:
        """Normalized model names, catalog order preserved."""
        return [normalize_model_name(m) for m in self.models]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_model_name(name) in self.names

    def __len__(self) -> int:
        return len(self.models)

    def without(self, name: str) -> "ModelCatalog":
        """Copy of this catalog with every entry naming ``name`` removed."""
        target = normalize_model_name(name)
        kept = [m for m in self.models if normalize_model_name(m) != target]
        return self.model_copy(update={"models": kept})


class ProviderConfig(BaseModel):
    """Custom-server configuration published by the chat backend."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    custom_server_configured: bool = Field(default=False, alias="customServerConfigured")
    default_custom_model: str = Field(default=DEFAULT_CUSTOM_MODEL, alias="defaultCustomModel")


async def load_provider_config(client: BackendClient) -> ProviderConfig:
    """Fetch the custom-server configuration from the backend.

    Raises:
        NetworkError: Backend unreachable
        HttpError: Backend rejected the request
    """
    data = await client.get_json(f"{CHAT_API_PATH}/config")
    try:
        return ProviderConfig.model_validate(data)
    except ValidationError as e:
        raise HttpError(200, f"Unexpected config response: {e}") from e


def pick_best_model(
    models: Sequence[str] | ModelCatalog,
    preferences: Iterable[str] = GEMINI_PREFERRED_MODELS,
    default: str = DEFAULT_GEMINI_MODEL,
) -> str:
    """Choose the best model from a catalog.

    Args:
        models: Raw catalog entries (or a ModelCatalog), in provider order
        preferences: Model names ordered best to worst
        default: Returned when the catalog is empty

    Returns:
        Normalized name of the first preference present in the catalog
        (exact or namespaced match), else the first catalog entry, else
        ``default``
    """
    raw = list(models.models if isinstance(models, ModelCatalog) else models)
    names = [normalize_model_name(m) for m in raw]

    for preferred in preferences:
        if preferred in names:
            return preferred
        if any(m.endswith("/" + preferred) for m in raw):
            return preferred

    if raw:
        return names[0]
    return default


class ModelRegistry:
    """Tracks the last-known catalog per provider and keeps selections valid.

    Discovery failures never block chatting: the registry records the error
    and substitutes a built-in catalog.
    """

    def __init__(self, provider_config: ProviderConfig | None = None):
        self.provider_config = provider_config or ProviderConfig()
        self._catalogs: dict[str, ModelCatalog] = {}
        self._errors: dict[str, str] = {}

    def preferences_for(self, provider: str) -> tuple[str, ...]:
        if provider == PROVIDER_GEMINI:
            return GEMINI_PREFERRED_MODELS
        return ()

    def default_for(self, provider: str) -> str:
        if provider == PROVIDER_GEMINI:
            return DEFAULT_GEMINI_MODEL
        return self.provider_config.default_custom_model

    def offline_catalog(self, provider: str) -> ModelCatalog:
        """Built-in catalog used when discovery fails."""
        if provider == PROVIDER_GEMINI:
            models = list(GEMINI_OFFLINE_CATALOG)
        else:
            models = [self.provider_config.default_custom_model]
        return ModelCatalog(provider=provider, models=models, offline=True)

    def catalog(self, provider: str) -> ModelCatalog | None:
        """Last catalog received for ``provider``, if any."""
        return self._catalogs.get(provider)

    def error(self, provider: str) -> str | None:
        """Message from the last failed discovery for ``provider``, if any."""
        return self._errors.get(provider)

    def set_catalog(self, catalog: ModelCatalog) -> None:
        self._catalogs[catalog.provider] = catalog

    def pick(self, provider: str, catalog: ModelCatalog | None = None) -> str:
        """Best model for ``provider`` from ``catalog`` or the last-known one."""
        source = catalog if catalog is not None else self._catalogs.get(provider)
        return pick_best_model(
            source.models if source is not None else [],
            self.preferences_for(provider),
            self.default_for(provider),
        )

    async def discover(self, backend: "ChatBackend") -> ModelCatalog:
        """Query a backend for its chat-capable models.

        Raises:
            NetworkError: Provider unreachable
            HttpError: Provider rejected the request
        """
        models = await backend.list_models()
        logger.info("Discovered %d %s models", len(models), backend.provider)
        return ModelCatalog(provider=backend.provider, models=models)

    async def refresh(self, state: "ConversationState", backend: "ChatBackend") -> "ConversationState":
        """Rediscover the catalog for the state's provider and revalidate the selection."""
        provider = backend.provider
        try:
            catalog = await self.discover(backend)
            self._errors.pop(provider, None)
        except (NetworkError, HttpError) as e:
            logger.warning("Model discovery for %s failed, using defaults: %s", provider, e)
            self._errors[provider] = e.detail
            catalog = self.offline_catalog(provider)

        self.set_catalog(catalog)
        return self.ensure_selection(state)

    def ensure_selection(self, state: "ConversationState") -> "ConversationState":
        """Replace the active provider's selection if its catalog cannot serve it.

        Only the active provider's slot is touched; the other provider keeps
        its selection across switches.
        """
        catalog = self._catalogs.get(state.provider)
        current = state.active_model
        if catalog is None or current in catalog:
            return state

        best = self.pick(state.provider, catalog)
        if best != current:
            logger.info("Model %s not in %s catalog, switching to %s", current, state.provider, best)
            state.select_model(best)
        return state

    def fallback_for(self, provider: str, failed_model: str) -> str | None:
        """Best alternative to a model the provider reported unavailable.

        Returns:
            A different model from the last-known catalog, or None when no
            catalog is known or nothing else is in it
        """
        catalog = self._catalogs.get(provider)
        if catalog is None:
            return None

        remaining = catalog.without(failed_model)
        if not remaining.models:
            return None

        candidate = self.pick(provider, remaining)
        if normalize_model_name(candidate) == normalize_model_name(failed_model):
            return None
        return candidate
