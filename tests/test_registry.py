"""Unit tests for model discovery and selection."""
import pytest
from hypothesis import given
from hypothesis import strategies as st

from modelchat.config import DEFAULT_GEMINI_MODEL, GEMINI_OFFLINE_CATALOG, GEMINI_PREFERRED_MODELS
from modelchat.conversation import ConversationState
from modelchat.errors import HttpError, NetworkError
from modelchat.registry import (
    ModelCatalog,
    ModelRegistry,
    ProviderConfig,
    normalize_model_name,
    pick_best_model,
)

# Bare names that never collide with a preferred model
other_names = st.text(alphabet="abcdefghijklmnop0123456789.-:", min_size=1, max_size=16).filter(
    lambda name: name not in GEMINI_PREFERRED_MODELS
)
namespaces = st.sampled_from(["", "models/", "tunedModels/", "org/team/"])


class TestNormalizeModelName:
    """Tests for namespace stripping."""

    def test_strips_namespace(self):
        assert normalize_model_name("models/gemini-2.5-flash") == "gemini-2.5-flash"

    def test_bare_name_unchanged(self):
        assert normalize_model_name("qwen2:0.5b") == "qwen2:0.5b"

    def test_keeps_trailing_segment_only(self):
        assert normalize_model_name("org/team/model-x") == "model-x"


class TestPickBestModel:
    """Tests for deterministic model selection."""

    def test_exact_preferred_match(self):
        assert pick_best_model(["gemini-1.5-pro", "gemini-2.0-flash"]) == "gemini-2.0-flash"

    def test_namespaced_preferred_match(self):
        assert pick_best_model(["models/gemini-1.5-pro", "models/gemini-2.5-flash"]) == "gemini-2.5-flash"

    def test_earliest_preference_wins_over_catalog_order(self):
        catalog = ["models/gemini-2.0-flash", "models/gemini-2.5-flash"]
        assert pick_best_model(catalog) == "gemini-2.5-flash"

    def test_first_entry_when_nothing_preferred(self):
        assert pick_best_model(["models/gemini-1.5-pro", "gemini-1.0-pro"]) == "gemini-1.5-pro"

    def test_empty_catalog_returns_default(self):
        assert pick_best_model([]) == DEFAULT_GEMINI_MODEL

    def test_custom_preferences_and_default(self):
        assert pick_best_model([], preferences=(), default="qwen2:0.5b") == "qwen2:0.5b"
        assert pick_best_model(["llama3", "qwen2:0.5b"], preferences=("qwen2:0.5b",)) == "qwen2:0.5b"

    def test_accepts_catalog_object(self):
        catalog = ModelCatalog(provider="gemini", models=["models/gemini-2.0-flash"])
        assert pick_best_model(catalog) == "gemini-2.0-flash"

    def test_suffix_without_separator_is_not_a_match(self):
        """'xgemini-2.5-flash' must not count as a namespaced gemini-2.5-flash."""
        assert pick_best_model(["xgemini-2.5-flash"]) == "xgemini-2.5-flash"

    @given(st.data())
    def test_preferred_entry_always_chosen(self, data):
        """Property test: the earliest-listed preference present is returned."""
        others = data.draw(st.lists(st.tuples(namespaces, other_names), max_size=8))
        present = data.draw(
            st.lists(st.sampled_from(GEMINI_PREFERRED_MODELS), min_size=1, unique=True)
        )
        catalog = [ns + name for ns, name in others]
        for preferred in present:
            ns = data.draw(namespaces)
            position = data.draw(st.integers(min_value=0, max_value=len(catalog)))
            catalog.insert(position, ns + preferred)

        expected = next(p for p in GEMINI_PREFERRED_MODELS if p in present)
        assert pick_best_model(catalog) == expected

    @given(st.lists(st.tuples(namespaces, other_names), min_size=1, max_size=10))
    def test_first_entry_chosen_without_preferences(self, entries):
        """Property test: without preferred entries the first one wins, normalized."""
        catalog = [ns + name for ns, name in entries]
        assert pick_best_model(catalog) == entries[0][1]


class TestModelCatalog:
    """Tests for catalog membership."""

    def test_membership_uses_normalized_names(self, gemini_catalog):
        catalog = ModelCatalog(provider="gemini", models=gemini_catalog)

        assert "gemini-2.5-flash" in catalog
        assert "models/gemini-2.0-flash" in catalog
        assert "other/gemini-2.0-flash" in catalog
        assert "gemini-x" not in catalog

    def test_names_preserve_order(self, gemini_catalog):
        catalog = ModelCatalog(provider="gemini", models=gemini_catalog)
        assert catalog.names == ["gemini-2.5-flash", "gemini-2.0-flash"]

    def test_without_removes_all_forms(self):
        catalog = ModelCatalog(provider="gemini", models=["models/a", "a", "b"])
        assert catalog.without("a").models == ["b"]


class TestModelRegistry:
    """Tests for catalog tracking and selection upkeep."""

    @pytest.mark.asyncio
    async def test_refresh_replaces_unservable_selection(self, fake_backend, gemini_catalog):
        registry = ModelRegistry()
        state = ConversationState(model="gemini-x")

        state = await registry.refresh(state, fake_backend(models=gemini_catalog))

        assert state.model == "gemini-2.5-flash"
        assert registry.catalog("gemini").models == gemini_catalog
        assert registry.error("gemini") is None

    @pytest.mark.asyncio
    async def test_refresh_keeps_servable_selection(self, fake_backend, gemini_catalog):
        registry = ModelRegistry()
        state = ConversationState(model="gemini-2.0-flash")

        state = await registry.refresh(state, fake_backend(models=gemini_catalog))

        assert state.model == "gemini-2.0-flash"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [NetworkError("connection refused"), HttpError(502, "Bad Gateway")])
    async def test_refresh_failure_falls_back_to_defaults(self, fake_backend, failure):
        registry = ModelRegistry()
        state = ConversationState(model="gemini-x")

        state = await registry.refresh(state, fake_backend(models=failure))

        catalog = registry.catalog("gemini")
        assert catalog.offline
        assert catalog.models == list(GEMINI_OFFLINE_CATALOG)
        assert registry.error("gemini") == failure.detail
        assert state.model == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_successful_refresh_clears_error(self, fake_backend, gemini_catalog):
        registry = ModelRegistry()
        state = ConversationState()

        await registry.refresh(state, fake_backend(models=NetworkError("down")))
        await registry.refresh(state, fake_backend(models=gemini_catalog))

        assert registry.error("gemini") is None
        assert not registry.catalog("gemini").offline

    def test_custom_offline_catalog_uses_configured_model(self):
        registry = ModelRegistry(ProviderConfig(custom_server_configured=True, default_custom_model="llama3"))

        assert registry.offline_catalog("custom").models == ["llama3"]
        assert registry.default_for("custom") == "llama3"

    def test_ensure_selection_without_catalog_is_noop(self):
        state = ConversationState(model="anything")
        assert ModelRegistry().ensure_selection(state).model == "anything"

    def test_ensure_selection_after_provider_change(self):
        registry = ModelRegistry(ProviderConfig(custom_server_configured=True, default_custom_model="llama3"))
        registry.set_catalog(ModelCatalog(provider="custom", models=["llama3"]))
        state = ConversationState(provider="custom", model="gemini-2.0-flash")

        state = registry.ensure_selection(state)

        assert state.custom_model == "llama3"
        assert state.model == "gemini-2.0-flash"

    def test_ensure_selection_keeps_custom_choice(self):
        registry = ModelRegistry()
        registry.set_catalog(ModelCatalog(provider="custom", models=["qwen2:0.5b", "llama3"]))
        state = ConversationState(provider="custom", custom_model="llama3")

        assert registry.ensure_selection(state).custom_model == "llama3"

    def test_fallback_skips_failed_model(self, gemini_catalog):
        registry = ModelRegistry()
        registry.set_catalog(ModelCatalog(provider="gemini", models=gemini_catalog))

        assert registry.fallback_for("gemini", "gemini-x") == "gemini-2.5-flash"
        assert registry.fallback_for("gemini", "gemini-2.5-flash") == "gemini-2.0-flash"
        assert registry.fallback_for("gemini", "models/gemini-2.5-flash") == "gemini-2.0-flash"

    def test_no_fallback_when_catalog_has_only_failed_model(self):
        registry = ModelRegistry()
        registry.set_catalog(ModelCatalog(provider="gemini", models=["models/gemini-2.5-flash"]))

        assert registry.fallback_for("gemini", "gemini-2.5-flash") is None

    def test_no_fallback_without_catalog(self):
        assert ModelRegistry().fallback_for("gemini", "gemini-x") is None
