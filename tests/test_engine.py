"""Tests for the chat engine against a mocked chat backend."""
import asyncio
import json

import httpx
import pytest

from modelchat.config import Settings
from modelchat.conversation import Role
from modelchat.engine import ChatEngine
from modelchat.errors import ModelUnavailable, ValidationError
from modelchat.llm.models import DirectReply, ProxyReply


class ChatApi:
    """In-memory stand-in for the backend's chat routes.

    ``replies`` are consumed by POST /api/chat in order; each is a
    (status, json body) pair.
    """

    def __init__(self, models=None, config=None, replies=None, models_status=200, config_status=200):
        self.models = models if models is not None else ["models/gemini-2.5-flash", "models/gemini-2.0-flash"]
        self.config = config or {"customServerConfigured": False, "defaultCustomModel": "qwen2:0.5b"}
        self.replies = list(replies or [])
        self.models_status = models_status
        self.config_status = config_status
        self.posted: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/chat/config":
            return httpx.Response(self.config_status, json=self.config)
        if path == "/api/chat/models":
            if self.models_status != 200:
                return httpx.Response(self.models_status, text="Bad Gateway")
            return httpx.Response(200, json={"models": self.models})
        if path == "/api/chat" and request.method == "POST":
            self.posted.append(json.loads(request.content))
            status, body = self.replies.pop(0)
            return httpx.Response(status, json=body)
        return httpx.Response(404)


def answer(content, model="gemini-2.5-flash", sources=None):
    body = {
        "content": content,
        "stats": {"model": model, "promptTokens": 12, "responseTokens": 8, "totalTokens": 20},
    }
    if sources is not None:
        body["sources"] = sources
    return 200, body


@pytest.fixture
def engine_for(make_client, settings):
    """Build engines whose backend is a ChatApi."""
    def _make(api, **settings_overrides):
        engine_settings = settings.model_copy(update=settings_overrides) if settings_overrides else settings
        return ChatEngine(engine_settings, client=make_client(api))

    return _make


class TestStart:
    """Tests for session start and model selection."""

    async def test_start_replaces_unknown_model(self, engine_for):
        engine = engine_for(ChatApi())
        state = engine.new_state()
        state.model = "gemini-x"

        state = await engine.start(state)

        assert state.model == "gemini-2.5-flash"
        assert engine.registry.error("gemini") is None

    async def test_discovery_failure_uses_builtin_catalog(self, engine_for):
        engine = engine_for(ChatApi(models_status=502))
        state = engine.new_state()
        state.model = "gemini-x"

        state = await engine.start(state)

        assert state.model == "gemini-2.5-flash"
        assert engine.registry.catalog("gemini").offline
        assert engine.registry.error("gemini").startswith("HTTP 502")

    async def test_config_failure_keeps_defaults(self, engine_for):
        engine = engine_for(ChatApi(config_status=500))

        config = await engine.load_config()

        assert not config.custom_server_configured
        assert config.default_custom_model == "qwen2:0.5b"

    async def test_direct_transport_reads_config_from_settings(self, engine_for):
        engine = engine_for(
            ChatApi(),
            transport="direct",
            custom_server_url="http://localhost:11434/v1",
            custom_model="llama3",
        )

        config = await engine.load_config()

        assert config.custom_server_configured
        assert config.default_custom_model == "llama3"


class TestSendMessage:
    """Tests for a full chat turn."""

    async def test_successful_turn(self, engine_for):
        api = ChatApi(replies=[answer("The report covers Q3.", sources=[{"document": "q3.pdf", "similarity": 0.91}])])
        engine = engine_for(api)
        state = await engine.start(engine.new_state())

        state, reply = await engine.send_message(state, "What does the report cover?")

        assert [m.role for m in state.messages] == [Role.USER, Role.ASSISTANT]
        assert reply.content == "The report covers Q3."
        assert reply.result.total_tokens == 20
        assert reply.result.sources[0].document == "q3.pdf"
        payload = api.posted[0]
        assert payload["provider"] == "gemini"
        assert payload["model"] == "gemini-2.5-flash"
        assert payload["useRag"] is True
        assert payload["systemPrompt"] == engine.settings.system_prompt
        assert payload["messages"] == [{"role": "user", "content": "What does the report cover?"}]

    async def test_blank_message_is_ignored(self, engine_for):
        api = ChatApi()
        engine = engine_for(api)
        state = await engine.start(engine.new_state())

        state, reply = await engine.send_message(state, "   ")

        assert reply is None
        assert state.messages == []
        assert api.posted == []

    async def test_failure_is_logged_and_not_resent(self, engine_for):
        api = ChatApi(replies=[(500, {"message": "quota exceeded"}), answer("Recovered")])
        engine = engine_for(api)
        state = await engine.start(engine.new_state())

        state, reply = await engine.send_message(state, "first")
        assert reply.role == Role.ERROR
        assert reply.content.startswith("Error: HTTP 500")

        state, reply = await engine.send_message(state, "second")

        assert reply.content == "Recovered"
        assert [m["content"] for m in api.posted[1]["messages"]] == ["first", "second"]
        assert [m.role for m in state.messages] == [Role.USER, Role.ERROR, Role.USER, Role.ASSISTANT]

    async def test_unavailable_model_falls_back_once(self, engine_for):
        api = ChatApi(replies=[
            (404, {"message": "models/gemini-x is not found"}),
            answer("Fallback answer"),
        ])
        engine = engine_for(api)
        state = await engine.start(engine.new_state())
        state.model = "gemini-x"

        state, reply = await engine.send_message(state, "hello")

        assert [p["model"] for p in api.posted] == ["gemini-x", "gemini-2.5-flash"]
        assert reply.content == "Fallback answer"
        assert state.model == "gemini-2.5-flash"

    async def test_custom_provider_not_configured(self, engine_for):
        api = ChatApi()
        engine = engine_for(api)
        state = await engine.start(engine.new_state())
        state = await engine.switch_provider(state, "custom")

        assert not engine.can_send(state)
        state, reply = await engine.send_message(state, "hello")

        assert reply.role == Role.ERROR
        assert "not configured" in reply.content
        assert api.posted == []

    async def test_custom_provider_uses_configured_model(self, engine_for):
        api = ChatApi(
            config={"customServerConfigured": True, "defaultCustomModel": "llama3"},
            replies=[answer("Local answer", model="llama3")],
        )
        engine = engine_for(api)
        state = await engine.start(engine.new_state())
        state = await engine.switch_provider(state, "custom")

        state, reply = await engine.send_message(state, "hello")

        assert api.posted[0]["provider"] == "custom"
        assert api.posted[0]["model"] == "llama3"
        assert reply.content == "Local answer"

    async def test_send_while_busy_is_ignored(self, settings, fake_backend):
        release = asyncio.Event()

        async def slow_reply(request):
            await release.wait()
            return ProxyReply(content="done")

        backend = fake_backend(replies=[slow_reply])
        engine = ChatEngine(settings, backends={"gemini": backend})
        state = engine.new_state()
        try:
            first = asyncio.create_task(engine.send_message(state, "first"))
            await asyncio.sleep(0)

            _, ignored = await engine.send_message(state, "second")
            assert ignored is None
            assert not engine.can_send(state)

            release.set()
            state, reply = await first
        finally:
            await engine.close()

        assert reply.content == "done"
        assert [m.content for m in state.messages] == ["first", "done"]
        assert len(backend.requests) == 1


class TestSessionControls:
    """Tests for provider switching and new chats."""

    async def test_new_chat_clears_log(self, engine_for):
        engine = engine_for(ChatApi(replies=[answer("Hi")]))
        state = await engine.start(engine.new_state())
        state, _ = await engine.send_message(state, "hello")

        state = engine.new_chat(state)

        assert state.messages == []
        assert state.provider == "gemini"

    async def test_switch_to_unknown_provider(self, engine_for):
        engine = engine_for(ChatApi())
        state = engine.new_state()

        with pytest.raises(ValidationError, match="Unsupported provider"):
            await engine.switch_provider(state, "anthropic")

        assert state.provider == "gemini"


class TestModelMemory:
    """Tests for model selections surviving turns and provider switches."""

    CUSTOM_CONFIG = {"customServerConfigured": True, "defaultCustomModel": "qwen2:0.5b"}

    async def test_custom_fallback_sticks_for_later_turns(self, settings, make_client, fake_backend):
        backend = fake_backend(provider="custom", models=["qwen2:0.5b", "llama3"], replies=[
            ModelUnavailable("qwen2:0.5b"),
            DirectReply(content="first", model="llama3"),
            DirectReply(content="second", model="llama3"),
        ])
        engine = ChatEngine(settings, client=make_client(ChatApi(config=self.CUSTOM_CONFIG)), backends={"custom": backend})
        try:
            state = await engine.start(engine.new_state())
            state = await engine.switch_provider(state, "custom")

            state, first = await engine.send_message(state, "hello")
            state, second = await engine.send_message(state, "again")
        finally:
            await engine.close()

        assert [r.model for r in backend.requests] == ["qwen2:0.5b", "llama3", "llama3"]
        assert (first.content, second.content) == ("first", "second")
        assert state.custom_model == "llama3"
        assert state.model == "gemini-2.5-flash"

    async def test_gemini_choice_survives_custom_round_trip(self, engine_for):
        engine = engine_for(ChatApi(config=self.CUSTOM_CONFIG))
        state = await engine.start(engine.new_state())
        state.model = "gemini-2.0-flash"

        state = await engine.switch_provider(state, "custom")
        assert state.model == "gemini-2.0-flash"
        assert state.custom_model == "qwen2:0.5b"

        state = await engine.switch_provider(state, "gemini")

        assert state.model == "gemini-2.0-flash"
        assert state.custom_model == "qwen2:0.5b"

    async def test_malformed_models_body_uses_builtin_catalog(self, engine_for):
        api = ChatApi()

        def handler(request):
            if request.url.path == "/api/chat/models":
                return httpx.Response(200, json=["models/gemini-2.5-flash"])
            return api(request)

        engine = engine_for(handler)
        state = engine.new_state()
        state.model = "gemini-x"

        state = await engine.start(state)

        assert engine.registry.catalog("gemini").offline
        assert engine.registry.error("gemini").startswith("HTTP 200")
        assert state.model == "gemini-2.5-flash"
