"""Pytest configuration and shared fixtures."""
import os

import httpx
import pytest

from modelchat.config import Settings
from modelchat.llm.base import ChatBackend
from modelchat.llm.models import ChatRequest
from modelchat.transport import BackendClient

BACKEND_URL = "http://backend.test"


class FakeBackend(ChatBackend):
    """Scripted chat transport.

    ``models`` is returned by list_models (or raised, if it is an exception).
    Each generate call pops the next entry of ``replies``: exceptions are
    raised, coroutine functions are awaited with the request, anything else
    is returned as-is.
    """

    def __init__(self, provider="gemini", models=None, replies=None):
        self._provider = provider
        self.models = models if models is not None else []
        self.replies = list(replies or [])
        self.requests: list[ChatRequest] = []
        self.closed = False

    @property
    def provider(self):
        return self._provider

    async def list_models(self):
        if isinstance(self.models, Exception):
            raise self.models
        return list(self.models)

    async def generate(self, request):
        self.requests.append(request)
        outcome = self.replies.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return await outcome(request)
        return outcome

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_backend():
    """Return the FakeBackend class for building scripted transports."""
    return FakeBackend


@pytest.fixture
async def make_client():
    """Build BackendClients whose requests are answered by a handler function."""
    clients = []

    def _make(handler):
        client = BackendClient(BACKEND_URL, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()


@pytest.fixture
def settings():
    """Settings pointing at the mock backend."""
    return Settings(backend_url=BACKEND_URL, gemini_model="gemini-2.5-flash")


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "gemini": os.getenv("GEMINI_API_KEY"),
    }


@pytest.fixture
def gemini_catalog():
    """Catalog as returned by the backend's model listing."""
    return ["models/gemini-2.5-flash", "models/gemini-2.0-flash"]
