import pytest
from typing import Any, List, Optional

from aicore.clients.base import BaseApiClient, ChunkTransformer, ClientCapabilities
from aicore.clients.factory import ApiClientFactory
from aicore.config import reset_settings
from aicore.types import (
    Assistant, AssistantSettings, ChunkType, CompletionsParams, CompletionsResult, Model, Provider,
    RequestOptions, make_chunk,
)


@pytest.fixture
def mock_env(monkeypatch):
    """Mock environment variables for API keys."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-openai")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test-anthropic")
    monkeypatch.setenv("GOOGLE_API_KEY", "AIza-test-google")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test-deepseek")


@pytest.fixture(autouse=True)
def clean_caches():
    """Client caches and settings are process-wide; start every test fresh."""
    ApiClientFactory.clear_cache()
    reset_settings()
    yield
    ApiClientFactory.clear_cache()
    reset_settings()


@pytest.fixture
def openai_provider():
    return Provider(id="openai", type="openai", api_key="sk-test", api_host="https://api.openai.com")


def make_params(model_id: str = "gpt-4o", provider: str = "openai", **kwargs) -> CompletionsParams:
    settings = kwargs.pop("settings", AssistantSettings())
    model = kwargs.pop("model", Model(id=model_id, provider=provider))
    messages = kwargs.pop("messages", [{"role": "user", "content": "hi"}])
    return CompletionsParams(
        assistant=Assistant(id="a1", model=model, settings=settings),
        messages=messages,
        **kwargs,
    )


class ListTransformer(ChunkTransformer):
    """Raw events are strings; each one becomes a text delta."""

    def transform(self, raw: Any) -> List:
        return [make_chunk(ChunkType.TEXT_DELTA, text=raw)]


class FakeClient(BaseApiClient):
    """
    Client whose "vendor" replays a scripted list of raw events.

    ``rounds`` holds one event list per create_completions call, so tool
    loops can be scripted round by round.
    """

    DEFAULT_API_HOST = "https://fake.example"

    def __init__(self, rounds=None, capabilities=None, transformer_cls=ListTransformer, stream=True):
        super().__init__(Provider(id="fake", type="openai", api_key="k"))
        self.rounds = list(rounds or [["Hello", " world"]])
        self.calls: List[CompletionsParams] = []
        self.options: List[Optional[RequestOptions]] = []
        self._capabilities = capabilities or ClientCapabilities()
        self._transformer_cls = transformer_cls
        self._stream = stream

    def capabilities(self) -> ClientCapabilities:
        return self._capabilities

    async def create_completions(self, params, options=None) -> CompletionsResult:
        self.calls.append(params)
        self.options.append(options)
        events = self.rounds[min(len(self.calls), len(self.rounds)) - 1]
        if not self._stream:
            return CompletionsResult(raw_output="".join(e for e in events if isinstance(e, str)))

        async def raw():
            for event in events:
                yield event

        return CompletionsResult(raw_output=raw())

    def get_response_chunk_transformer(self, params) -> ChunkTransformer:
        return self._transformer_cls(params)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def collected():
    """A list plus an on_chunk callback that appends to it."""
    chunks = []
    return chunks, chunks.append
