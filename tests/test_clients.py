import json
from types import SimpleNamespace

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from aicore.clients import AihubmixAPIClient, AnthropicAPIClient, GeminiAPIClient, OpenAIAPIClient, OVMSClient
from aicore.clients.anthropic import AnthropicChunkTransformer
from aicore.clients.base import format_api_host, parse_tool_arguments
from aicore.clients.openai import OpenAIChunkTransformer
from aicore.types import AssistantSettings, ChunkType, MCPTool, Model, Provider, ToolUseResponse

from conftest import make_params


def openai_event(content=None, tool_calls=None, finish_reason=None, usage=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)],
        usage=usage,
    )


def tool_fragment(index, id=None, name=None, arguments=None):
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class TestOpenAIClient:

    @pytest.fixture
    def client(self):
        return OpenAIAPIClient(Provider(id="openai", type="openai", api_key="fake-key"))

    @pytest.mark.asyncio
    async def test_convert_messages_text(self, client):
        converted = await client._convert_messages([{"role": "user", "content": "hello"}])
        assert converted == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_convert_messages_tool_round(self, client):
        converted = await client._convert_messages([
            {"role": "assistant", "content": "", "tool_calls": [{"id": "c1", "name": "weather", "arguments": {"city": "Rome"}}]},
            {"role": "tool", "tool_call_id": "c1", "content": "sunny"},
        ])
        call = converted[0]["tool_calls"][0]
        assert call["type"] == "function"
        assert json.loads(call["function"]["arguments"]) == {"city": "Rome"}
        assert converted[1] == {"role": "tool", "tool_call_id": "c1", "content": "sunny"}

    @pytest.mark.asyncio
    async def test_convert_messages_keeps_data_uri(self, client):
        image = {"type": "image_url", "image_url": {"url": "data:image/png;base64,SGVsbG8=", "detail": "low"}}
        converted = await client._convert_messages([
            {"role": "user", "content": [{"type": "text", "text": "what is this"}, image]},
        ])
        assert converted[0]["content"][1] == image

    @pytest.mark.asyncio
    @patch("aicore.clients.openai.AsyncOpenAI")
    async def test_create_completions_prompt_tools(self, mock_openai_cls, client):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value="stream")
        mock_openai_cls.return_value = sdk

        params = make_params(mcp_tools=[MCPTool(name="weather", description="Weather lookup")])
        result = await client.create_completions(params)

        assert result.raw_output == "stream"
        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["stream"] is True
        assert kwargs["stream_options"] == {"include_usage": True}
        assert "tools" not in kwargs
        assert kwargs["messages"][0]["role"] == "system"
        assert "<name>weather</name>" in kwargs["messages"][0]["content"]
        assert mock_openai_cls.call_args.kwargs["base_url"] == "https://api.openai.com/v1"

    @pytest.mark.asyncio
    @patch("aicore.clients.openai.AsyncOpenAI")
    async def test_create_completions_native_tools(self, mock_openai_cls, client):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value="response")
        mock_openai_cls.return_value = sdk

        params = make_params(
            mcp_tools=[MCPTool(name="weather")],
            settings=AssistantSettings(tool_use_mode="function", temperature=0.2),
            stream_output=False,
        )
        await client.create_completions(params)

        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["tools"][0]["function"]["name"] == "weather"
        assert kwargs["temperature"] == 0.2
        assert "stream_options" not in kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]


class TestOpenAIChunkTransformer:

    def test_text_and_usage(self):
        transformer = OpenAIChunkTransformer(make_params(), "openai")
        chunks = transformer.transform(openai_event(content="Hi"))
        assert chunks == [{"type": ChunkType.TEXT_DELTA, "text": "Hi"}]

        usage = SimpleNamespace(prompt_tokens=10, completion_tokens=20, total_tokens=30)
        assert transformer.transform(SimpleNamespace(choices=[], usage=usage)) == []

        final = transformer.flush()
        assert final[-1]["type"] == ChunkType.LLM_RESPONSE_COMPLETE
        assert final[-1]["usage"]["total_tokens"] == 30

    def test_streamed_tool_call_is_assembled(self):
        transformer = OpenAIChunkTransformer(make_params(mcp_tools=[MCPTool(name="weather")]), "openai")
        assert transformer.transform(openai_event(tool_calls=[tool_fragment(0, id="call_9", name="weather", arguments='{"ci')])) == []
        assert transformer.transform(openai_event(tool_calls=[tool_fragment(0, arguments='ty": "Oslo"}')])) == []

        chunks = transformer.transform(openai_event(finish_reason="tool_calls"))
        assert len(chunks) == 1
        call = chunks[0]["tool_calls"][0]
        assert chunks[0]["type"] == ChunkType.MCP_TOOL_CREATED
        assert call.tool_call_id == "call_9"
        assert call.arguments == {"city": "Oslo"}
        # already emitted, flush only completes the response
        assert [c["type"] for c in transformer.flush()] == [ChunkType.LLM_RESPONSE_COMPLETE]

    def test_unknown_tool_is_dropped(self):
        transformer = OpenAIChunkTransformer(make_params(mcp_tools=[MCPTool(name="weather")]), "openai")
        transformer.transform(openai_event(tool_calls=[tool_fragment(0, id="c", name="rm_rf", arguments="{}")]))
        assert transformer.transform(openai_event(finish_reason="tool_calls")) == []

    def test_reasoning_content(self):
        transformer = OpenAIChunkTransformer(make_params(), "deepseek")
        delta = SimpleNamespace(content=None, tool_calls=None, reasoning_content="hmm")
        event = SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=None)], usage=None)
        assert transformer.transform(event) == [{"type": ChunkType.THINKING_DELTA, "text": "hmm"}]


class TestAnthropicClient:

    @pytest.fixture
    def client(self):
        return AnthropicAPIClient(Provider(id="anthropic", type="anthropic", api_key="fake-key"))

    @pytest.mark.asyncio
    async def test_convert_messages_split_system(self, client):
        system, converted = await client._convert_messages([
            {"role": "system", "content": "system prompt"},
            {"role": "user", "content": "user query"},
        ])
        assert system == "system prompt"
        assert converted == [{"role": "user", "content": "user query"}]

    @pytest.mark.asyncio
    async def test_tool_results_are_merged(self, client):
        _, converted = await client._convert_messages([
            {"role": "assistant", "content": "checking", "tool_calls": [
                {"id": "a", "name": "weather", "arguments": {}},
                {"id": "b", "name": "time", "arguments": {}},
            ]},
            {"role": "tool", "tool_call_id": "a", "content": "sunny"},
            {"role": "tool", "tool_call_id": "b", "content": "noon"},
        ])
        assert [b["type"] for b in converted[0]["content"]] == ["text", "tool_use", "tool_use"]
        assert len(converted) == 2
        assert [b["tool_use_id"] for b in converted[1]["content"]] == ["a", "b"]

    @pytest.mark.asyncio
    @patch("aicore.clients.anthropic.AsyncAnthropic")
    async def test_create_completions(self, mock_anthropic_cls, client):
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value="stream")
        mock_anthropic_cls.return_value = sdk

        params = make_params("claude-3-5-sonnet", "anthropic", messages=[
            {"role": "system", "content": "be terse"},
            {"role": "user", "content": "hi"},
        ])
        await client.create_completions(params)

        kwargs = sdk.messages.create.await_args.kwargs
        assert kwargs["system"] == "be terse"
        assert kwargs["max_tokens"] == 4096
        assert "thinking" not in kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]


class TestAnthropicChunkTransformer:

    def test_stream_events(self):
        transformer = AnthropicChunkTransformer(make_params(mcp_tools=[MCPTool(name="weather")]))
        events = [
            SimpleNamespace(type="message_start", message=SimpleNamespace(usage=SimpleNamespace(input_tokens=5, output_tokens=1))),
            SimpleNamespace(type="content_block_delta", index=0, delta=SimpleNamespace(type="thinking_delta", thinking="hmm")),
            SimpleNamespace(type="content_block_delta", index=1, delta=SimpleNamespace(type="text_delta", text="Hi")),
            SimpleNamespace(type="content_block_start", index=2, content_block=SimpleNamespace(type="tool_use", id="tu_1", name="weather")),
            SimpleNamespace(type="content_block_delta", index=2, delta=SimpleNamespace(type="input_json_delta", partial_json='{"city"')),
            SimpleNamespace(type="content_block_delta", index=2, delta=SimpleNamespace(type="input_json_delta", partial_json=': "Rome"}')),
            SimpleNamespace(type="content_block_stop", index=2),
            SimpleNamespace(type="message_delta", usage=SimpleNamespace(input_tokens=None, output_tokens=12)),
        ]
        chunks = [c for event in events for c in transformer.transform(event)]

        assert [c["type"] for c in chunks] == [ChunkType.THINKING_DELTA, ChunkType.TEXT_DELTA, ChunkType.MCP_TOOL_CREATED]
        call = chunks[2]["tool_calls"][0]
        assert call.arguments == {"city": "Rome"}
        assert call.tool_call_id == "tu_1"

        usage = transformer.flush()[-1]["usage"]
        assert usage["input_tokens"] == 5
        assert usage["output_tokens"] == 12
        assert usage["total_tokens"] == 17


class TestGeminiClient:

    @pytest.mark.asyncio
    async def test_convert_messages_roles(self):
        client = GeminiAPIClient(Provider(id="gemini", type="gemini", api_key="fake-key"))
        system, converted = await client._convert_messages([
            {"role": "system", "content": "sys"},
            {"role": "assistant", "content": "im helper"},
            {"role": "user", "content": "hi"},
        ])
        assert system == "sys"
        assert converted[0] == {"role": "model", "parts": [{"text": "im helper"}]}
        assert converted[1]["role"] == "user"

    @pytest.mark.asyncio
    async def test_function_response_uses_call_name(self):
        client = GeminiAPIClient(Provider(id="gemini", type="gemini", api_key="fake-key"))
        _, converted = await client._convert_messages([
            {"role": "assistant", "content": "", "tool_calls": [{"id": "g1", "name": "weather", "arguments": {"city": "Rome"}}]},
            {"role": "tool", "tool_call_id": "g1", "content": "sunny"},
        ])
        assert converted[0]["parts"] == [{"function_call": {"name": "weather", "args": {"city": "Rome"}}}]
        response = converted[1]["parts"][0]["function_response"]
        assert response == {"name": "weather", "response": {"result": "sunny"}}


class TestToolResultMessages:

    def test_native_and_prompted_results(self):
        client = OpenAIAPIClient(Provider(id="openai", type="openai", api_key="k"))
        tool = MCPTool(name="weather")
        native = ToolUseResponse(id="c1", tool=tool, arguments={"city": "Rome"}, response="sunny", tool_call_id="c1")
        prompted = ToolUseResponse(id="t1", tool=tool, arguments={}, response="rain")

        messages = client.build_tool_result_messages("checking", [native, prompted])

        assert messages[0]["role"] == "assistant"
        assert messages[0]["tool_calls"] == [{"id": "c1", "name": "weather", "arguments": {"city": "Rome"}}]
        assert messages[1] == {"role": "tool", "tool_call_id": "c1", "content": "sunny"}
        assert messages[2]["role"] == "user"
        assert "<result>rain</result>" in messages[2]["content"]


class TestHelpers:

    @pytest.mark.parametrize("host, version, expected", [
        ("https://api.deepseek.com", "v1", "https://api.deepseek.com/v1"),
        ("https://api.deepseek.com/v1", "v1", "https://api.deepseek.com/v1"),
        ("https://gateway.example/custom/", "v1", "https://gateway.example/custom/"),
        ("http://localhost:8000", "v3", "http://localhost:8000/v3"),
    ])
    def test_format_api_host(self, host, version, expected):
        assert format_api_host(host, version) == expected

    @pytest.mark.parametrize("raw, expected", [
        ('{"a": 1}', {"a": 1}),
        ({"a": 1}, {"a": 1}),
        ("", {}),
        (None, {}),
        ("not json", {"_raw": "not json"}),
        ("[1, 2]", {"value": [1, 2]}),
    ])
    def test_parse_tool_arguments(self, raw, expected):
        assert parse_tool_arguments(raw) == expected

    def test_key_rotation(self):
        client = OpenAIAPIClient(Provider(id="p", type="openai", api_key="a, b,c"))
        assert [client.get_api_key() for _ in range(4)] == ["a", "b", "c", "a"]

    def test_normalize_usage_computes_total(self):
        usage = OpenAIAPIClient.normalize_usage("openai", input_tokens=3, output_tokens=4, total_tokens=None)
        assert usage == {"input_tokens": 3, "output_tokens": 4, "total_tokens": 7, "raw": None}


class TestAihubmix:

    @pytest.fixture
    def hub(self):
        return AihubmixAPIClient(Provider(id="aihubmix", type="openai", api_key="k"))

    @pytest.mark.parametrize("model_id, key", [
        ("claude-3-5-sonnet", "claude"),
        ("gemini-2.5-flash", "gemini"),
        ("gemini-2.5-flash-nothink", "default"),
        ("gemini-embedding-001", "default"),
        ("gpt-4o", "openai"),
        ("deepseek-chat", "default"),
    ])
    def test_routing(self, hub, model_id, key):
        assert hub.get_client_for_model(Model(id=model_id, provider="aihubmix")) is hub.clients[key]

    def test_sub_clients_share_key_and_app_code(self, hub):
        gemini = hub.clients["gemini"]
        assert gemini.get_base_url().endswith("/gemini")
        assert ("APP-Code", "MLTG2087") in gemini.provider.headers
        assert all(c.get_api_key() == "k" for c in hub.clients.values())

    @pytest.mark.asyncio
    async def test_completions_are_delegated(self, hub):
        default = hub.clients["default"]
        default.create_completions = AsyncMock(return_value="ok")

        params = make_params("deepseek-chat", "aihubmix")
        assert await hub.create_completions(params) == "ok"
        default.create_completions.assert_awaited_once_with(params, None)

    def test_transformer_comes_from_the_serving_client(self, hub):
        transformer = hub.get_response_chunk_transformer(make_params("claude-3-5-sonnet", "aihubmix"))
        assert isinstance(transformer, AnthropicChunkTransformer)


class TestOVMS:

    @pytest.fixture
    def http(self):
        with patch("aicore.clients.ovms.httpx.AsyncClient") as mock_cls:
            http_client = AsyncMock()
            mock_cls.return_value.__aenter__.return_value = http_client
            yield http_client

    @pytest.mark.asyncio
    async def test_list_models_filters_available(self, http):
        response = MagicMock()
        response.json.return_value = {
            "llama": {"model_version_status": [{"state": "AVAILABLE"}]},
            "qwen": {"model_version_status": [{"state": "LOADING"}]},
            "broken": None,
        }
        http.get.return_value = response

        models = await OVMSClient(Provider(id="ovms", type="openai")).list_models()

        assert [m.id for m in models] == ["llama"]
        http.get.assert_awaited_once_with("http://localhost:8000/v1/config")

    @pytest.mark.asyncio
    async def test_list_models_unreachable(self, http):
        http.get.side_effect = httpx.ConnectError("refused")
        assert await OVMSClient(Provider(id="ovms", type="openai")).list_models() == []
