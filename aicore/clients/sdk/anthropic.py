"""Anthropic adapter plugin."""
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

from anthropic import AsyncAnthropic

from .base import GenerateTextResult, LanguageModel, SdkProvider, StreamPart, StreamTextResult

DEFAULT_MAX_TOKENS = 4096


def _split_system(messages: List[Dict[str, Any]]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    system = [m["content"] for m in messages if m["role"] == "system"]
    rest = [m for m in messages if m["role"] != "system"]
    return ("\n\n".join(system) or None), rest


def _tools(tools: Optional[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    if not tools:
        return None
    return [
        {
            "name": name,
            "description": spec.get("description", ""),
            "input_schema": spec.get("parameters", {"type": "object", "properties": {}}),
        }
        for name, spec in tools.items()
    ]


class AnthropicLanguageModel(LanguageModel):
    def __init__(self, client: AsyncAnthropic, model_id: str):
        super().__init__(model_id)
        self.client = client

    def _request(self, messages, tools) -> Dict[str, Any]:
        system, rest = _split_system(messages)
        request = {"model": self.model_id, "messages": rest, "max_tokens": DEFAULT_MAX_TOKENS}
        if system:
            request["system"] = system
        anthropic_tools = _tools(tools)
        if anthropic_tools:
            request["tools"] = anthropic_tools
        return request

    async def stream_text(self, messages, tools=None) -> StreamTextResult:
        stream = await self.client.messages.create(**self._request(messages, tools), stream=True)
        return StreamTextResult(self._parts(stream))

    async def _parts(self, stream) -> AsyncIterator[StreamPart]:
        finish_reason = None
        usage: Dict[str, Any] = {}
        async for event in stream:
            if event.type == "message_start":
                usage["input_tokens"] = event.message.usage.input_tokens
            elif event.type == "content_block_delta" and getattr(event.delta, "type", None) == "text_delta":
                yield {"type": "text-delta", "text_delta": event.delta.text}
            elif event.type == "message_delta":
                finish_reason = event.delta.stop_reason
                usage["output_tokens"] = event.usage.output_tokens
        yield {"type": "finish", "finish_reason": finish_reason, "usage": usage or None}

    async def generate_text(self, messages, tools=None) -> GenerateTextResult:
        message = await self.client.messages.create(**self._request(messages, tools))
        text = "".join(b.text for b in message.content if getattr(b, "type", None) == "text")
        tool_calls = [
            {"tool_call_id": b.id, "tool_name": b.name, "args": b.input}
            for b in message.content
            if getattr(b, "type", None) == "tool_use"
        ]
        return GenerateTextResult(
            text=text,
            finish_reason=message.stop_reason,
            usage={"input_tokens": message.usage.input_tokens, "output_tokens": message.usage.output_tokens},
            tool_calls=tool_calls,
        )


class AnthropicSdkProvider(SdkProvider):
    def __init__(self, client: AsyncAnthropic):
        self.client = client

    def chat(self, model_id: str) -> LanguageModel:
        return AnthropicLanguageModel(self.client, model_id)


def create_anthropic(options: Optional[Mapping[str, Any]] = None) -> AnthropicSdkProvider:
    options = dict(options or {})
    return AnthropicSdkProvider(AsyncAnthropic(
        api_key=options.get("api_key"),
        base_url=options.get("base_url"),
        default_headers=options.get("headers"),
    ))
