"""OpenAI-compatible adapter plugin (OpenAI, xAI)."""
import json
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from openai import AsyncOpenAI

from .base import GenerateTextResult, LanguageModel, SdkProvider, StreamPart, StreamTextResult, tools_to_openai

XAI_BASE_URL = "https://api.x.ai/v1"


class OpenAIChatLanguageModel(LanguageModel):
    def __init__(self, client: AsyncOpenAI, model_id: str):
        super().__init__(model_id)
        self.client = client

    def _request(self, messages, tools, stream: bool) -> Dict[str, Any]:
        request = {"model": self.model_id, "messages": messages, "stream": stream}
        openai_tools = tools_to_openai(tools)
        if openai_tools:
            request["tools"] = openai_tools
        if stream:
            request["stream_options"] = {"include_usage": True}
        return request

    async def stream_text(self, messages, tools=None) -> StreamTextResult:
        stream = await self.client.chat.completions.create(**self._request(messages, tools, stream=True))
        return StreamTextResult(self._parts(stream))

    async def _parts(self, stream) -> AsyncIterator[StreamPart]:
        finish_reason = None
        usage = None
        pending: Dict[int, Dict[str, str]] = {}

        async for chunk in stream:
            if getattr(chunk, "usage", None) is not None:
                usage = {
                    "input_tokens": chunk.usage.prompt_tokens,
                    "output_tokens": chunk.usage.completion_tokens,
                    "total_tokens": chunk.usage.total_tokens,
                }
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.delta.content:
                yield {"type": "text-delta", "text_delta": choice.delta.content}
            for tc in choice.delta.tool_calls or []:
                entry = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                entry["id"] = tc.id or entry["id"]
                if tc.function is not None:
                    entry["name"] = tc.function.name or entry["name"]
                    entry["arguments"] += tc.function.arguments or ""
            if choice.finish_reason:
                finish_reason = choice.finish_reason

        for entry in pending.values():
            yield {
                "type": "tool-call",
                "tool_call_id": entry["id"],
                "tool_name": entry["name"],
                "args": json.loads(entry["arguments"] or "{}"),
            }
        yield {"type": "finish", "finish_reason": finish_reason, "usage": usage}

    async def generate_text(self, messages, tools=None) -> GenerateTextResult:
        response = await self.client.chat.completions.create(**self._request(messages, tools, stream=False))
        choice = response.choices[0]
        usage = None
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        tool_calls = [
            {"tool_call_id": tc.id, "tool_name": tc.function.name, "args": json.loads(tc.function.arguments or "{}")}
            for tc in choice.message.tool_calls or []
        ]
        return GenerateTextResult(
            text=choice.message.content or "",
            finish_reason=choice.finish_reason,
            usage=usage,
            tool_calls=tool_calls,
        )


class OpenAISdkProvider(SdkProvider):
    def __init__(self, client: AsyncOpenAI):
        self.client = client

    def chat(self, model_id: str) -> LanguageModel:
        return OpenAIChatLanguageModel(self.client, model_id)


def create_openai(options: Optional[Mapping[str, Any]] = None) -> OpenAISdkProvider:
    options = dict(options or {})
    return OpenAISdkProvider(AsyncOpenAI(
        api_key=options.get("api_key"),
        base_url=options.get("base_url"),
        default_headers=options.get("headers"),
    ))


def create_xai(options: Optional[Mapping[str, Any]] = None) -> OpenAISdkProvider:
    options = dict(options or {})
    options.setdefault("base_url", XAI_BASE_URL)
    return create_openai(options)
