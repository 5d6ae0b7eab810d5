"""Google Gemini adapter plugin (google-genai SDK)."""
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

from google import genai
from google.genai import types

from .base import GenerateTextResult, LanguageModel, SdkProvider, StreamPart, StreamTextResult


def _contents(messages: List[Dict[str, Any]]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system") or None
    contents = [
        {"role": "model" if m["role"] == "assistant" else "user", "parts": [{"text": m["content"]}]}
        for m in messages
        if m["role"] != "system"
    ]
    return system, contents


def _config(system: Optional[str], tools: Optional[Dict[str, Any]]) -> types.GenerateContentConfig:
    kwargs: Dict[str, Any] = {}
    if system:
        kwargs["system_instruction"] = system
    if tools:
        kwargs["tools"] = [types.Tool(function_declarations=[
            types.FunctionDeclaration(
                name=name,
                description=spec.get("description", ""),
                parameters=spec.get("parameters"),
            )
            for name, spec in tools.items()
        ])]
    return types.GenerateContentConfig(**kwargs)


def _usage(um: Any) -> Optional[Dict[str, Any]]:
    if um is None:
        return None
    return {
        "input_tokens": um.prompt_token_count,
        "output_tokens": um.candidates_token_count,
        "total_tokens": um.total_token_count,
    }


class GoogleLanguageModel(LanguageModel):
    def __init__(self, client: genai.Client, model_id: str):
        super().__init__(model_id)
        self.client = client

    async def stream_text(self, messages, tools=None) -> StreamTextResult:
        system, contents = _contents(messages)
        stream = await self.client.aio.models.generate_content_stream(
            model=self.model_id, contents=contents, config=_config(system, tools),
        )
        return StreamTextResult(self._parts(stream))

    async def _parts(self, stream) -> AsyncIterator[StreamPart]:
        usage = None
        finish_reason = None
        async for chunk in stream:
            if chunk.text:
                yield {"type": "text-delta", "text_delta": chunk.text}
            usage = _usage(chunk.usage_metadata) or usage
            if chunk.candidates and chunk.candidates[0].finish_reason:
                finish_reason = str(chunk.candidates[0].finish_reason)
        yield {"type": "finish", "finish_reason": finish_reason, "usage": usage}

    async def generate_text(self, messages, tools=None) -> GenerateTextResult:
        system, contents = _contents(messages)
        response = await self.client.aio.models.generate_content(
            model=self.model_id, contents=contents, config=_config(system, tools),
        )
        tool_calls = [
            {"tool_call_id": fc.id or fc.name, "tool_name": fc.name, "args": dict(fc.args or {})}
            for fc in response.function_calls or []
        ]
        return GenerateTextResult(
            text=response.text or "",
            usage=_usage(response.usage_metadata),
            tool_calls=tool_calls,
        )


class GoogleSdkProvider(SdkProvider):
    def __init__(self, client: genai.Client):
        self.client = client

    def chat(self, model_id: str) -> LanguageModel:
        return GoogleLanguageModel(self.client, model_id)


def create_google(options: Optional[Mapping[str, Any]] = None) -> GoogleSdkProvider:
    options = dict(options or {})
    http_options = None
    if options.get("base_url"):
        http_options = types.HttpOptions(base_url=options["base_url"])
    return GoogleSdkProvider(genai.Client(api_key=options.get("api_key"), http_options=http_options))
