import json
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .base import BaseApiClient, ChunkTransformer, format_api_host, parse_tool_arguments
from .openai import OpenAIAPIClient
from ..logging import get_logger
from ..models import is_openai_llm_model, is_reasoning_model
from ..types import (
    Chunk, ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams, Message,
    Model, RequestOptions, SdkModel, ToolUseResponse, make_chunk,
)
from ..utils import filter_empty, resolve_image_to_base64

logger = get_logger(__name__)


class ResponseChunkTransformer(ChunkTransformer):
    """Responses API events (or a whole ``Response``) -> chunks."""

    def __init__(self, params: CompletionsParams, provider_name: str):
        super().__init__(params)
        self.provider_name = provider_name
        self._citations: List[Dict[str, str]] = []

    def transform(self, raw: Any) -> List[Chunk]:
        event_type = getattr(raw, "type", None)

        if event_type == "response.output_text.delta":
            return [make_chunk(ChunkType.TEXT_DELTA, text=raw.delta)] if raw.delta else []
        if event_type == "response.reasoning_summary_text.delta":
            return [make_chunk(ChunkType.THINKING_DELTA, text=raw.delta)] if raw.delta else []
        if event_type == "response.output_item.done":
            return self._tool_call_chunks([raw.item])
        if event_type == "response.completed":
            self._record_response(raw.response)
            return []
        if event_type is None and hasattr(raw, "output"):
            return self._transform_response(raw)
        return []

    def flush(self) -> List[Chunk]:
        chunks: List[Chunk] = []
        if self._citations:
            chunks.append(make_chunk(ChunkType.LLM_WEB_SEARCH_COMPLETE, results=self._citations, source="openai"))
        return chunks + super().flush()

    def _transform_response(self, response: Any) -> List[Chunk]:
        chunks: List[Chunk] = []
        for item in response.output or []:
            if getattr(item, "type", None) == "reasoning":
                text = "".join(s.text for s in getattr(item, "summary", None) or [])
                if text:
                    chunks.append(make_chunk(ChunkType.THINKING_DELTA, text=text))
        text = getattr(response, "output_text", "") or ""
        if text:
            chunks.append(make_chunk(ChunkType.TEXT_DELTA, text=text))
        chunks.extend(self._tool_call_chunks(response.output or []))
        self._record_response(response)
        return chunks

    def _tool_call_chunks(self, items: List[Any]) -> List[Chunk]:
        responses = []
        for item in items:
            if getattr(item, "type", None) != "function_call":
                continue
            tool = self.find_tool(item.name)
            if tool is None:
                continue
            responses.append(ToolUseResponse(
                id=item.call_id,
                tool=tool,
                arguments=parse_tool_arguments(item.arguments),
                tool_call_id=item.call_id,
            ))
        return [make_chunk(ChunkType.MCP_TOOL_CREATED, tool_calls=responses)] if responses else []

    def _record_response(self, response: Any) -> None:
        usage = getattr(response, "usage", None)
        if usage is not None:
            self.usage = BaseApiClient.normalize_usage(
                self.provider_name,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                total_tokens=usage.total_tokens,
            )
        for item in getattr(response, "output", None) or []:
            for content in getattr(item, "content", None) or []:
                for annotation in getattr(content, "annotations", None) or []:
                    if getattr(annotation, "type", None) == "url_citation":
                        self._citations.append({"title": annotation.title, "url": annotation.url})


class OpenAIResponseAPIClient(BaseApiClient):
    """
    Client for OpenAI's Responses API.

    Only OpenAI's own LLMs speak this wire format, so the client selects a
    variant per model: OpenAI LLMs are served here, everything else (image
    models, third-party models behind the same endpoint) by an embedded
    chat-completions client.
    """

    DEFAULT_API_HOST = "https://api.openai.com"

    def __init__(self, provider):
        super().__init__(provider)
        self._chat_client: Optional[OpenAIAPIClient] = None

    @property
    def chat_client(self) -> OpenAIAPIClient:
        if self._chat_client is None:
            self._chat_client = OpenAIAPIClient(self.provider)
        return self._chat_client

    def get_client_for_model(self, model: Model) -> BaseApiClient:
        if is_openai_llm_model(model):
            return self
        return self.chat_client

    def _create_sdk(self, api_key: str) -> Any:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=format_api_host(self.get_base_url()),
            default_headers=self.get_headers() or None,
        )

    async def create_completions(
        self,
        params: CompletionsParams,
        options: Optional[RequestOptions] = None,
    ) -> CompletionsResult:
        model = params.assistant.model
        settings = params.assistant.settings
        instructions, input_items = await self._convert_messages(self.build_messages(params))

        tools: List[Dict[str, Any]] = []
        if self.use_native_tools(params):
            tools.extend(
                {
                    "type": "function",
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema or {"type": "object", "properties": {}},
                }
                for tool in params.mcp_tools
            )
        if params.enable_web_search:
            tools.append({"type": "web_search_preview"})

        reasoning = None
        if params.enable_reasoning and is_reasoning_model(model):
            reasoning = filter_empty({"effort": settings.reasoning_effort, "summary": "auto"})

        request_kwargs = {
            "model": model.id,
            "input": input_items,
            "stream": params.stream_output,
        }
        request_kwargs.update(filter_empty({
            "instructions": instructions,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "max_output_tokens": settings.max_tokens,
            "tools": tools or None,
            "reasoning": reasoning,
        }))
        if options is not None:
            if options.timeout is not None:
                request_kwargs["timeout"] = options.timeout
            if options.headers:
                request_kwargs["extra_headers"] = options.headers

        raw_output = await self.get_sdk_instance().responses.create(**request_kwargs)
        return CompletionsResult(raw_output=raw_output)

    def get_response_chunk_transformer(self, params: CompletionsParams) -> ChunkTransformer:
        return ResponseChunkTransformer(params, self.provider.id)

    async def _convert_messages(self, messages: List[Message]):
        """
        Convert messages to Responses API input items.

        System messages become ``instructions``; tool calls and results become
        ``function_call`` / ``function_call_output`` items.
        """
        instructions = []
        items: List[Dict[str, Any]] = []

        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")

            if role == "system":
                instructions.append(content if isinstance(content, str) else "".join(
                    p.get("text", "") for p in content if p.get("type") == "text"
                ))
                continue

            if role == "tool":
                items.append({
                    "type": "function_call_output",
                    "call_id": msg.get("tool_call_id", ""),
                    "output": content if isinstance(content, str) else "",
                })
                continue

            if isinstance(content, str):
                if content:
                    items.append({"role": role, "content": content})
            else:
                parts = []
                for part in content:
                    if part.get("type") == "text":
                        kind = "output_text" if role == "assistant" else "input_text"
                        parts.append({"type": kind, "text": part.get("text", "")})
                    elif part.get("type") == "image_url":
                        b64_data, mime_type = await resolve_image_to_base64(part.get("image_url", {}).get("url", ""))
                        parts.append({"type": "input_image", "image_url": f"data:{mime_type};base64,{b64_data}"})
                items.append({"role": role, "content": parts})

            for tc in msg.get("tool_calls", []) if role == "assistant" else []:
                items.append({
                    "type": "function_call",
                    "call_id": tc["id"],
                    "name": tc["name"],
                    "arguments": json.dumps(tc["arguments"]),
                })

        return ("\n\n".join(instructions) or None), items

    async def list_models(self) -> List[SdkModel]:
        return await self.chat_client.list_models()

    async def get_embedding_dimensions(self, model: Model) -> int:
        return await self.chat_client.get_embedding_dimensions(model)

    async def generate_image(self, params: GenerateImageParams) -> List[str]:
        return await self.chat_client.generate_image(params)
