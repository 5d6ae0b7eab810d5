from typing import Dict, Any, List, Optional, Tuple

from anthropic import AsyncAnthropic

from .base import BaseApiClient, ChunkTransformer, ClientCapabilities, parse_tool_arguments
from ..logging import get_logger
from ..models import is_reasoning_model
from ..types import (
    Chunk, ChunkType, CompletionsParams, CompletionsResult, Message, MCPTool,
    RequestOptions, SdkModel, ToolUseResponse, make_chunk,
)
from ..utils import filter_empty, resolve_image_to_base64

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 4096
DEFAULT_THINKING_BUDGET = 2048


class AnthropicChunkTransformer(ChunkTransformer):
    """
    Messages API stream events (or a whole ``Message``) -> chunks.

    ``tool_use`` blocks stream their input as JSON fragments and are emitted
    when the block stops.
    """

    def __init__(self, params: CompletionsParams):
        super().__init__(params)
        self._input_tokens: Optional[int] = None
        self._output_tokens: Optional[int] = None
        self._tool_blocks: Dict[int, Dict[str, str]] = {}

    def transform(self, raw: Any) -> List[Chunk]:
        event_type = getattr(raw, "type", None)

        if event_type == "message_start":
            self._update_usage(getattr(raw.message, "usage", None))
        elif event_type == "content_block_start":
            block = raw.content_block
            if getattr(block, "type", None) == "tool_use":
                self._tool_blocks[raw.index] = {"id": block.id, "name": block.name, "json": ""}
        elif event_type == "content_block_delta":
            delta = raw.delta
            delta_type = getattr(delta, "type", None)
            if delta_type == "text_delta" and delta.text:
                return [make_chunk(ChunkType.TEXT_DELTA, text=delta.text)]
            if delta_type == "thinking_delta" and delta.thinking:
                return [make_chunk(ChunkType.THINKING_DELTA, text=delta.thinking)]
            if delta_type == "input_json_delta" and raw.index in self._tool_blocks:
                self._tool_blocks[raw.index]["json"] += delta.partial_json
        elif event_type == "content_block_stop":
            block = self._tool_blocks.pop(raw.index, None)
            if block is not None:
                return self._tool_chunk([(block["id"], block["name"], parse_tool_arguments(block["json"]))])
        elif event_type == "message_delta":
            self._update_usage(getattr(raw, "usage", None))
        elif event_type == "message":
            return self._transform_message(raw)
        return []

    def _transform_message(self, message: Any) -> List[Chunk]:
        chunks: List[Chunk] = []
        calls = []
        for block in message.content:
            block_type = getattr(block, "type", None)
            if block_type == "thinking":
                chunks.append(make_chunk(ChunkType.THINKING_DELTA, text=block.thinking))
            elif block_type == "text":
                chunks.append(make_chunk(ChunkType.TEXT_DELTA, text=block.text))
            elif block_type == "tool_use":
                calls.append((block.id, block.name, parse_tool_arguments(block.input)))
        chunks.extend(self._tool_chunk(calls))
        self._update_usage(getattr(message, "usage", None))
        return chunks

    def _tool_chunk(self, calls) -> List[Chunk]:
        responses = []
        for call_id, name, arguments in calls:
            tool = self.find_tool(name)
            if tool is not None:
                responses.append(ToolUseResponse(id=call_id, tool=tool, arguments=arguments, tool_call_id=call_id))
        return [make_chunk(ChunkType.MCP_TOOL_CREATED, tool_calls=responses)] if responses else []

    def _update_usage(self, usage: Any) -> None:
        if usage is None:
            return
        if getattr(usage, "input_tokens", None) is not None:
            self._input_tokens = usage.input_tokens
        if getattr(usage, "output_tokens", None) is not None:
            self._output_tokens = usage.output_tokens
        self.usage = BaseApiClient.normalize_usage(
            "anthropic",
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            total_tokens=None,
        )


class AnthropicAPIClient(BaseApiClient):
    """
    Client for the Anthropic (Claude) Messages API.
    """

    DEFAULT_API_HOST = "https://api.anthropic.com"

    def capabilities(self) -> ClientCapabilities:
        return ClientCapabilities(raw_stream_listener=True)

    def _create_sdk(self, api_key: str) -> Any:
        return AsyncAnthropic(
            api_key=api_key,
            base_url=self.get_base_url(),
            default_headers=self.get_headers() or None,
        )

    async def create_completions(
        self,
        params: CompletionsParams,
        options: Optional[RequestOptions] = None,
    ) -> CompletionsResult:
        """
        Send a Messages API request.

        Handles:
        - System prompt extraction (sent as separate parameter).
        - Message conversion (text/image/tool handling).
        - Extended thinking when reasoning is enabled for a reasoning model.
        """
        model = params.assistant.model
        settings = params.assistant.settings
        system_text, converted_messages = await self._convert_messages(self.build_messages(params))

        max_tokens = settings.max_tokens or DEFAULT_MAX_TOKENS
        request_kwargs: Dict[str, Any] = {
            "model": model.id,
            "messages": converted_messages,
            "max_tokens": max_tokens,
            "stream": params.stream_output,
        }

        thinking = None
        if params.enable_reasoning and is_reasoning_model(model):
            budget = min(DEFAULT_THINKING_BUDGET, max(1024, max_tokens // 2))
            thinking = {"type": "enabled", "budget_tokens": budget}

        request_kwargs.update(filter_empty({
            "system": system_text,
            # Extended thinking rejects custom sampling parameters
            "temperature": None if thinking else settings.temperature,
            "top_p": None if thinking else settings.top_p,
            "thinking": thinking,
            "tools": self._convert_tools(params.mcp_tools) if self.use_native_tools(params) else None,
        }))
        if options is not None:
            if options.timeout is not None:
                request_kwargs["timeout"] = options.timeout
            if options.headers:
                request_kwargs["extra_headers"] = options.headers

        raw_output = await self.get_sdk_instance().messages.create(**request_kwargs)
        return CompletionsResult(raw_output=raw_output)

    def get_response_chunk_transformer(self, params: CompletionsParams) -> ChunkTransformer:
        return AnthropicChunkTransformer(params)

    async def _convert_messages(
        self,
        messages: List[Message],
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        Convert messages to Claude format.

        System messages are returned separately. Tool results become
        ``tool_result`` blocks in a user message; consecutive results are
        merged because Claude expects every result for one turn together.

        Returns:
            Tuple of the system prompt (or None) and the converted messages.
        """
        system_parts = []
        converted: List[Dict[str, Any]] = []

        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")

            if role == "system":
                if isinstance(content, str):
                    system_parts.append(content)
                else:
                    system_parts.extend(p.get("text", "") for p in content if p.get("type") == "text")
                continue

            if role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.get("tool_call_id", ""),
                    "content": content if isinstance(content, str) else "",
                }
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
                continue

            if role == "assistant" and msg.get("tool_calls"):
                blocks = []
                if isinstance(content, str) and content:
                    blocks.append({"type": "text", "text": content})
                for tc in msg["tool_calls"]:
                    blocks.append({"type": "tool_use", "id": tc["id"], "name": tc["name"], "input": tc["arguments"]})
                converted.append({"role": "assistant", "content": blocks})
                continue

            if isinstance(content, str):
                converted.append({"role": role, "content": content})
                continue

            claude_content = []
            for part in content:
                if part.get("type") == "text":
                    claude_content.append({"type": "text", "text": part.get("text", "")})
                elif part.get("type") == "image_url":
                    url = part.get("image_url", {}).get("url", "")
                    b64_data, media_type = await resolve_image_to_base64(url)
                    claude_content.append({
                        "type": "image",
                        "source": {"type": "base64", "media_type": media_type, "data": b64_data},
                    })
            if claude_content:
                converted.append({"role": role, "content": claude_content})

        system_text = "\n\n".join(system_parts) if system_parts else None
        return system_text, converted

    @staticmethod
    def _convert_tools(tools: List[MCPTool]) -> List[Dict[str, Any]]:
        # Claude uses 'input_schema' instead of 'parameters'.
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema or {"type": "object", "properties": {}},
            }
            for tool in tools
        ]

    async def list_models(self) -> List[SdkModel]:
        try:
            models = await self.get_sdk_instance().models.list()
            return [SdkModel(id=m.id, owned_by="anthropic", name=getattr(m, "display_name", "") or "") for m in models.data]
        except Exception as e:
            logger.error("Failed to list Anthropic models: %s", e)
            return []

