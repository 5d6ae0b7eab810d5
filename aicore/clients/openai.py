import json
from typing import Dict, Any, List, Optional

from openai import AsyncAzureOpenAI, AsyncOpenAI

from .base import (
    BaseApiClient, ChunkTransformer, ClientCapabilities, format_api_host, parse_tool_arguments,
)
from ..logging import get_logger
from ..models import is_reasoning_model
from ..types import (
    Chunk, ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams, Message,
    Model, RequestOptions, SdkModel, ToolUseResponse, make_chunk,
)
from ..utils import encode_image_url, filter_empty

logger = get_logger(__name__)


class OpenAIChunkTransformer(ChunkTransformer):
    """
    Chat-completions events -> chunks.

    Streamed tool calls arrive as argument fragments keyed by index; they
    are assembled and emitted as one MCP_TOOL_CREATED chunk when the choice
    finishes.
    """

    def __init__(self, params: CompletionsParams, provider_name: str):
        super().__init__(params)
        self.provider_name = provider_name
        self._tool_calls: Dict[int, Dict[str, str]] = {}

    def transform(self, raw: Any) -> List[Chunk]:
        chunks: List[Chunk] = []
        usage = getattr(raw, "usage", None)
        if usage is not None:
            self.usage = BaseApiClient.normalize_usage(
                self.provider_name,
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )

        if not getattr(raw, "choices", None):
            return chunks

        choice = raw.choices[0]
        # Non-streaming responses carry `message`, stream events carry `delta`
        message = getattr(choice, "message", None)
        delta = message if message is not None else getattr(choice, "delta", None)

        if delta is not None:
            reasoning = getattr(delta, "reasoning_content", None) or getattr(delta, "reasoning", None)
            if isinstance(reasoning, str) and reasoning:
                chunks.append(make_chunk(ChunkType.THINKING_DELTA, text=reasoning))

            content = getattr(delta, "content", None)
            if isinstance(content, list):
                content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
            if content:
                chunks.append(make_chunk(ChunkType.TEXT_DELTA, text=str(content)))

            for position, tc in enumerate(getattr(delta, "tool_calls", None) or []):
                index = getattr(tc, "index", None)
                if index is None:
                    index = position
                entry = self._tool_calls.setdefault(index, {"id": "", "name": "", "arguments": ""})
                if getattr(tc, "id", None):
                    entry["id"] = tc.id
                function = getattr(tc, "function", None)
                if function is not None:
                    if getattr(function, "name", None):
                        entry["name"] = function.name
                    if getattr(function, "arguments", None):
                        entry["arguments"] += function.arguments

        if getattr(choice, "finish_reason", None) and self._tool_calls:
            chunks.extend(self._emit_tool_calls())
        return chunks

    def flush(self) -> List[Chunk]:
        chunks = self._emit_tool_calls() if self._tool_calls else []
        return chunks + super().flush()

    def _emit_tool_calls(self) -> List[Chunk]:
        responses = []
        for index in sorted(self._tool_calls):
            entry = self._tool_calls[index]
            tool = self.find_tool(entry["name"])
            if tool is None:
                continue
            call_id = entry["id"] or f"call_{index}"
            responses.append(ToolUseResponse(
                id=call_id,
                tool=tool,
                arguments=parse_tool_arguments(entry["arguments"]),
                tool_call_id=call_id,
            ))
        self._tool_calls = {}
        if not responses:
            return []
        return [make_chunk(ChunkType.MCP_TOOL_CREATED, tool_calls=responses)]


class OpenAIAPIClient(BaseApiClient):
    """
    Client for OpenAI-compatible chat-completions APIs (OpenAI, DeepSeek,
    Azure OpenAI and every vendor without a dedicated client).
    """

    DEFAULT_API_HOST = "https://api.openai.com"

    def capabilities(self) -> ClientCapabilities:
        return ClientCapabilities(thinking_tag_extraction=True)

    def _create_sdk(self, api_key: str) -> Any:
        if self.provider.type == "azure-openai":
            return AsyncAzureOpenAI(
                api_key=api_key,
                api_version=self.provider.api_version or "2024-10-21",
                azure_endpoint=self.get_base_url(),
                default_headers=self.get_headers() or None,
            )
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
        """
        Send a chat-completions request.

        Handles:
        - Message conversion to OpenAI format.
        - Option mapping (temperature, max_tokens, etc.).
        - Native tools and reasoning effort when the model supports them.

        Returns:
            CompletionsResult: ``raw_output`` is the SDK ``AsyncStream`` when
            ``params.stream_output`` is set, the ``ChatCompletion`` otherwise.
        """
        model = params.assistant.model
        settings = params.assistant.settings
        converted_messages = await self._convert_messages(self.build_messages(params))

        request_kwargs: Dict[str, Any] = {
            "model": model.id,
            "messages": converted_messages,
            "stream": params.stream_output,
        }
        optional_params = {
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "top_p": settings.top_p,
            "stream_options": {"include_usage": True} if params.stream_output else None,
            "tools": [tool.to_openai_tool() for tool in params.mcp_tools] if self.use_native_tools(params) else None,
            "reasoning_effort": (
                settings.reasoning_effort
                if params.enable_reasoning and settings.reasoning_effort and is_reasoning_model(model)
                else None
            ),
        }
        request_kwargs.update(filter_empty(optional_params))
        if options is not None:
            if options.timeout is not None:
                request_kwargs["timeout"] = options.timeout
            if options.headers:
                request_kwargs["extra_headers"] = options.headers

        sdk = self.get_sdk_instance()
        raw_output = await sdk.chat.completions.create(**request_kwargs)
        return CompletionsResult(raw_output=raw_output)

    def get_response_chunk_transformer(self, params: CompletionsParams) -> ChunkTransformer:
        return OpenAIChunkTransformer(params, self.provider.id)

    async def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """
        Convert internal message format to OpenAI's expected format.

        Handles:
        - Tool call results (formatted as separate messages)
        - Assistant messages with tool calls (preserving tool_calls field)
        - Multimodal content (text + images)
        - Image URL handling (converts HTTP URLs to base64 if needed for stability)
        """
        converted = []
        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")

            if role == "tool":
                converted.append({
                    "role": "tool",
                    "tool_call_id": msg.get("tool_call_id", ""),
                    "content": content if isinstance(content, str) else "",
                })
                continue

            if role == "assistant" and msg.get("tool_calls"):
                converted.append({
                    "role": "assistant",
                    "content": content if isinstance(content, str) else "",
                    "tool_calls": [
                        {
                            "id": tc["id"],
                            "type": "function",
                            "function": {
                                "name": tc["name"],
                                "arguments": json.dumps(tc["arguments"]),
                            },
                        }
                        for tc in msg["tool_calls"]
                    ],
                })
                continue

            if isinstance(content, str):
                converted.append({"role": role, "content": content})
                continue

            openai_content = []
            for part in content:
                if part.get("type") == "text":
                    openai_content.append(part)
                elif part.get("type") == "image_url":
                    url = part.get("image_url", {}).get("url", "")
                    detail = part.get("image_url", {}).get("detail")

                    # Some OpenAI-compatible endpoints cannot fetch external URLs
                    if url.startswith(("http://", "https://")):
                        b64_data, mime_type = await encode_image_url(url)
                        url = f"data:{mime_type};base64,{b64_data}"

                    image_url_obj = {"url": url}
                    if detail:
                        image_url_obj["detail"] = detail
                    openai_content.append({"type": "image_url", "image_url": image_url_obj})

            converted.append({"role": role, "content": openai_content})

        return converted

    # ==========================================================================
    # Auxiliary operations
    # ==========================================================================

    async def list_models(self) -> List[SdkModel]:
        """
        Returns:
            List[SdkModel]: Models reported by the endpoint; empty if the call fails.
        """
        try:
            models = await self.get_sdk_instance().models.list()
            return [SdkModel(id=m.id, owned_by=getattr(m, "owned_by", "") or "") for m in models.data]
        except Exception as e:
            logger.error("Failed to list models for provider %s: %s", self.provider.id, e)
            return []

    async def get_embedding_dimensions(self, model: Model) -> int:
        response = await self.get_sdk_instance().embeddings.create(model=model.id, input="hi")
        return len(response.data[0].embedding)

    async def generate_image(self, params: GenerateImageParams) -> List[str]:
        """
        Returns:
            List[str]: Image URLs, or ``data:`` URIs when the API returns base64.
        """
        response = await self.get_sdk_instance().images.generate(**filter_empty({
            "model": params.model,
            "prompt": params.prompt,
            "n": params.n,
            "size": params.size,
        }))
        images = []
        for item in response.data or []:
            if getattr(item, "url", None):
                images.append(item.url)
            elif getattr(item, "b64_json", None):
                images.append(f"data:image/png;base64,{item.b64_json}")
        return images
