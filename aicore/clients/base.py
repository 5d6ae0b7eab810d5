import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from ..logging import get_logger
from ..models import is_enabled_tool_use, is_function_calling_model
from ..tool_use import build_tool_use_system_prompt, format_tool_use_result
from ..types import (
    Chunk, ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams, MCPTool,
    Message, Model, Provider, RequestOptions, SdkModel, ToolUseResponse, make_chunk,
)
from ..utils import create_assistant_message_with_tool_calls, create_message, create_tool_result

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClientCapabilities:
    """
    Optional behaviours a concrete client supports.

    The orchestrator reads these flags when it decides which middleware a
    request needs.

    Attributes:
        thinking_tag_extraction: Reasoning arrives inline as ``<think>`` tags in the text.
        raw_stream_listener: Raw SDK events are worth exposing to listeners.
        native_tool_calls: The wire format carries structured tool calls.
    """
    thinking_tag_extraction: bool = False
    raw_stream_listener: bool = False
    native_tool_calls: bool = True


class ChunkTransformer(ABC):
    """
    Stateful converter from raw SDK output to chunks for one request.

    ``transform`` is called for every raw stream event (or once with the
    whole response for non-streaming calls); ``flush`` once at the end.
    """

    def __init__(self, params: CompletionsParams):
        self.params = params
        self.usage: Optional[Dict[str, Any]] = None

    @abstractmethod
    def transform(self, raw: Any) -> List[Chunk]:
        pass

    def flush(self) -> List[Chunk]:
        return [make_chunk(ChunkType.LLM_RESPONSE_COMPLETE, usage=self.usage)]

    def find_tool(self, name: str) -> Optional[MCPTool]:
        for tool in self.params.mcp_tools:
            if tool.name == name or tool.id == name:
                return tool
        logger.warning("Model called tool %r which was not offered", name)
        return None


class BaseApiClient(ABC):
    """
    Abstract base class for capability clients.

    One subclass exists per provider family. Construction validates the
    provider and never touches the network; vendor SDK instances are
    created on first use.
    """

    DEFAULT_API_HOST: str = ""

    def __init__(self, provider: Provider):
        if not provider.id:
            raise ConfigurationError("Provider id is required")
        if not provider.type:
            raise ConfigurationError(f"Provider '{provider.id}' has no type")
        if not (provider.api_host or self.DEFAULT_API_HOST):
            raise ConfigurationError(f"Provider '{provider.id}' has no API host configured")
        self.provider = provider
        self._key_index = 0
        self._sdk_instances: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider.id!r})"

    # ==========================================================================
    # Introspection
    # ==========================================================================

    @property
    def api_key(self) -> str:
        return self.provider.api_key

    def get_base_url(self) -> str:
        return self.provider.api_host or self.DEFAULT_API_HOST

    def get_api_key(self) -> str:
        """
        Return the API key for the next request.

        A comma separated key list is rotated round-robin so load is spread
        across keys.
        """
        keys = [k.strip() for k in self.provider.api_key.split(",") if k.strip()]
        if not keys:
            return ""
        if len(keys) == 1:
            return keys[0]
        key = keys[self._key_index % len(keys)]
        self._key_index += 1
        return key

    def get_headers(self) -> Dict[str, str]:
        return dict(self.provider.headers)

    def capabilities(self) -> ClientCapabilities:
        return ClientCapabilities()

    def get_client_for_model(self, model: Model) -> "BaseApiClient":
        """Return the client that should serve ``model``. Concrete clients serve every model."""
        return self

    def get_sdk_instance(self) -> Any:
        api_key = self.get_api_key()
        sdk = self._sdk_instances.get(api_key)
        if sdk is None:
            sdk = self._create_sdk(api_key)
            self._sdk_instances[api_key] = sdk
        return sdk

    def _create_sdk(self, api_key: str) -> Any:
        raise NotImplementedError(f"{type(self).__name__} has no SDK")

    # ==========================================================================
    # Completions
    # ==========================================================================

    @abstractmethod
    async def create_completions(
        self,
        params: CompletionsParams,
        options: Optional[RequestOptions] = None,
    ) -> CompletionsResult:
        """
        Call the vendor API.

        Returns:
            CompletionsResult: ``raw_output`` holds the SDK stream (async
            iterator of events) or the SDK response object.
        """
        pass

    @abstractmethod
    def get_response_chunk_transformer(self, params: CompletionsParams) -> ChunkTransformer:
        pass

    def use_native_tools(self, params: CompletionsParams) -> bool:
        model = params.assistant.model
        return bool(
            params.mcp_tools
            and model is not None
            and self.capabilities().native_tool_calls
            and is_enabled_tool_use(params.assistant)
            and is_function_calling_model(model)
        )

    def build_system_prompt(self, params: CompletionsParams) -> str:
        """Assistant prompt, extended with tool instructions when tools go through the prompt."""
        prompt = params.assistant.prompt or ""
        if params.mcp_tools and not self.use_native_tools(params):
            return build_tool_use_system_prompt(prompt, params.mcp_tools)
        return prompt

    def build_messages(self, params: CompletionsParams) -> List[Message]:
        """Conversation with the system prompt prepended (if any)."""
        system_prompt = self.build_system_prompt(params)
        messages = [m for m in params.messages if m.get("role") != "system" or not system_prompt]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        return messages

    def build_tool_result_messages(
        self,
        assistant_text: str,
        responses: List[ToolUseResponse],
    ) -> List[Message]:
        """
        Messages that carry tool results into the follow-up request.

        Native calls use the assistant ``tool_calls`` + ``tool`` message pair;
        prompt-based calls go back as ``<tool_use_result>`` text.
        """
        native = [r for r in responses if r.tool_call_id]
        prompted = [r for r in responses if not r.tool_call_id]
        messages: List[Message] = []

        if native:
            messages.append(create_assistant_message_with_tool_calls(
                assistant_text,
                [{"id": r.tool_call_id, "name": r.tool.name, "arguments": r.arguments} for r in native],
            ))
            for r in native:
                messages.append(create_tool_result(r.tool_call_id, r.response or ""))
        elif assistant_text:
            messages.append(create_message("assistant", assistant_text))

        if prompted:
            messages.append(create_message("user", "\n".join(format_tool_use_result(r) for r in prompted)))
        return messages

    # ==========================================================================
    # Auxiliary operations
    # ==========================================================================

    async def list_models(self) -> List[SdkModel]:
        return []

    async def get_embedding_dimensions(self, model: Model) -> int:
        return 0

    async def generate_image(self, params: GenerateImageParams) -> List[str]:
        return []

    @staticmethod
    def normalize_usage(
        provider: str,
        *,
        input_tokens: Optional[int],
        output_tokens: Optional[int],
        total_tokens: Optional[int],
        raw: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Normalize token usage information across providers, computing the
        total when the vendor leaves it out.
        """
        if total_tokens is None and input_tokens is not None and output_tokens is not None:
            total_tokens = input_tokens + output_tokens

        return {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total_tokens,
            "raw": {
                "provider": provider,
                **(raw or {}),
            } if raw is not None else None,
        }


def parse_tool_arguments(raw_arguments: Any) -> Dict[str, Any]:
    """Tool arguments arrive as a JSON string or an already-parsed mapping."""
    if isinstance(raw_arguments, dict):
        return raw_arguments
    if not raw_arguments:
        return {}
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError:
        return {"_raw": raw_arguments}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def format_api_host(host: str, api_version: str = "v1") -> str:
    """
    Append the API version to a host unless the user pinned the exact URL
    with a trailing slash.
    """
    if host.endswith("/"):
        return host
    if host.rstrip("/").endswith(f"/{api_version}"):
        return host
    return f"{host}/{api_version}"
