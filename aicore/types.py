from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    Any, AsyncIterator, Awaitable, Callable, Dict, FrozenSet, List, Literal,
    Optional, Protocol, Tuple, TypedDict, Union,
)

# =============================================================================
# Provider / Model Descriptors
# =============================================================================


@dataclass(frozen=True)
class Provider:
    """
    A vendor account or endpoint configuration.

    ``type`` selects the wire format (``openai``, ``azure-openai``,
    ``openai-response``, ``anthropic``, ``gemini``); any other value is
    treated as OpenAI-compatible. ``api_key`` may hold several keys
    separated by commas, which are rotated per request.
    """
    id: str
    type: str
    api_key: str = ""
    api_host: str = ""
    name: str = ""
    api_version: str = ""
    headers: Tuple[Tuple[str, str], ...] = ()
    models: Tuple["Model", ...] = ()

    def with_host(self, api_host: str) -> "Provider":
        return replace(self, api_host=api_host)


class ModelCapability(str, Enum):
    REASONING = "reasoning"
    FUNCTION_CALLING = "function_calling"
    IMAGE_GENERATION = "image_generation"
    EMBEDDING = "embedding"
    VISION = "vision"
    WEB_SEARCH = "web_search"


@dataclass(frozen=True)
class Model:
    """
    Read-only description of one model offered by a provider.

    Explicit ``capabilities`` always win over the id-based guesses made in
    :mod:`aicore.models`.
    """
    id: str
    provider: str
    name: str = ""
    group: str = ""
    capabilities: FrozenSet[ModelCapability] = frozenset()

    def has(self, capability: ModelCapability) -> bool:
        return capability in self.capabilities


@dataclass
class AssistantSettings:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    # "function": native function calling, "prompt": tool use described in the system prompt
    tool_use_mode: Literal["function", "prompt"] = "prompt"
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None


@dataclass
class Assistant:
    id: str
    name: str = ""
    prompt: str = ""
    model: Optional[Model] = None
    settings: AssistantSettings = field(default_factory=AssistantSettings)


# =============================================================================
# Message Types
# =============================================================================

class TextContent(TypedDict, total=False):
    """
    Text content part for multimodal messages.
    """
    type: Literal["text"]
    text: str


class ImageUrlDetail(TypedDict, total=False):
    url: str
    detail: Literal["auto", "low", "high"]


class ImageContent(TypedDict, total=False):
    """
    Image content part for multimodal messages (OpenAI format).
    """
    type: Literal["image_url"]
    image_url: ImageUrlDetail


ContentPart = Union[TextContent, ImageContent]
MessageContent = Union[str, List[ContentPart]]


class FunctionDefinition(TypedDict, total=False):
    name: str
    description: str
    parameters: Dict[str, Any]


class Tool(TypedDict):
    """
    Tool definition in OpenAI format.
    """
    type: Literal["function"]
    function: FunctionDefinition


class ToolCall(TypedDict, total=False):
    """
    Tool call from an LLM response.
    """
    id: str
    name: str
    arguments: Dict[str, Any]


class Message(TypedDict, total=False):
    """
    Chat message with optional multimodal content and tool support.

    Roles:
    - "system": System prompt / instructions
    - "user": User message
    - "assistant": Model response
    - "tool": Tool execution result
    """
    role: Literal["system", "user", "assistant", "tool"]
    content: MessageContent
    tool_call_id: str
    tool_calls: List[ToolCall]


# =============================================================================
# MCP Tools
# =============================================================================

@dataclass(frozen=True)
class MCPTool:
    """A tool exposed by a connected MCP server."""
    name: str
    server_name: str = ""
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def id(self) -> str:
        return f"{self.server_name}__{self.name}" if self.server_name else self.name

    def to_openai_tool(self) -> Tool:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema or {"type": "object", "properties": {}},
            },
        }


ToolUseStatus = Literal["pending", "invoking", "done", "error"]


@dataclass
class ToolUseResponse:
    """
    One tool invocation requested by the model.

    ``tool_call_id`` is set when the call came from native function calling;
    prompt-based calls extracted from ``<tool_use>`` tags leave it empty.
    """
    id: str
    tool: MCPTool
    arguments: Dict[str, Any]
    status: ToolUseStatus = "pending"
    response: Optional[str] = None
    tool_call_id: Optional[str] = None


class ToolExecutor(Protocol):
    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        ...


# =============================================================================
# Chunks
# =============================================================================

class ChunkType(str, Enum):
    LLM_RESPONSE_CREATED = "llm_response_created"
    TEXT_DELTA = "text_delta"
    TEXT_COMPLETE = "text_complete"
    THINKING_DELTA = "thinking_delta"
    THINKING_COMPLETE = "thinking_complete"
    MCP_TOOL_CREATED = "mcp_tool_created"
    MCP_TOOL_IN_PROGRESS = "mcp_tool_in_progress"
    MCP_TOOL_COMPLETE = "mcp_tool_complete"
    LLM_WEB_SEARCH_COMPLETE = "llm_web_search_complete"
    IMAGE_CREATED = "image_created"
    IMAGE_COMPLETE = "image_complete"
    ERROR = "error"
    LLM_RESPONSE_COMPLETE = "llm_response_complete"
    BLOCK_COMPLETE = "block_complete"


# Chunks are plain dicts with a "type" discriminator, e.g.
#   {"type": ChunkType.TEXT_DELTA, "text": "Hel"}
#   {"type": ChunkType.MCP_TOOL_CREATED, "tool_calls": [ToolUseResponse, ...]}
#   {"type": ChunkType.LLM_RESPONSE_COMPLETE, "usage": {...}}
Chunk = Dict[str, Any]
ChunkCallback = Callable[[Chunk], Union[None, Awaitable[None]]]


def make_chunk(chunk_type: ChunkType, **fields: Any) -> Chunk:
    return {"type": chunk_type, **fields}


# =============================================================================
# Request / Result Envelopes
# =============================================================================

CallType = Literal["chat", "translate", "summary", "search", "generate", "check", "test"]


@dataclass
class CompletionsParams:
    """
    Everything one completion call needs.

    ``request_id`` keys the abort registry so the request can be cancelled
    with :func:`aicore.abort.abort_completion`.
    """
    assistant: Assistant
    messages: List[Message]
    on_chunk: Optional[ChunkCallback] = None
    enable_reasoning: bool = False
    enable_web_search: bool = False
    mcp_tools: List[MCPTool] = field(default_factory=list)
    mcp_executor: Optional[ToolExecutor] = None
    call_type: CallType = "chat"
    stream_output: bool = True
    request_id: Optional[str] = None
    should_throw: bool = True
    on_raw_chunk: Optional[Callable[[Any], None]] = None

    @property
    def model(self) -> Optional[Model]:
        return self.assistant.model


@dataclass
class CompletionsResult:
    """
    Normalized outcome of a completion call.

    ``raw_output`` is what the vendor SDK returned, ``stream`` the chunk
    stream built from it. Once the final consumer has drained the stream,
    ``text``/``thinking``/``usage`` hold the aggregated values.
    """
    raw_output: Any = None
    stream: Optional[AsyncIterator[Chunk]] = None
    text: str = ""
    thinking: str = ""
    usage: Optional[Dict[str, Any]] = None

    def get_text(self) -> str:
        return self.text


@dataclass
class RequestOptions:
    signal: Optional[Any] = None  # aicore.abort.AbortSignal
    timeout: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class GenerateImageParams:
    model: str
    prompt: str
    n: int = 1
    size: str = "1024x1024"
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None


@dataclass(frozen=True)
class SdkModel:
    id: str
    owned_by: str = ""
    name: str = ""
