"""
aicore - one completions pipeline over many LLM providers.

Usage:
    from aicore import AiProvider, Assistant, CompletionsParams, Model, Provider

    provider = AiProvider(Provider(id="openai", type="openai", api_key="sk-...", api_host="https://api.openai.com"))
    assistant = Assistant(id="default", model=Model(id="gpt-4o", provider="openai"))
    result = await provider.completions(CompletionsParams(assistant=assistant, messages=[...]))
"""
from .abort import AbortController, AbortSignal, abort_completion
from .clients import ApiClientFactory, ProviderConfig, register_provider
from .config import Settings, get_settings, load_providers_from_env
from .errors import (
    AiCoreError, ClientResolutionError, ConfigurationError, ProviderNotRegisteredError, RequestAbortedError,
)
from .logging import configure_logging, get_logger
from .provider import AiProvider
from .types import (
    Assistant, AssistantSettings, Chunk, ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams,
    MCPTool, Model, ModelCapability, Provider, RequestOptions, SdkModel, ToolUseResponse,
)

__all__ = [
    "AbortController",
    "AbortSignal",
    "AiCoreError",
    "AiProvider",
    "ApiClientFactory",
    "Assistant",
    "AssistantSettings",
    "Chunk",
    "ChunkType",
    "ClientResolutionError",
    "CompletionsParams",
    "CompletionsResult",
    "ConfigurationError",
    "GenerateImageParams",
    "MCPTool",
    "Model",
    "ModelCapability",
    "Provider",
    "ProviderConfig",
    "ProviderNotRegisteredError",
    "RequestAbortedError",
    "RequestOptions",
    "SdkModel",
    "Settings",
    "ToolUseResponse",
    "abort_completion",
    "configure_logging",
    "get_logger",
    "get_settings",
    "load_providers_from_env",
    "register_provider",
]
