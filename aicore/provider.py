"""
AiProvider: the single entry point for running completions.

Resolves the client that serves a model, assembles the middleware chain for
the request, and runs it.
"""
from typing import Dict, List, Optional

from .clients.base import BaseApiClient, format_api_host
from .clients.factory import ApiClientFactory
from .clients.universal import AiCoreRequest, SUPPORTED_ROLES
from .errors import ClientResolutionError, ConfigurationError
from .logging import get_logger
from .middleware.builder import CompletionsMiddlewareBuilder
from .middleware.common import abort_handler, final_chunk_consumer
from .middleware.composer import apply_completions_middlewares
from .middleware.core import mcp_tool_chunk, raw_stream_listener, think_chunk, web_search
from .middleware.feat import image_generation, thinking_tag_extraction, tool_use_extraction
from .middleware.registry import MIDDLEWARE_REGISTRY
from .middleware.utils import emit_chunk
from .models import is_dedicated_image_generation_model, is_enabled_tool_use, is_function_calling_model
from .types import (
    ChunkType, CompletionsParams, CompletionsResult, GenerateImageParams, Model, Provider,
    RequestOptions, SdkModel, make_chunk,
)
from .utils import get_message_text

logger = get_logger(__name__)

MAX_CLIENT_RESOLUTION_DEPTH = 3

# Model provider id -> universal adapter name
_UNIVERSAL_ADAPTERS: Dict[str, str] = {
    "openai": "openai",
    "anthropic": "anthropic",
    "gemini": "google",
    "google": "google",
    "grok": "xai",
    "xai": "xai",
}

OPENAI_WIRE_ADAPTERS = ("openai", "xai")


class AiProvider:
    """
    Facade over one configured provider.

    Example:
        >>> provider = AiProvider(Provider(id="openai", type="openai", api_key="sk-..."))
        >>> result = await provider.completions(CompletionsParams(assistant=assistant, messages=messages))
        >>> print(result.get_text())
    """

    def __init__(self, provider: Provider):
        self.provider = provider
        self.api_client: BaseApiClient = ApiClientFactory.create(provider)

    # ==========================================================================
    # Completions
    # ==========================================================================

    def resolve_client(self, model: Model) -> BaseApiClient:
        """
        Follow ``get_client_for_model`` until a client serves the model itself.

        Raises:
            ClientResolutionError: No fixed point within MAX_CLIENT_RESOLUTION_DEPTH hops.
        """
        client = self.api_client
        for _ in range(MAX_CLIENT_RESOLUTION_DEPTH):
            next_client = client.get_client_for_model(model)
            if next_client is client:
                return client
            client = next_client
        raise ClientResolutionError(
            f"Could not resolve a client for model '{model.id}' within {MAX_CLIENT_RESOLUTION_DEPTH} steps",
            model_id=model.id,
        )

    def build_middlewares(self, params: CompletionsParams, client: BaseApiClient) -> CompletionsMiddlewareBuilder:
        """Default chain, trimmed to what this request needs."""
        model = params.model
        builder = CompletionsMiddlewareBuilder.with_defaults()

        if is_dedicated_image_generation_model(model):
            builder.clear()
            builder.add(MIDDLEWARE_REGISTRY[final_chunk_consumer.MIDDLEWARE_NAME])
            builder.add(MIDDLEWARE_REGISTRY[abort_handler.MIDDLEWARE_NAME])
            builder.add(MIDDLEWARE_REGISTRY[image_generation.MIDDLEWARE_NAME])
            return builder

        capabilities = client.capabilities()
        if not params.enable_reasoning:
            builder.remove(thinking_tag_extraction.MIDDLEWARE_NAME)
            builder.remove(think_chunk.MIDDLEWARE_NAME)
        if not capabilities.thinking_tag_extraction:
            builder.remove(thinking_tag_extraction.MIDDLEWARE_NAME)
        if not capabilities.raw_stream_listener:
            builder.remove(raw_stream_listener.MIDDLEWARE_NAME)
        if not params.enable_web_search:
            builder.remove(web_search.MIDDLEWARE_NAME)
        if not params.mcp_tools:
            builder.remove(tool_use_extraction.MIDDLEWARE_NAME)
            builder.remove(mcp_tool_chunk.MIDDLEWARE_NAME)
        if is_enabled_tool_use(params.assistant) and is_function_calling_model(model):
            builder.remove(tool_use_extraction.MIDDLEWARE_NAME)
        if params.call_type != "chat":
            builder.remove(abort_handler.MIDDLEWARE_NAME)
        return builder

    async def completions(
        self,
        params: CompletionsParams,
        options: Optional[RequestOptions] = None,
    ) -> CompletionsResult:
        """
        Run a completion through the middleware chain.

        Args:
            params: Assistant, conversation and feature switches.
            options: Optional abort signal, timeout and extra headers.

        Returns:
            CompletionsResult: Aggregated text, thinking and usage.

        Raises:
            ConfigurationError: The assistant has no model.
            RequestAbortedError: The request was aborted.
        """
        model = params.model
        if model is None:
            raise ConfigurationError("Model is required")

        client = self.resolve_client(model)
        middlewares = self.build_middlewares(params, client).build()
        logger.debug(
            "Completions for %s via %s: %s",
            model.id, type(client).__name__, ", ".join(mw.name for mw in middlewares),
        )

        wrapped = apply_completions_middlewares(client, client.create_completions, middlewares)
        return await wrapped(params, options)

    async def completions_ai_sdk(self, params: CompletionsParams) -> CompletionsResult:
        """
        Run a plain text completion through a universal adapter.

        Only user/assistant/system text is forwarded; tools, images and
        reasoning are not supported on this path.
        """
        model = params.model
        if model is None:
            raise ConfigurationError("Assistant model configuration is missing.")

        messages = []
        for message in params.messages:
            if message.get("role") not in SUPPORTED_ROLES:
                continue
            content = get_message_text(message)
            if content:
                messages.append({"role": message["role"], "content": content})
        if not messages:
            raise ValueError("Could not extract any valid content from messages.")

        adapter = _UNIVERSAL_ADAPTERS.get(model.provider) or _UNIVERSAL_ADAPTERS.get(self.provider.type, model.provider)
        client = await ApiClientFactory.create_ai_sdk_client(adapter, self._ai_sdk_options(adapter))
        stream_result = await client.stream(AiCoreRequest(model_id=model.id, messages=messages))

        text = ""
        async for part in stream_result.full_stream:
            if part["type"] == "text-delta":
                text += part["text_delta"]
                await emit_chunk(params.on_chunk, make_chunk(ChunkType.TEXT_DELTA, text=part["text_delta"]))

        return CompletionsResult(raw_output=stream_result, text=text, usage=stream_result.usage)

    def _ai_sdk_options(self, adapter: str) -> Dict[str, str]:
        options = {"api_key": self.api_client.get_api_key()}
        # custom hosts only apply to OpenAI-wire adapters
        if self.provider.api_host and adapter in OPENAI_WIRE_ADAPTERS:
            options["base_url"] = format_api_host(self.api_client.get_base_url())
        return options

    # ==========================================================================
    # Auxiliary operations
    # ==========================================================================

    async def models(self) -> List[SdkModel]:
        return await self.api_client.list_models()

    async def get_embedding_dimensions(self, model: Model) -> int:
        """Embedding vector size for ``model``, or 0 when it cannot be determined."""
        try:
            return await self.api_client.get_embedding_dimensions(model)
        except Exception as e:
            logger.error("Error getting embedding dimensions for %s: %s", model.id, e)
            return 0

    async def generate_image(self, params: GenerateImageParams) -> List[str]:
        return await self.api_client.generate_image(params)

    def get_base_url(self) -> str:
        return self.api_client.get_base_url()

    def get_api_key(self) -> str:
        return self.api_client.get_api_key()
