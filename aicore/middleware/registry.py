"""
Every known completions middleware, by name, plus the default chain order
(outermost first).
"""
from typing import Dict, Tuple

from .common import abort_handler, error_handler, final_chunk_consumer
from .core import (
    mcp_tool_chunk, raw_stream_listener, response_transform, stream_adapter, text_chunk, think_chunk, web_search,
)
from .feat import image_generation, thinking_tag_extraction, tool_use_extraction
from .types import NamedMiddleware

ErrorHandlerMiddleware = NamedMiddleware(error_handler.MIDDLEWARE_NAME, error_handler.error_handler_middleware)
FinalChunkConsumerMiddleware = NamedMiddleware(
    final_chunk_consumer.MIDDLEWARE_NAME, final_chunk_consumer.final_chunk_consumer_middleware,
)
AbortHandlerMiddleware = NamedMiddleware(abort_handler.MIDDLEWARE_NAME, abort_handler.abort_handler_middleware)
McpToolChunkMiddleware = NamedMiddleware(mcp_tool_chunk.MIDDLEWARE_NAME, mcp_tool_chunk.mcp_tool_chunk_middleware)
TextChunkMiddleware = NamedMiddleware(text_chunk.MIDDLEWARE_NAME, text_chunk.text_chunk_middleware)
WebSearchMiddleware = NamedMiddleware(web_search.MIDDLEWARE_NAME, web_search.web_search_middleware)
ToolUseExtractionMiddleware = NamedMiddleware(
    tool_use_extraction.MIDDLEWARE_NAME, tool_use_extraction.tool_use_extraction_middleware,
)
ThinkingTagExtractionMiddleware = NamedMiddleware(
    thinking_tag_extraction.MIDDLEWARE_NAME, thinking_tag_extraction.thinking_tag_extraction_middleware,
)
ThinkChunkMiddleware = NamedMiddleware(think_chunk.MIDDLEWARE_NAME, think_chunk.think_chunk_middleware)
ResponseTransformMiddleware = NamedMiddleware(
    response_transform.MIDDLEWARE_NAME, response_transform.response_transform_middleware,
)
StreamAdapterMiddleware = NamedMiddleware(stream_adapter.MIDDLEWARE_NAME, stream_adapter.stream_adapter_middleware)
RawStreamListenerMiddleware = NamedMiddleware(
    raw_stream_listener.MIDDLEWARE_NAME, raw_stream_listener.raw_stream_listener_middleware,
)
ImageGenerationMiddleware = NamedMiddleware(
    image_generation.MIDDLEWARE_NAME, image_generation.image_generation_middleware,
)

DEFAULT_COMPLETIONS_MIDDLEWARES: Tuple[NamedMiddleware, ...] = (
    ErrorHandlerMiddleware,
    FinalChunkConsumerMiddleware,
    AbortHandlerMiddleware,
    McpToolChunkMiddleware,
    TextChunkMiddleware,
    WebSearchMiddleware,
    ToolUseExtractionMiddleware,
    ThinkingTagExtractionMiddleware,
    ThinkChunkMiddleware,
    ResponseTransformMiddleware,
    StreamAdapterMiddleware,
    RawStreamListenerMiddleware,
)

MIDDLEWARE_REGISTRY: Dict[str, NamedMiddleware] = {
    mw.name: mw for mw in DEFAULT_COMPLETIONS_MIDDLEWARES + (ImageGenerationMiddleware,)
}


def get_middleware(name: str) -> NamedMiddleware:
    try:
        return MIDDLEWARE_REGISTRY[name]
    except KeyError:
        raise KeyError(f"Unknown middleware {name!r}") from None
