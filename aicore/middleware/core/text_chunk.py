from typing import AsyncIterator

from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext
from .web_search import link_citations

MIDDLEWARE_NAME = "TextChunkMiddleware"


async def text_chunk_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """Emit ``text_complete`` with the accumulated text before the response completes."""
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    upstream = result.stream

    async def chunks() -> AsyncIterator[Chunk]:
        text = ""

        def complete() -> Chunk:
            return make_chunk(ChunkType.TEXT_COMPLETE, text=link_citations(text, ctx.web_search_results))

        async for chunk in upstream:
            if chunk["type"] == ChunkType.TEXT_DELTA:
                text += chunk.get("text", "")
            elif chunk["type"] in (ChunkType.LLM_RESPONSE_COMPLETE, ChunkType.MCP_TOOL_CREATED) and text:
                yield complete()
                text = ""
            yield chunk

        if text:
            yield complete()

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
