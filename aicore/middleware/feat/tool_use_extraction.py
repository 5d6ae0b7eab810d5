from typing import AsyncIterator

from ...tag_extraction import TagConfig, TagExtractor
from ...tool_use import TOOL_USE_CLOSING_TAG, TOOL_USE_OPENING_TAG, parse_tool_use
from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext

MIDDLEWARE_NAME = "ToolUseExtractionMiddleware"

TOOL_USE_TAG_CONFIG = TagConfig(opening_tag=TOOL_USE_OPENING_TAG, closing_tag=TOOL_USE_CLOSING_TAG)


async def tool_use_extraction_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Pull ``<tool_use>`` blocks out of the text stream.

    Text outside the blocks passes through; every closed block is parsed
    against ``params.mcp_tools`` and emitted as ``mcp_tool_created``.
    """
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    upstream = result.stream

    async def chunks() -> AsyncIterator[Chunk]:
        extractor = TagExtractor(TOOL_USE_TAG_CONFIG)

        def handle(extracted):
            if extracted.complete:
                calls = parse_tool_use(extracted.tag_content_extracted, params.mcp_tools)
                if calls:
                    return make_chunk(ChunkType.MCP_TOOL_CREATED, tool_calls=calls)
            elif not extracted.is_tag_content and extracted.content:
                return make_chunk(ChunkType.TEXT_DELTA, text=extracted.content)
            return None

        async for chunk in upstream:
            if chunk["type"] != ChunkType.TEXT_DELTA:
                if chunk["type"] == ChunkType.LLM_RESPONSE_COMPLETE:
                    tail = extractor.finalize()
                    out = handle(tail) if tail is not None else None
                    if out is not None:
                        yield out
                yield chunk
                continue
            for extracted in extractor.process_text(chunk.get("text", "")):
                out = handle(extracted)
                if out is not None:
                    yield out

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
