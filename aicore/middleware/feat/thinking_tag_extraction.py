import time
from typing import AsyncIterator, List

from ...tag_extraction import TagConfig, TagExtractionResult, TagExtractor
from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext

MIDDLEWARE_NAME = "ThinkingTagExtractionMiddleware"

THINK_TAG_CONFIG = TagConfig(opening_tag="<think>", closing_tag="</think>", separator="\n")


async def thinking_tag_extraction_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Split inline ``<think>...</think>`` reasoning out of the text stream.

    Used for OpenAI-compatible vendors (DeepSeek, Qwen, local servers) that
    put reasoning in the content instead of a separate field.
    """
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    upstream = result.stream

    async def chunks() -> AsyncIterator[Chunk]:
        extractor = TagExtractor(THINK_TAG_CONFIG)
        started = None

        def convert(extracted: List[TagExtractionResult]) -> List[Chunk]:
            nonlocal started
            out = []
            for item in extracted:
                if item.complete:
                    elapsed = int((time.monotonic() - started) * 1000) if started is not None else 0
                    out.append(make_chunk(
                        ChunkType.THINKING_COMPLETE,
                        text=item.tag_content_extracted,
                        thinking_millsec=elapsed,
                    ))
                    started = None
                elif item.is_tag_content:
                    if started is None:
                        started = time.monotonic()
                    out.append(make_chunk(ChunkType.THINKING_DELTA, text=item.content))
                elif item.content:
                    out.append(make_chunk(ChunkType.TEXT_DELTA, text=item.content))
            return out

        async for chunk in upstream:
            if chunk["type"] == ChunkType.TEXT_DELTA:
                for converted in convert(extractor.process_text(chunk.get("text", ""))):
                    yield converted
                continue
            if chunk["type"] == ChunkType.LLM_RESPONSE_COMPLETE:
                tail = extractor.finalize()
                if tail is not None:
                    for converted in convert([tail]):
                        yield converted
            yield chunk

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
