import time
from typing import AsyncIterator

from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext

MIDDLEWARE_NAME = "ThinkChunkMiddleware"


async def think_chunk_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Close native reasoning blocks.

    Thinking deltas get the elapsed time attached; when the first
    non-thinking chunk arrives (or the stream ends) a ``thinking_complete``
    chunk with the whole reasoning text is emitted.
    """
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    upstream = result.stream

    async def chunks() -> AsyncIterator[Chunk]:
        thinking = ""
        started = None

        def complete() -> Chunk:
            return make_chunk(
                ChunkType.THINKING_COMPLETE,
                text=thinking,
                thinking_millsec=int((time.monotonic() - started) * 1000),
            )

        async for chunk in upstream:
            if chunk["type"] == ChunkType.THINKING_DELTA:
                if started is None:
                    started = time.monotonic()
                thinking += chunk.get("text", "")
                yield {**chunk, "thinking_millsec": int((time.monotonic() - started) * 1000)}
                continue
            if thinking:
                yield complete()
                thinking = ""
                started = None
            yield chunk

        if thinking:
            yield complete()

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
