from typing import AsyncIterator

from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext

MIDDLEWARE_NAME = "ResponseTransformMiddleware"


async def response_transform_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """Convert raw SDK events into chunks with the client's transformer."""
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    raw_stream = result.stream
    transformer = ctx.api_client.get_response_chunk_transformer(params)

    async def chunks() -> AsyncIterator[Chunk]:
        yield make_chunk(ChunkType.LLM_RESPONSE_CREATED)
        async for raw in raw_stream:
            for chunk in transformer.transform(raw):
                yield chunk
        for chunk in transformer.flush():
            yield chunk

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
