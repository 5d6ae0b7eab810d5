from typing import Any, AsyncIterator

from ...types import CompletionsParams, CompletionsResult
from ..types import CallNext, CompletionsContext
from ..utils import is_async_iterable

MIDDLEWARE_NAME = "StreamAdapterMiddleware"


async def _single(item: Any) -> AsyncIterator[Any]:
    yield item


async def _adapt(raw_stream: Any) -> AsyncIterator[Any]:
    async for event in raw_stream:
        yield event


async def stream_adapter_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Turn the SDK output into an async iterator of raw events.

    A streaming SDK result is iterated as-is; a complete (non-streaming)
    response becomes a one-element stream. At this stage ``result.stream``
    carries raw SDK events, not chunks.
    """
    result = await call_next(ctx, params)
    raw = result.raw_output
    stream = _adapt(raw) if is_async_iterable(raw) else _single(raw)
    return CompletionsResult(raw_output=raw, stream=stream)
