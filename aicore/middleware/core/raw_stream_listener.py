import logging
from typing import Any, AsyncIterator

from ...logging import get_logger
from ...types import CompletionsParams, CompletionsResult
from ..types import CallNext, CompletionsContext
from ..utils import is_async_iterable

logger = get_logger(__name__)

MIDDLEWARE_NAME = "RawStreamListenerMiddleware"


def dump_raw_event(event: Any) -> str:
    dump = getattr(event, "model_dump_json", None)
    if callable(dump):
        return dump(exclude_none=True)
    return repr(event)


async def raw_stream_listener_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """Expose raw SDK events to ``params.on_raw_chunk`` (and the debug log)."""
    result = await call_next(ctx, params)
    listener = params.on_raw_chunk
    debug = logger.isEnabledFor(logging.DEBUG)
    if not is_async_iterable(result.raw_output) or (listener is None and not debug):
        return result

    raw_stream = result.raw_output

    async def tapped() -> AsyncIterator[Any]:
        async for event in raw_stream:
            if debug:
                logger.debug("raw event from %s: %s", ctx.api_client.provider.id, dump_raw_event(event))
            if listener is not None:
                listener(event)
            yield event

    return CompletionsResult(raw_output=tapped())
