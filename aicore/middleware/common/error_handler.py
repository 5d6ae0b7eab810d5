from typing import Any, Dict

from ...errors import RequestAbortedError
from ...logging import get_logger
from ...types import ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext
from ..utils import emit_chunk

logger = get_logger(__name__)

MIDDLEWARE_NAME = "ErrorHandlerMiddleware"


def serialize_error(error: BaseException) -> Dict[str, Any]:
    """Plain-data description of an exception, safe to put in a chunk."""
    payload: Dict[str, Any] = {"name": type(error).__name__, "message": str(error)}
    status = getattr(error, "status_code", None)
    if status is not None:
        payload["status"] = status
    return payload


async def error_handler_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Report failures as an ``error`` chunk.

    Aborts are re-raised untouched; they are a terminal state, not a failure.
    Other exceptions are re-raised after the chunk when ``should_throw`` is
    set, otherwise an empty result is returned.
    """
    try:
        return await call_next(ctx, params)
    except RequestAbortedError:
        raise
    except Exception as e:
        logger.error("Completion failed for %s: %s", ctx.api_client, e)
        await emit_chunk(params.on_chunk, make_chunk(ChunkType.ERROR, error=serialize_error(e)))
        if params.should_throw:
            raise
        return CompletionsResult()
