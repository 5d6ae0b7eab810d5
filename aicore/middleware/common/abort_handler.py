"""
Cancellation of in-flight completions.

Every step of the upstream stream is raced against the abort signal, so an
abort stops emission as soon as the event loop gets control, even while the
vendor stream is stalled.
"""
import asyncio
import contextlib
from typing import Any, AsyncIterator, Awaitable, Optional, Tuple

from ...abort import AbortController, AbortSignal, add_abort_controller, remove_abort_controller
from ...errors import RequestAbortedError
from ...logging import get_logger
from ...types import Chunk, CompletionsParams, CompletionsResult
from ..types import CallNext, CompletionsContext

logger = get_logger(__name__)

MIDDLEWARE_NAME = "AbortHandlerMiddleware"


async def _until_aborted(awaitable: Awaitable[Any], signal: AbortSignal, request_id: Optional[str]) -> Any:
    step = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({step, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()

    if signal.aborted:
        if not step.done():
            step.cancel()
            await asyncio.wait({step})
        if not step.cancelled():
            # retrieved so a failed step does not log "exception never retrieved"
            step.exception()
        raise RequestAbortedError(signal.reason, request_id)
    return step.result()


async def _next_chunk(stream: AsyncIterator[Chunk]) -> Tuple[bool, Optional[Chunk]]:
    try:
        return False, await stream.__anext__()
    except StopAsyncIteration:
        return True, None


async def abort_handler_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Bind an abort signal to the request.

    Each request gets its own controller, which follows ``options.signal``
    when the caller supplied one. Requests with a ``request_id``
    are registered so :func:`aicore.abort.abort_completion` can stop them.
    """
    controller = AbortController()
    signal = controller.signal
    options_signal = ctx.options.signal if ctx.options is not None else None

    def follow_options_signal() -> None:
        controller.abort(options_signal.reason)

    if options_signal is not None:
        options_signal.add_callback(follow_options_signal)

    abort_fn = None
    if params.request_id:
        abort_fn = controller.abort
        add_abort_controller(params.request_id, abort_fn)

    def cleanup() -> None:
        if options_signal is not None:
            options_signal.remove_callback(follow_options_signal)
        if abort_fn is not None:
            remove_abort_controller(params.request_id, abort_fn)

    try:
        signal.throw_if_aborted()
        result = await _until_aborted(call_next(ctx, params), signal, params.request_id)
    except BaseException:
        cleanup()
        raise

    if result.stream is None:
        cleanup()
        return result

    upstream = result.stream

    async def guarded() -> AsyncIterator[Chunk]:
        try:
            while True:
                finished, chunk = await _until_aborted(_next_chunk(upstream), signal, params.request_id)
                if finished:
                    break
                yield chunk
        except RequestAbortedError:
            logger.info("Completion %s aborted", params.request_id or "")
            raise
        finally:
            cleanup()
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                with contextlib.suppress(RuntimeError):
                    await aclose()

    return CompletionsResult(raw_output=result.raw_output, stream=guarded())
