import inspect
from typing import Any, AsyncIterator, Iterable, Optional

from ..types import Chunk, ChunkCallback


async def emit_chunk(on_chunk: Optional[ChunkCallback], chunk: Chunk) -> None:
    """Deliver ``chunk`` to a sync or async callback."""
    if on_chunk is None:
        return
    outcome = on_chunk(chunk)
    if inspect.isawaitable(outcome):
        await outcome


def is_async_iterable(obj: Any) -> bool:
    return hasattr(obj, "__aiter__")


async def iterate(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item
