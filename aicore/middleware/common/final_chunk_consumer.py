from typing import Any, Dict, List, Optional

from ...types import ChunkType, CompletionsParams, CompletionsResult, make_chunk
from ..types import CallNext, CompletionsContext
from ..utils import emit_chunk

MIDDLEWARE_NAME = "FinalChunkConsumerMiddleware"

_USAGE_FIELDS = ("input_tokens", "output_tokens", "total_tokens")


def accumulate_usage(total: Optional[Dict[str, Any]], usage: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Sum token counts of two usage dicts; either may be None."""
    if not usage:
        return total
    if total is None:
        return {k: usage.get(k) for k in _USAGE_FIELDS}
    merged = {}
    for k in _USAGE_FIELDS:
        a, b = total.get(k), usage.get(k)
        merged[k] = (a or 0) + (b or 0) if (a is not None or b is not None) else None
    return merged


def join_round_texts(texts: List[str]) -> str:
    """Text of each tool round, separated by a blank line."""
    if len(texts) == 1:
        return texts[0]
    return "\n\n".join(t.strip() for t in texts if t.strip())


async def final_chunk_consumer_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Drain the chunk stream into ``params.on_chunk`` and aggregate the result.

    Usage from every round of a tool loop is summed. If no upstream stage
    emitted ``llm_response_complete`` one is emitted here, so callers always
    see exactly one terminal chunk.
    """
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    texts: List[str] = []
    pending_text = ""
    thinking = ""
    usage: Optional[Dict[str, Any]] = None
    completed = False

    async for chunk in result.stream:
        chunk_type = chunk["type"]
        if chunk_type == ChunkType.TEXT_DELTA:
            pending_text += chunk.get("text", "")
        elif chunk_type == ChunkType.TEXT_COMPLETE:
            texts.append(chunk.get("text", ""))
            pending_text = ""
        elif chunk_type == ChunkType.THINKING_DELTA:
            thinking += chunk.get("text", "")
        elif chunk_type == ChunkType.BLOCK_COMPLETE:
            usage = accumulate_usage(usage, chunk.get("usage"))
        elif chunk_type == ChunkType.LLM_RESPONSE_COMPLETE:
            usage = accumulate_usage(usage, chunk.get("usage"))
            chunk = make_chunk(ChunkType.LLM_RESPONSE_COMPLETE, usage=usage)
            completed = True
        await emit_chunk(params.on_chunk, chunk)

    if pending_text:
        texts.append(pending_text)
    if not completed:
        await emit_chunk(params.on_chunk, make_chunk(ChunkType.LLM_RESPONSE_COMPLETE, usage=usage))

    return CompletionsResult(
        raw_output=result.raw_output,
        text=join_round_texts(texts),
        thinking=thinking,
        usage=usage,
    )
