import re
from typing import Any, AsyncIterator, Dict, List

from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult
from ..types import CallNext, CompletionsContext

MIDDLEWARE_NAME = "WebSearchMiddleware"

_CITATION_RE = re.compile(r"\[(\d+)\](?!\()")


def link_citations(text: str, results: List[Dict[str, Any]]) -> str:
    """
    Rewrite ``[n]`` markers into markdown links to the n-th result (1-based).

    Markers without a matching result, and markers already followed by a
    link target, are left alone.
    """
    if not results:
        return text

    def replace(match: "re.Match[str]") -> str:
        index = int(match.group(1)) - 1
        if 0 <= index < len(results) and results[index].get("url"):
            return f"[{match.group(1)}]({results[index]['url']})"
        return match.group(0)

    return _CITATION_RE.sub(replace, text)


async def web_search_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    """
    Record web-search results on the context.

    Results usually arrive after the text they support, so citation links
    are applied when the text block completes (see the text-chunk middleware).
    """
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    upstream = result.stream

    async def chunks() -> AsyncIterator[Chunk]:
        async for chunk in upstream:
            if chunk["type"] == ChunkType.LLM_WEB_SEARCH_COMPLETE:
                ctx.web_search_results.extend(chunk.get("results") or [])
            yield chunk

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
