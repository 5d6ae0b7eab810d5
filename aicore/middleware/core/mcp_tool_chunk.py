"""
Tool execution loop.

When a response asks for tools, the calls are run through
``params.mcp_executor`` and a follow-up request carrying the results is sent
down the rest of the chain. This repeats until the model answers without
tool calls or the recursion limit is reached.
"""
import dataclasses
import json
from typing import AsyncIterator, List

from ...config import get_settings
from ...errors import ConfigurationError
from ...logging import get_logger
from ...types import Chunk, ChunkType, CompletionsParams, CompletionsResult, ToolUseResponse, make_chunk
from ..types import CallNext, CompletionsContext

logger = get_logger(__name__)

MIDDLEWARE_NAME = "McpToolChunkMiddleware"


async def execute_tool_calls(params: CompletionsParams, responses: List[ToolUseResponse]) -> None:
    """
    Run every call in ``responses`` in order, filling in ``status``/``response``.

    A failing tool is reported back to the model as an error result rather
    than ending the conversation.
    """
    if params.mcp_executor is None:
        raise ConfigurationError("The model requested tools but no mcp_executor was provided")
    for response in responses:
        response.status = "invoking"
        try:
            output = await params.mcp_executor.call_tool(response.tool.name, response.arguments)
        except Exception as e:
            logger.warning("Tool %s failed: %s", response.tool.name, e)
            response.status = "error"
            response.response = f"Error: {e}"
            continue
        response.status = "done"
        response.response = output if isinstance(output, str) else json.dumps(output, default=str)


async def mcp_tool_chunk_middleware(
    ctx: CompletionsContext,
    params: CompletionsParams,
    call_next: CallNext,
) -> CompletionsResult:
    result = await call_next(ctx, params)
    if result.stream is None:
        return result

    upstream = result.stream
    max_depth = get_settings().max_tool_recursion

    async def chunks() -> AsyncIterator[Chunk]:
        text = ""
        tool_calls: List[ToolUseResponse] = []
        held_complete = None

        async for chunk in upstream:
            chunk_type = chunk["type"]
            if chunk_type == ChunkType.TEXT_DELTA:
                text += chunk.get("text", "")
            elif chunk_type == ChunkType.MCP_TOOL_CREATED:
                tool_calls.extend(chunk.get("tool_calls") or [])
            elif chunk_type == ChunkType.LLM_RESPONSE_COMPLETE:
                held_complete = chunk
                continue
            yield chunk

        if not tool_calls or ctx.tool_recursion_depth >= max_depth:
            if tool_calls:
                logger.warning("Tool recursion limit (%d) reached, not executing %d call(s)", max_depth, len(tool_calls))
            if held_complete is not None:
                yield held_complete
            return

        # the round is not final, its usage still counts
        yield make_chunk(ChunkType.BLOCK_COMPLETE, usage=(held_complete or {}).get("usage"))

        yield make_chunk(ChunkType.MCP_TOOL_IN_PROGRESS, tool_calls=tool_calls)
        await execute_tool_calls(params, tool_calls)
        yield make_chunk(ChunkType.MCP_TOOL_COMPLETE, tool_calls=tool_calls)

        ctx.tool_recursion_depth += 1
        follow_up = dataclasses.replace(
            params,
            messages=list(params.messages) + ctx.api_client.build_tool_result_messages(text, tool_calls),
        )
        logger.debug("Tool round %d: sending %d result(s)", ctx.tool_recursion_depth, len(tool_calls))
        next_result = await mcp_tool_chunk_middleware(ctx, follow_up, call_next)
        if next_result.stream is not None:
            async for chunk in next_result.stream:
                yield chunk

    return CompletionsResult(raw_output=result.raw_output, stream=chunks())
