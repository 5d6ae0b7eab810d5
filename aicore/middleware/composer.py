"""
Onion-style composition of completions middleware.

For a chain ``[A, B]`` a call runs A's pre-work, B's pre-work, the original
method, B's post-work, then A's post-work.
"""
import functools
from typing import Optional, Sequence

from ..clients.base import BaseApiClient
from ..types import CompletionsParams, CompletionsResult, RequestOptions
from .types import CompletionsContext, CompletionsMethod, NamedMiddleware


def apply_completions_middlewares(
    api_client: BaseApiClient,
    original_method: CompletionsMethod,
    middlewares: Sequence[NamedMiddleware],
) -> CompletionsMethod:
    """
    Wrap ``original_method`` in ``middlewares`` (outermost first).

    An empty chain returns ``original_method`` itself, so the call behaves
    exactly like the raw client method.
    """
    if not middlewares:
        return original_method

    chain = tuple(middlewares)

    async def dispatch(index: int, ctx: CompletionsContext, params: CompletionsParams) -> CompletionsResult:
        if index == len(chain):
            return await original_method(params, ctx.options)
        return await chain[index].middleware(ctx, params, functools.partial(dispatch, index + 1))

    async def enhanced(params: CompletionsParams, options: Optional[RequestOptions] = None) -> CompletionsResult:
        ctx = CompletionsContext(api_client=api_client, original_params=params, options=options)
        return await dispatch(0, ctx, params)

    return enhanced
