from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from ..clients.base import BaseApiClient
from ..types import CompletionsParams, CompletionsResult, RequestOptions

CompletionsMethod = Callable[[CompletionsParams, Optional[RequestOptions]], Awaitable[CompletionsResult]]


@dataclass
class CompletionsContext:
    """
    Per-call state shared by every middleware in one chain invocation.

    Attributes:
        api_client: The concrete client whose method the chain wraps.
        original_params: Params as the caller passed them.
        options: Request options (abort signal, timeout, headers).
        tool_recursion_depth: Number of tool round trips made so far.
        web_search_results: Results recorded by the web-search middleware.
        extras: Free-form per-call state for custom middleware.
    """
    api_client: BaseApiClient
    original_params: CompletionsParams
    options: Optional[RequestOptions] = None
    tool_recursion_depth: int = 0
    web_search_results: list = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)


CallNext = Callable[[CompletionsContext, CompletionsParams], Awaitable[CompletionsResult]]
Middleware = Callable[[CompletionsContext, CompletionsParams, CallNext], Awaitable[CompletionsResult]]


@dataclass(frozen=True)
class NamedMiddleware:
    name: str
    middleware: Middleware
