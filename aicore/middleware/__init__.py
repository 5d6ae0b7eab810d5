from .builder import CompletionsMiddlewareBuilder
from .composer import apply_completions_middlewares
from .registry import DEFAULT_COMPLETIONS_MIDDLEWARES, MIDDLEWARE_REGISTRY, get_middleware
from .types import CallNext, CompletionsContext, CompletionsMethod, Middleware, NamedMiddleware

__all__ = [
    "CallNext",
    "CompletionsContext",
    "CompletionsMethod",
    "CompletionsMiddlewareBuilder",
    "DEFAULT_COMPLETIONS_MIDDLEWARES",
    "MIDDLEWARE_REGISTRY",
    "Middleware",
    "NamedMiddleware",
    "apply_completions_middlewares",
    "get_middleware",
]
