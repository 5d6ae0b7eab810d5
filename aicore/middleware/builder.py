from typing import List, Optional, Sequence, Tuple

from .registry import DEFAULT_COMPLETIONS_MIDDLEWARES
from .types import NamedMiddleware


class CompletionsMiddlewareBuilder:
    """
    Mutable, ordered list of named middleware.

    Names are unique within a builder. ``build()`` returns an immutable
    snapshot, so later edits never affect a chain already handed out.
    """

    def __init__(self, middlewares: Optional[Sequence[NamedMiddleware]] = None):
        self._chain: List[NamedMiddleware] = []
        for mw in middlewares or ():
            self.add(mw)

    @classmethod
    def with_defaults(cls) -> "CompletionsMiddlewareBuilder":
        return cls(DEFAULT_COMPLETIONS_MIDDLEWARES)

    def _index(self, name: str) -> int:
        for i, mw in enumerate(self._chain):
            if mw.name == name:
                return i
        return -1

    def _require(self, name: str) -> int:
        index = self._index(name)
        if index == -1:
            raise KeyError(f"Middleware {name!r} is not in the chain")
        return index

    def _check_new(self, mw: NamedMiddleware) -> None:
        if self.has(mw.name):
            raise ValueError(f"Middleware {mw.name!r} is already in the chain")

    def add(self, mw: NamedMiddleware) -> "CompletionsMiddlewareBuilder":
        self._check_new(mw)
        self._chain.append(mw)
        return self

    def remove(self, name: str) -> "CompletionsMiddlewareBuilder":
        """Remove ``name`` if present; removing an absent name is a no-op."""
        index = self._index(name)
        if index != -1:
            del self._chain[index]
        return self

    def clear(self) -> "CompletionsMiddlewareBuilder":
        self._chain.clear()
        return self

    def insert_after(self, target: str, mw: NamedMiddleware) -> "CompletionsMiddlewareBuilder":
        index = self._require(target)
        self._check_new(mw)
        self._chain.insert(index + 1, mw)
        return self

    def insert_before(self, target: str, mw: NamedMiddleware) -> "CompletionsMiddlewareBuilder":
        index = self._require(target)
        self._check_new(mw)
        self._chain.insert(index, mw)
        return self

    def replace(self, name: str, mw: NamedMiddleware) -> "CompletionsMiddlewareBuilder":
        index = self._require(name)
        if mw.name != name and self.has(mw.name):
            raise ValueError(f"Middleware {mw.name!r} is already in the chain")
        self._chain[index] = mw
        return self

    def has(self, name: str) -> bool:
        return self._index(name) != -1

    def names(self) -> List[str]:
        return [mw.name for mw in self._chain]

    def build(self) -> Tuple[NamedMiddleware, ...]:
        return tuple(self._chain)

    def __len__(self) -> int:
        return len(self._chain)
