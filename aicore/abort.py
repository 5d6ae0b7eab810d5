"""
Request cancellation.

An :class:`AbortController` owns an :class:`AbortSignal`; the abort-handler
middleware watches the signal while a completion streams. Interactive
requests are also registered under their ``request_id`` so other parts of
the application can stop them without holding the controller.
"""
import asyncio
from typing import Callable, Dict, List, Optional

from .errors import RequestAbortedError
from .logging import get_logger

logger = get_logger(__name__)


class AbortSignal:
    """Observable, one-shot cancellation flag."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self.aborted:
            callback()
        else:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def throw_if_aborted(self) -> None:
        if self.aborted:
            raise RequestAbortedError(self._reason)

    def _abort(self, reason: Optional[str]) -> None:
        if self.aborted:
            return
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


class AbortController:
    def __init__(self):
        self.signal = AbortSignal()

    def abort(self, reason: Optional[str] = None) -> None:
        self.signal._abort(reason)


# request id -> abort callbacks registered for it
_abort_map: Dict[str, List[Callable[[], None]]] = {}


def add_abort_controller(request_id: str, abort_fn: Callable[[], None]) -> None:
    _abort_map.setdefault(request_id, []).append(abort_fn)


def remove_abort_controller(request_id: str, abort_fn: Callable[[], None]) -> None:
    callbacks = _abort_map.get(request_id)
    if not callbacks:
        return
    if abort_fn in callbacks:
        callbacks.remove(abort_fn)
    if not callbacks:
        del _abort_map[request_id]


def abort_completion(request_id: str) -> bool:
    """
    Abort every in-flight completion registered under ``request_id``.

    Returns:
        bool: True if at least one request was found.
    """
    callbacks = _abort_map.pop(request_id, [])
    for callback in callbacks:
        callback()
    if callbacks:
        logger.info("Aborted %d completion(s) for request %s", len(callbacks), request_id)
    return bool(callbacks)


def active_request_ids() -> List[str]:
    return list(_abort_map)
