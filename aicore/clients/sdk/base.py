"""
Shape shared by the vendor adapter plugins.

A plugin module exposes a creator function that takes an options mapping
(``api_key``, ``base_url``, ...) and returns an :class:`SdkProvider`. The
provider's ``chat(model_id)`` accessor returns a :class:`LanguageModel`
that can stream or generate text.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

# Stream parts, in order:
#   {"type": "text-delta", "text_delta": "..."}
#   {"type": "tool-call", "tool_call_id": "...", "tool_name": "...", "args": {...}}
#   {"type": "finish", "finish_reason": "...", "usage": {...}}
StreamPart = Dict[str, Any]


@dataclass
class GenerateTextResult:
    text: str
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)


class StreamTextResult:
    """
    Wraps a stream of parts.

    ``full_stream`` can be consumed once; ``text`` is filled in as
    text-delta parts pass through it.
    """

    def __init__(self, parts: AsyncIterator[StreamPart]):
        self._parts = parts
        self.text = ""
        self.finish_reason: Optional[str] = None
        self.usage: Optional[Dict[str, Any]] = None

    @property
    def full_stream(self) -> AsyncIterator[StreamPart]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamPart]:
        async for part in self._parts:
            if part["type"] == "text-delta":
                self.text += part["text_delta"]
            elif part["type"] == "finish":
                self.finish_reason = part.get("finish_reason")
                self.usage = part.get("usage")
            yield part

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._text_only()

    async def _text_only(self) -> AsyncIterator[str]:
        async for part in self.full_stream:
            if part["type"] == "text-delta":
                yield part["text_delta"]


class LanguageModel(ABC):
    def __init__(self, model_id: str):
        self.model_id = model_id

    @abstractmethod
    async def stream_text(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[Dict[str, Any]] = None,
    ) -> StreamTextResult:
        pass

    @abstractmethod
    async def generate_text(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[Dict[str, Any]] = None,
    ) -> GenerateTextResult:
        pass


class SdkProvider(ABC):
    @abstractmethod
    def chat(self, model_id: str) -> LanguageModel:
        pass


def tools_to_openai(tools: Optional[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """``{name: {"description", "parameters"}}`` -> OpenAI tool list."""
    if not tools:
        return None
    return [
        {
            "type": "function",
            "function": {
                "name": name,
                "description": spec.get("description", ""),
                "parameters": spec.get("parameters", {"type": "object", "properties": {}}),
            },
        }
        for name, spec in tools.items()
    ]
