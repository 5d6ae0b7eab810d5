"""
Universal adapter client.

Wraps one vendor adapter plugin (see ``aicore.clients.registry``) behind a
uniform ``stream`` / ``generate`` surface. The plugin module is imported on
first use.
"""
import asyncio
import importlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ConfigurationError, ProviderNotRegisteredError
from ..logging import get_logger
from .registry import PROVIDER_REGISTRY, ProviderRegistry
from .sdk.base import GenerateTextResult, LanguageModel, StreamTextResult

logger = get_logger(__name__)

SUPPORTED_ROLES = ("user", "assistant", "system")


def filter_roles(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop messages whose role the universal adapters do not understand (e.g. ``tool``)."""
    return [m for m in messages if m.get("role") in SUPPORTED_ROLES]


@dataclass
class AiCoreRequest:
    """
    Standardized request handed to a universal adapter.

    Attributes:
        model_id: Model identifier as the vendor knows it.
        messages: ``{"role", "content"}`` dicts; unsupported roles are dropped.
        tools: Optional ``{name: {"description", "parameters"}}`` mapping.
    """
    model_id: str
    messages: List[Dict[str, Any]]
    tools: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.messages = filter_roles(self.messages)


class UniversalAiSdkClient:
    def __init__(
        self,
        provider_name: str,
        options: Optional[Mapping[str, Any]] = None,
        registry: Optional[ProviderRegistry] = None,
    ):
        self.provider_name = provider_name
        self.options = dict(options or {})
        self._registry = registry if registry is not None else PROVIDER_REGISTRY
        self._provider: Any = None
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    async def initialize(self) -> None:
        """
        Import the plugin module and create the vendor adapter.

        Safe to call repeatedly; concurrent callers share one initialization.

        Raises:
            ProviderNotRegisteredError: The provider name has no registry entry.
            ConfigurationError: The module could not be imported, the creator is
                missing or not callable, or the creator itself failed.
        """
        if self.is_initialized:
            return

        config = self._registry.get(self.provider_name)
        if config is None:
            raise ProviderNotRegisteredError(self.provider_name)

        async with self._init_lock:
            if self.is_initialized:
                return
            try:
                module = importlib.import_module(config.module)
                creator = getattr(module, config.creator_function_name, None)
                if not callable(creator):
                    raise ConfigurationError(
                        f'Creator function "{config.creator_function_name}" not found in '
                        f'module "{config.module}" for provider "{self.provider_name}".'
                    )
                provider = creator(self.options)
            except Exception as e:
                raise ConfigurationError(
                    f'Failed to initialize provider "{self.provider_name}": {e}'
                ) from e
            self._provider = provider
            logger.debug("Initialized universal adapter %s from %s", self.provider_name, config.module)

    def _get_model(self, model_id: str) -> LanguageModel:
        if not self.is_initialized:
            raise ConfigurationError(f'Client for provider "{self.provider_name}" is not initialized')
        chat = getattr(self._provider, "chat", None)
        if not callable(chat):
            raise ConfigurationError(
                f'Adapter for provider "{self.provider_name}" has no callable chat(model_id) accessor'
            )
        return chat(model_id)

    async def stream(self, request: AiCoreRequest) -> StreamTextResult:
        await self.initialize()
        model = self._get_model(request.model_id)
        return await model.stream_text(request.messages, request.tools)

    async def generate(self, request: AiCoreRequest) -> GenerateTextResult:
        await self.initialize()
        model = self._get_model(request.model_id)
        return await model.generate_text(request.messages, request.tools)
