"""
Client resolution.

``ApiClientFactory.create`` maps a Provider to its bespoke capability client;
``ApiClientFactory.create_ai_sdk_client`` hands out universal adapter
clients from a bounded cache. Both caches live for the process and can be
dropped with ``ApiClientFactory.clear_cache()``.
"""
import asyncio
import json
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from ..config import get_settings
from ..logging import get_logger
from ..types import Provider
from .aihubmix import AihubmixAPIClient
from .anthropic import AnthropicAPIClient
from .base import BaseApiClient
from .gemini import GeminiAPIClient
from .openai import OpenAIAPIClient
from .openai_response import OpenAIResponseAPIClient
from .ovms import OVMSClient
from .universal import UniversalAiSdkClient

logger = get_logger(__name__)

# Provider ids with a dedicated client, checked before the provider type.
_CLIENTS_BY_ID = {
    "aihubmix": AihubmixAPIClient,
    "ovms": OVMSClient,
}

_CLIENTS_BY_TYPE = {
    "openai": OpenAIAPIClient,
    "azure-openai": OpenAIAPIClient,
    "openai-response": OpenAIResponseAPIClient,
    "gemini": GeminiAPIClient,
    "anthropic": AnthropicAPIClient,
}


def _consume_future_exception(fut: asyncio.Future) -> None:
    """Avoid 'Future exception was never retrieved' for coordination futures."""
    if not fut.cancelled():
        fut.exception()


class SdkClientCache:
    """
    LRU cache of universal clients with single-flight creation.

    Concurrent first-time requests for the same key share one creation;
    the least recently used entry is evicted once ``max_size`` is exceeded.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._entries: "OrderedDict[str, UniversalAiSdkClient]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._lock: Optional[asyncio.Lock] = None

    def _get(self, key: str) -> Optional[UniversalAiSdkClient]:
        client = self._entries.get(key)
        if client is not None:
            self._entries.move_to_end(key)
        return client

    def _set(self, key: str, client: UniversalAiSdkClient) -> None:
        self._entries[key] = client
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted universal client %s", evicted)

    async def get_or_create(
        self,
        key: str,
        work: Callable[[], Awaitable[UniversalAiSdkClient]],
    ) -> UniversalAiSdkClient:
        cached = self._get(key)
        if cached is not None:
            return cached

        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            cached = self._get(key)
            if cached is not None:
                return cached
            fut = self._inflight.get(key)
            if fut is None:
                fut = asyncio.get_running_loop().create_future()
                fut.add_done_callback(_consume_future_exception)
                self._inflight[key] = fut
                creator = True
            else:
                creator = False

        if not creator:
            return await fut

        try:
            client = await work()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            raise
        else:
            self._set(key, client)
            fut.set_result(client)
            return client
        finally:
            self._inflight.pop(key, None)

    def keys(self) -> Tuple[str, ...]:
        """Cached keys, least recently used first."""
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ApiClientFactory:
    _clients: Dict[Tuple[str, str, str, str], BaseApiClient] = {}
    _sdk_clients: Optional[SdkClientCache] = None

    @classmethod
    def create(cls, provider: Provider) -> BaseApiClient:
        """
        Return the capability client for ``provider``.

        No network call is made; a malformed provider raises
        ``ConfigurationError`` from the client constructor.
        """
        key = (provider.id, provider.type, provider.api_key, provider.api_host)
        client = cls._clients.get(key)
        if client is not None:
            return client

        client_cls = _CLIENTS_BY_ID.get(provider.id) or _CLIENTS_BY_TYPE.get(provider.type, OpenAIAPIClient)
        client = client_cls(provider)
        cls._clients[key] = client
        logger.debug("Created %s for provider %s (%s)", client_cls.__name__, provider.id, provider.type)
        return client

    @classmethod
    def sdk_client_cache(cls) -> SdkClientCache:
        if cls._sdk_clients is None:
            cls._sdk_clients = SdkClientCache(get_settings().sdk_client_cache_size)
        return cls._sdk_clients

    @staticmethod
    def sdk_cache_key(provider_name: str, options: Optional[Mapping[str, Any]] = None) -> str:
        return f"{provider_name}:{json.dumps(dict(options or {}), sort_keys=True, default=str)}"

    @classmethod
    async def create_ai_sdk_client(
        cls,
        provider_name: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> UniversalAiSdkClient:
        """
        Return an initialized universal client for ``provider_name``.

        Equal options (in any key order) share one client.
        """
        key = cls.sdk_cache_key(provider_name, options)

        async def work() -> UniversalAiSdkClient:
            client = UniversalAiSdkClient(provider_name, options)
            await client.initialize()
            logger.info("Initialized universal client for %s", provider_name)
            return client

        return await cls.sdk_client_cache().get_or_create(key, work)

    @classmethod
    def clear_cache(cls) -> None:
        cls._clients.clear()
        cls._sdk_clients = None
