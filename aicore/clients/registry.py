"""
Registry of universal adapter plugins.

Each entry names a module and the creator function it exports. Modules are
imported only when a ``UniversalAiSdkClient`` for that provider initializes,
so registering a provider never pulls in its vendor SDK.
"""
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from ..errors import ConfigurationError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Where to find a provider's adapter: ``module`` and the creator it exports."""
    module: str
    creator_function_name: str


class ProviderRegistry:
    """Name -> ProviderConfig mapping with validation on registration."""

    def __init__(self, entries: Optional[Dict[str, ProviderConfig]] = None):
        self._entries: Dict[str, ProviderConfig] = {}
        for name, config in (entries or {}).items():
            self.register(name, config)

    def register(self, name: str, config: ProviderConfig) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError("Provider name must be a non-empty string")
        if not isinstance(config, ProviderConfig):
            raise ConfigurationError(f'Provider "{name}": config must be a ProviderConfig')
        if not isinstance(config.module, str) or not config.module.strip():
            raise ConfigurationError(f'Provider "{name}": module must be a non-empty string')
        if not isinstance(config.creator_function_name, str) or not config.creator_function_name.isidentifier():
            raise ConfigurationError(
                f'Provider "{name}": creator_function_name must be a valid identifier, '
                f"got {config.creator_function_name!r}"
            )
        if name in self._entries:
            logger.info("Replacing adapter registration for %s", name)
        self._entries[name] = config

    def unregister(self, name: str) -> None:
        self._entries.pop(name, None)

    def get(self, name: str) -> Optional[ProviderConfig]:
        return self._entries.get(name)

    def names(self) -> list:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


PROVIDER_REGISTRY = ProviderRegistry({
    "openai": ProviderConfig("aicore.clients.sdk.openai", "create_openai"),
    "anthropic": ProviderConfig("aicore.clients.sdk.anthropic", "create_anthropic"),
    "google": ProviderConfig("aicore.clients.sdk.google", "create_google"),
    "xai": ProviderConfig("aicore.clients.sdk.openai", "create_xai"),
})


def register_provider(name: str, config: ProviderConfig) -> None:
    """Add or replace an adapter in the process-wide registry."""
    PROVIDER_REGISTRY.register(name, config)
