"""
Runtime configuration.

Values come from the process environment, with a ``.env`` file in the
working directory loaded first (existing environment variables win).
"""
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

import dotenv

from .types import Provider

dotenv.load_dotenv()


# Environment variable -> provider template used by load_providers_from_env()
_ENV_PROVIDERS: Dict[str, Dict[str, str]] = {
    "OPENAI_API_KEY": {"id": "openai", "type": "openai-response", "api_host": "https://api.openai.com"},
    "ANTHROPIC_API_KEY": {"id": "anthropic", "type": "anthropic", "api_host": "https://api.anthropic.com"},
    "GOOGLE_API_KEY": {
        "id": "gemini",
        "type": "gemini",
        "api_host": "https://generativelanguage.googleapis.com",
    },
    "DEEPSEEK_API_KEY": {"id": "deepseek", "type": "openai", "api_host": "https://api.deepseek.com"},
    "XAI_API_KEY": {"id": "grok", "type": "openai", "api_host": "https://api.x.ai"},
    "AIHUBMIX_API_KEY": {"id": "aihubmix", "type": "openai", "api_host": "https://aihubmix.com"},
}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide tunables.

    Attributes:
        log_level: Level passed to ``configure_logging``.
        sdk_client_cache_size: Maximum number of universal adapters kept alive.
        max_tool_recursion: How many tool-call round trips one completion may make.
    """
    log_level: str = "INFO"
    sdk_client_cache_size: int = 32
    max_tool_recursion: int = 20

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            log_level=os.getenv("AICORE_LOG_LEVEL", "INFO"),
            sdk_client_cache_size=_int_env("AICORE_SDK_CLIENT_CACHE_SIZE", 32),
            max_tool_recursion=_int_env("AICORE_MAX_TOOL_RECURSION", 20),
        )
        if settings.sdk_client_cache_size < 1:
            raise ValueError("AICORE_SDK_CLIENT_CACHE_SIZE must be at least 1")
        if settings.max_tool_recursion < 0:
            raise ValueError("AICORE_MAX_TOOL_RECURSION must not be negative")
        return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the cached settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next ``get_settings()`` re-reads the environment."""
    global _settings
    _settings = None


def load_providers_from_env() -> List[Provider]:
    """
    Build a Provider for every known API key present in the environment.

    Returns:
        List[Provider]: One provider per configured key, in a stable order.
    """
    providers = []
    for env_name, template in _ENV_PROVIDERS.items():
        api_key = os.getenv(env_name)
        if not api_key:
            continue
        providers.append(Provider(name=template["id"], api_key=api_key, **template))
    return providers
