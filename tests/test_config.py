import logging

import pytest

from aicore.config import Settings, get_settings, load_providers_from_env, reset_settings
from aicore.logging import configure_logging, get_logger


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("AICORE_LOG_LEVEL", "AICORE_SDK_CLIENT_CACHE_SIZE", "AICORE_MAX_TOOL_RECURSION"):
            monkeypatch.delenv(name, raising=False)
        assert Settings.from_env() == Settings()

    def test_cached_until_reset(self, monkeypatch):
        monkeypatch.setenv("AICORE_MAX_TOOL_RECURSION", "3")
        first = get_settings()
        monkeypatch.setenv("AICORE_MAX_TOOL_RECURSION", "7")
        assert get_settings() is first
        assert first.max_tool_recursion == 3

        reset_settings()
        assert get_settings().max_tool_recursion == 7

    @pytest.mark.parametrize("name, value", [
        ("AICORE_SDK_CLIENT_CACHE_SIZE", "0"),
        ("AICORE_SDK_CLIENT_CACHE_SIZE", "many"),
        ("AICORE_MAX_TOOL_RECURSION", "-1"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError, match=name):
            Settings.from_env()


class TestProvidersFromEnv:

    def test_only_configured_keys(self, monkeypatch, mock_env):
        monkeypatch.delenv("XAI_API_KEY", raising=False)
        monkeypatch.delenv("AIHUBMIX_API_KEY", raising=False)

        providers = {p.id: p for p in load_providers_from_env()}

        assert set(providers) == {"openai", "anthropic", "gemini", "deepseek"}
        assert providers["openai"].type == "openai-response"
        assert providers["deepseek"].api_key == "sk-test-deepseek"
        assert providers["deepseek"].api_host == "https://api.deepseek.com"

    def test_empty_environment(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "DEEPSEEK_API_KEY",
                     "XAI_API_KEY", "AIHUBMIX_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        assert load_providers_from_env() == []


class TestLogging:

    def test_configure_installs_rich_handler(self):
        from rich.logging import RichHandler

        configure_logging("debug")
        root = logging.getLogger()
        try:
            assert root.level == logging.DEBUG
            assert any(isinstance(h, RichHandler) for h in root.handlers)
            assert get_logger().name == "aicore"
        finally:
            configure_logging("WARNING")
