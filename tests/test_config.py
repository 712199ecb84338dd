"""
Tests for environment configuration.
"""

from retail_assistant.config import Settings, get_settings, set_settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("CHAT_MAX_TOKENS", "CHAT_TEMPERATURE", "EMBEDDING_DIMENSIONS", "CHECKOUT_API_BASE_URL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.chat_max_tokens == 800
        assert settings.chat_temperature == 0.7
        assert settings.embedding_dimensions == 1536
        assert settings.checkout_api_base_url == "http://localhost:5100"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CHAT_MODEL", "test/model")
        monkeypatch.setenv("CHAT_TIMEOUT", "7.5")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.chat_model == "test/model"
        assert settings.chat_timeout == 7.5
        assert settings.log_level == "DEBUG"

    def test_cached_settings_can_be_replaced(self, test_settings):
        assert get_settings() is test_settings
        replacement = Settings(chat_model="other")
        set_settings(replacement)
        assert get_settings() is replacement
