import pytest

import config


@pytest.fixture
def fresh_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


class TestSettings:
    """Test configuration loading."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DEFAULT_TRANSFER_FEE", raising=False)
        settings = config.Settings()

        assert settings.default_transfer_fee == 1
        assert settings.log_format == "json"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_TRANSFER_FEE", "4")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = config.Settings()

        assert settings.default_transfer_fee == 4
        assert settings.log_level == "DEBUG"

    def test_settings_are_cached(self):
        assert config.get_settings() is config.get_settings()

    def test_environment_variants(self):
        assert isinstance(config.get_settings_for_environment("development"), config.DevelopmentSettings)
        assert isinstance(config.get_settings_for_environment("PRODUCTION"), config.ProductionSettings)
        assert isinstance(config.get_settings_for_environment("testing"), config.TestingSettings)
        assert type(config.get_settings_for_environment("staging")) is config.Settings

    def test_production_has_no_default_origins(self):
        assert config.get_settings_for_environment("production").allowed_origins == []


class TestAppEnvironment:
    """Test environment selection through APP_ENV."""

    def test_app_env_selects_variant(self, monkeypatch, fresh_settings_cache):
        monkeypatch.setenv("APP_ENV", "testing")

        settings = config.get_settings()

        assert isinstance(settings, config.TestingSettings)
        assert settings.rate_limit_per_minute == 1000

    def test_missing_app_env_uses_base_settings(self, monkeypatch, fresh_settings_cache):
        monkeypatch.delenv("APP_ENV", raising=False)

        assert type(config.get_settings()) is config.Settings
