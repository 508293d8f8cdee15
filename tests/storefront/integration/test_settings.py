"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from storefront.config import StorefrontSettings

_VARS = [
    "STOREFRONT_API_URL",
    "STOREFRONT_HTTP_TIMEOUT",
    "STOREFRONT_POLL_INTERVAL",
    "STOREFRONT_CONFIRMATION_TIMEOUT",
    "STOREFRONT_STORAGE",
    "STOREFRONT_STATE_PATH",
    "STOREFRONT_STORE_NAME",
    "STOREFRONT_CURRENCY",
    "STOREFRONT_ORDER_NOTE",
    "STOREFRONT_API_TOKEN",
    "PAYMENT_GATEWAY",
    "STRIPE_PUBLISHABLE_KEY",
]


@pytest.fixture()
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = StorefrontSettings.from_env()
        assert settings.api_url == "http://localhost:3000/api"
        assert settings.poll_interval == 5.0
        assert settings.confirmation_timeout == 60.0
        assert settings.storage == "file"
        assert settings.store_name == "Crepa Urbana"
        assert settings.payment_gateway == "fake"
        assert settings.api_token is None

    def test_overrides(self, clean_env, tmp_path):
        clean_env.setenv("STOREFRONT_API_URL", "https://api.crepa.example/api")
        clean_env.setenv("STOREFRONT_POLL_INTERVAL", "2.5")
        clean_env.setenv("STOREFRONT_STORAGE", "MEMORY")
        clean_env.setenv("STOREFRONT_STATE_PATH", str(tmp_path / "s.json"))
        clean_env.setenv("STOREFRONT_API_TOKEN", "tok")

        settings = StorefrontSettings.from_env()

        assert settings.api_url == "https://api.crepa.example/api"
        assert settings.poll_interval == 2.5
        assert settings.storage == "memory"
        assert settings.state_path == Path(tmp_path / "s.json")
        assert settings.api_token == "tok"

    def test_non_numeric_interval(self, clean_env):
        clean_env.setenv("STOREFRONT_POLL_INTERVAL", "fast")
        with pytest.raises(ValueError, match="STOREFRONT_POLL_INTERVAL"):
            StorefrontSettings.from_env()

    def test_zero_interval(self, clean_env):
        clean_env.setenv("STOREFRONT_POLL_INTERVAL", "0")
        with pytest.raises(ValueError):
            StorefrontSettings.from_env()

    def test_stripe_requires_key(self, clean_env):
        clean_env.setenv("PAYMENT_GATEWAY", "stripe")
        with pytest.raises(ValueError, match="STRIPE_PUBLISHABLE_KEY"):
            StorefrontSettings.from_env()
