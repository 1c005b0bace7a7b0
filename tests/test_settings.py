"""Tests for configuration settings."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as SettingsValidationError

from delivery_ledger.config.settings import LedgerSettings, get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_loads_from_env():
    """Test that settings loads from environment variables."""
    settings = get_settings()

    assert settings.store_key.get_secret_value() == "test-service-key"
    assert settings.store_url == "http://localhost:54321"


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    settings = get_settings()

    assert settings.store_timeout == 30.0
    assert settings.store_max_retries == 3
    assert settings.price_per_liter == Decimal("100")
    assert settings.reconcile_concurrency == 1
    assert settings.log_format == "console"


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    assert get_settings() is get_settings()


def test_price_override(monkeypatch):
    monkeypatch.setenv("PRICE_PER_LITER", "62.50")
    monkeypatch.setenv("RECONCILE_CONCURRENCY", "8")

    settings = get_settings()

    assert settings.price_per_liter == Decimal("62.50")
    assert settings.reconcile_concurrency == 8


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv("RECONCILE_CONCURRENCY", "0")

    with pytest.raises(SettingsValidationError):
        LedgerSettings()


def test_key_required(monkeypatch):
    monkeypatch.delenv("LEDGER_STORE_KEY")

    with pytest.raises(SettingsValidationError):
        LedgerSettings(_env_file=None)


def test_key_hidden_in_repr():
    assert "test-service-key" not in repr(get_settings())
