"""Tests for configuration module."""

from __future__ import annotations

import dataclasses

import pytest

from coach.config import Settings, _ENV_PROFILES, get_database_url, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_dataclass():
    s = Settings(database_url="postgres://localhost/test")
    assert s.database_url == "postgres://localhost/test"
    assert s.app_env == "dev"
    assert s.default_timezone == "America/New_York"
    assert s.motivation_probability == 0.7
    assert s.template_lookback_weeks == 2
    assert s.notify_url is None


def test_settings_frozen():
    s = Settings(database_url="x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        s.database_url = "y"


def test_settings_is_production():
    s = Settings(database_url="x", app_env="production")
    assert s.is_production is True
    assert s.is_dev is False


def test_settings_is_dev():
    s = Settings(database_url="x", app_env="dev")
    assert s.is_dev is True
    assert s.is_production is False


def test_get_database_url_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://from-env/db")
    assert get_database_url() == "postgres://from-env/db"


def test_get_database_url_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert "postgresql" in get_database_url()


def test_get_settings_uses_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://test/db")
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("REVIEW_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("NOTIFY_URL", "https://notify.example.com/messages")
    s = get_settings()
    assert s.database_url == "postgres://test/db"
    assert s.app_env == "production"
    assert s.review_timeout_seconds == 15.0
    assert s.notify_url == "https://notify.example.com/messages"


def test_env_profiles_exist():
    for env in ("dev", "test", "staging", "production"):
        assert env in _ENV_PROFILES


def test_dev_profile_debug_logging():
    assert _ENV_PROFILES["dev"]["log_level"] == "DEBUG"


def test_profile_sets_worker_pool(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://test/db")
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("REVIEW_WORKERS", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    s = get_settings()
    assert s.review_workers == 8
    assert s.log_level == "WARNING"


def test_unknown_env_falls_back_to_dev_profile(monkeypatch):
    monkeypatch.setenv("APP_ENV", "qa")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("REVIEW_WORKERS", raising=False)
    s = get_settings()
    assert s.app_env == "qa"
    assert s.log_level == "DEBUG"
    assert s.review_workers == 2


def test_api_bind_from_env(monkeypatch):
    monkeypatch.setenv("API_HOST", "0.0.0.0")
    monkeypatch.setenv("API_PORT", "9100")
    s = get_settings()
    assert (s.api_host, s.api_port) == ("0.0.0.0", 9100)
