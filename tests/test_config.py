from __future__ import annotations

import pytest

from till_client_sdk.config import DEFAULT_WALK_IN_DOCUMENT, ConfigError, load_config


def test_load_config_requires_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TILL_API_BASE_URL", raising=False)
    monkeypatch.delenv("TILL_API_BASE_URL_DEV", raising=False)
    monkeypatch.delenv("TILL_ENV", raising=False)
    with pytest.raises(ConfigError, match="TILL_API_BASE_URL"):
        load_config()


def test_load_config_profile(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TILL_ENV", "staging")
    monkeypatch.setenv("TILL_API_BASE_URL_STAGING", "https://staging.example.com/")
    cfg = load_config()
    assert cfg.api_base_url == "https://staging.example.com"
    assert cfg.env_name == "staging"


def test_load_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "TILL_ENV",
        "TILL_API_BASE_URL_DEV",
        "TILL_CASH_STATUS_TTL_SECONDS",
        "TILL_STOCK_TTL_SECONDS",
        "TILL_WALK_IN_DOCUMENT",
        "TILL_VERIFY_SSL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TILL_API_BASE_URL", "https://api.example.com")
    cfg = load_config()
    assert cfg.cash_status_ttl_seconds == 2.0
    assert cfg.stock_ttl_seconds == 3.0
    assert cfg.walk_in_document == DEFAULT_WALK_IN_DOCUMENT
    assert cfg.verify_ssl is True


def test_load_config_pos_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TILL_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv("TILL_CASH_STATUS_TTL_SECONDS", "0.5")
    monkeypatch.setenv("TILL_WALK_IN_DOCUMENT", "99999999")
    monkeypatch.setenv("TILL_VERIFY_SSL", "off")
    cfg = load_config()
    assert cfg.cash_status_ttl_seconds == 0.5
    assert cfg.walk_in_document == "99999999"
    assert cfg.verify_ssl is False


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("TILL_TIMEOUT_SECONDS", "0"),
        ("TILL_CONNECT_TIMEOUT_SECONDS", "0"),
        ("TILL_READ_TIMEOUT_SECONDS", "0"),
        ("TILL_RETRIES", "-1"),
        ("TILL_RETRY_BACKOFF_SECONDS", "-0.1"),
        ("TILL_MAX_CONNECTIONS", "0"),
        ("TILL_CASH_STATUS_TTL_SECONDS", "-1"),
        ("TILL_STOCK_TTL_SECONDS", "-1"),
    ],
)
def test_load_config_rejects_invalid_ranges(monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    monkeypatch.setenv("TILL_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError, match=key):
        load_config()


@pytest.mark.parametrize("key", ["TILL_TIMEOUT_SECONDS", "TILL_RETRIES", "TILL_STOCK_TTL_SECONDS"])
def test_load_config_rejects_invalid_types(monkeypatch: pytest.MonkeyPatch, key: str) -> None:
    monkeypatch.setenv("TILL_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv(key, "abc")
    with pytest.raises(ConfigError, match=key):
        load_config()
