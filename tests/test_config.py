from __future__ import annotations

import pytest

from quoteflow.core.config import _build_config
from quoteflow.core.exceptions import ConfigurationError


def test_defaults_are_valid(monkeypatch):
    for name in ("ENV", "NEGOTIATION_STALE_DAYS", "BULK_MAX_WORKERS", "NOTIFICATION_SANDBOX_MODE"):
        monkeypatch.delenv(name, raising=False)
    config = _build_config()
    assert config.ENV == "development"
    assert config.NEGOTIATION_STALE_DAYS == 30
    assert config.BULK_MAX_WORKERS == 4
    assert config.NOTIFICATION_SANDBOX_MODE is True
    assert config.API_PREFIX.startswith("/")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("NEGOTIATION_STALE_DAYS", "14")
    monkeypatch.setenv("NOTIFICATION_SANDBOX_MODE", "off")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    config = _build_config()
    assert config.NEGOTIATION_STALE_DAYS == 14
    assert config.NOTIFICATION_SANDBOX_MODE is False
    assert config.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("BULK_MAX_WORKERS", "0"),
        ("BULK_MAX_WORKERS", "many"),
        ("DATABASE_URL", "mysql://localhost/quoteflow"),
        ("LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_values_fail_fast(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        _build_config()


def test_production_rejects_placeholder_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "change_me_jwt_secret")
    with pytest.raises(ConfigurationError):
        _build_config("production")
