from __future__ import annotations

from dataclasses import replace

import pytest

from quoteflow.core import startup
from quoteflow.core.config import get_config
from quoteflow.main import create_app


def test_required_database_must_be_reachable(monkeypatch):
    strict = replace(get_config(), DB_CONNECTIVITY_REQUIRED=True)
    monkeypatch.setattr(startup, "get_config", lambda: strict)
    monkeypatch.setattr(startup, "verify_database_connection", lambda: False)
    with pytest.raises(RuntimeError):
        startup.validate_startup_config()


def test_optional_database_only_warns(monkeypatch):
    relaxed = replace(get_config(), DB_CONNECTIVITY_REQUIRED=False)
    monkeypatch.setattr(startup, "get_config", lambda: relaxed)
    monkeypatch.setattr(startup, "verify_database_connection", lambda: False)
    startup.validate_startup_config()


def test_app_mounts_negotiation_routes():
    prefix = get_config().API_PREFIX
    paths = set(create_app().openapi()["paths"])
    assert {
        f"{prefix}/health",
        f"{prefix}/negotiations",
        f"{prefix}/negotiations/{{session_id}}/respond",
        f"{prefix}/projects/{{project_id}}/bulk-negotiations",
        f"{prefix}/proposals/{{proposal_id}}/versions/compare",
    } <= paths


def test_sqlite_production_settings_are_flagged():
    prod = replace(get_config(), ENV="production", BULK_MAX_WORKERS=4, NOTIFICATION_SANDBOX_MODE=True)
    assert startup.negotiation_warnings(prod, "sqlite:///./quoteflow.db") == [
        "sqlite_in_production",
        "sqlite_serializes_bulk_workers",
        "notification_sandbox_in_production",
    ]


def test_postgres_with_live_notifications_is_clean():
    prod = replace(get_config(), ENV="production", BULK_MAX_WORKERS=8, NOTIFICATION_SANDBOX_MODE=False)
    assert startup.negotiation_warnings(prod, "postgresql+psycopg://db/quoteflow") == []


def test_validated_config_returns_warnings(monkeypatch):
    single = replace(get_config(), ENV="development", DB_CONNECTIVITY_REQUIRED=False, BULK_MAX_WORKERS=1)
    monkeypatch.setattr(startup, "get_config", lambda: single)
    monkeypatch.setattr(startup, "verify_database_connection", lambda: True)
    monkeypatch.setattr(startup, "get_active_database_url", lambda: "sqlite:///./quoteflow.db")
    assert startup.validate_startup_config() == []
