"""
Tests for application settings.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from .settings import Settings


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test storage and OAuth settings are read from the environment."""
    monkeypatch.setenv("ENCRYPTION_KEY", "master")
    monkeypatch.setenv("DB_PATH", "/var/lib/integratepdf/push.db")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "cid")

    settings = Settings(_env_file=None)

    assert settings.encryption_key is not None
    assert settings.encryption_key.get_secret_value() == "master"
    assert settings.db_path == Path("/var/lib/integratepdf/push.db")
    assert settings.google_client_id == "cid"


def test_settings_fields() -> None:
    """Test the declared settings."""
    assert set(Settings.model_fields) == {
        "encryption_key",
        "db_path",
        "notion_api_url",
        "notion_version",
        "google_client_id",
        "google_client_secret",
        "google_token_url",
        "google_sheets_api_url",
        "http_timeout_seconds",
        "push_max_attempts",
        "api_host",
        "api_port",
        "api_debug",
        "log_level",
    }
