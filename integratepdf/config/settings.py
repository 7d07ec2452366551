"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Master key for credential encryption (ENCRYPTION_KEY)
    encryption_key: SecretStr | None = None

    # Storage
    db_path: Path = Path("data/integratepdf.db")

    # Notion
    notion_api_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"

    # Google Sheets (OAuth app credentials, tokens live per destination)
    google_client_id: str | None = None
    google_client_secret: SecretStr | None = None
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_sheets_api_url: str = "https://sheets.googleapis.com/v4"

    # Push behaviour
    http_timeout_seconds: float = 30.0
    push_max_attempts: int = 3

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
