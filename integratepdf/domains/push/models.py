"""
Push Models - Data types for the push domain.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DestinationType(str, Enum):
    """Destination type identifiers."""

    NOTION = "notion"
    GOOGLE_SHEETS = "google_sheets"
    AIRTABLE = "airtable"
    QUICKBOOKS = "quickbooks"


class ConfigFieldType(str, Enum):
    """Input kinds for destination config fields."""

    TEXT = "text"
    SELECT = "select"
    URL = "url"
    TOKEN = "token"


class ConfigFieldOption(BaseModel):
    value: str
    label: str

    model_config = {"frozen": True}


class ConfigField(BaseModel):
    """One configuration input of a destination type."""

    key: str
    label: str
    type: ConfigFieldType = ConfigFieldType.TEXT
    required: bool = False
    placeholder: str | None = None
    options: list[ConfigFieldOption] | None = None
    description: str | None = None

    model_config = {"frozen": True}


class DestinationTypeInfo(BaseModel):
    """Catalogue entry for a destination type."""

    id: DestinationType
    name: str
    description: str
    is_available: bool = True
    requires_auth: bool = True
    config_fields: list[ConfigField] = Field(default_factory=list)

    model_config = {"frozen": True}


class Destination(BaseModel):
    """A configured user integration (config as stored, secrets encrypted)."""

    id: int
    user_id: str | None = None
    integration_type: str
    name: str
    config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    last_sync: str | None = None
    created_at: str | None = None


class PushOutcome(BaseModel):
    """What a destination adapter reports after a successful write."""

    external_id: str
    details: dict[str, Any] = Field(default_factory=dict)


class PushResult(BaseModel):
    """Outcome of one push, appended to push history."""

    success: bool
    integration_id: int
    document_id: str
    external_id: str | None = None
    error: dict[str, Any] | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    pushed_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}
