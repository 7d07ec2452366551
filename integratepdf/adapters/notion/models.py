"""
Notion Models - Database schema types for the Notion API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PropertyType(str, Enum):
    """Notion database property types."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    STATUS = "status"
    DATE = "date"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    PEOPLE = "people"
    FILES = "files"
    RELATION = "relation"
    FORMULA = "formula"
    ROLLUP = "rollup"
    CREATED_TIME = "created_time"
    CREATED_BY = "created_by"
    LAST_EDITED_TIME = "last_edited_time"
    LAST_EDITED_BY = "last_edited_by"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> PropertyType:
        """Map an API type string, unrecognised types become UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def has_options(self) -> bool:
        return self in ENUMERABLE_TYPES

    @property
    def is_writable(self) -> bool:
        return self not in READ_ONLY_TYPES


ENUMERABLE_TYPES = frozenset({PropertyType.SELECT, PropertyType.MULTI_SELECT, PropertyType.STATUS})

# Computed, system-managed or relational: never written
READ_ONLY_TYPES = frozenset(
    {
        PropertyType.PEOPLE,
        PropertyType.FILES,
        PropertyType.RELATION,
        PropertyType.FORMULA,
        PropertyType.ROLLUP,
        PropertyType.CREATED_TIME,
        PropertyType.CREATED_BY,
        PropertyType.LAST_EDITED_TIME,
        PropertyType.LAST_EDITED_BY,
    }
)


class NotionOption(BaseModel):
    """Option of a select, multi_select or status property."""

    id: str = ""
    name: str
    color: str | None = None

    model_config = {"frozen": True}


class NotionProperty(BaseModel):
    """Database property definition."""

    id: str = ""
    name: str
    type: PropertyType
    raw_type: str = ""
    options: list[NotionOption] | None = None

    model_config = {"frozen": True}

    @property
    def option_names(self) -> list[str]:
        return [option.name for option in self.options or []]

    @classmethod
    def from_api(cls, name: str, data: dict[str, Any]) -> NotionProperty:
        """Build from a property object of GET /databases/{id}."""
        raw_type = data.get("type", "")
        prop_type = PropertyType.parse(raw_type)

        options = None
        if prop_type.has_options:
            config = data.get(raw_type) or {}
            options = [
                NotionOption(id=o.get("id", ""), name=o["name"], color=o.get("color"))
                for o in config.get("options", [])
                if o.get("name")
            ]

        return cls(
            id=data.get("id", ""),
            name=name,
            type=prop_type,
            raw_type=raw_type,
            options=options,
        )


class NotionDatabase(BaseModel):
    """Database schema as fetched for one push."""

    id: str
    title: str = "Untitled Database"
    properties: dict[str, NotionProperty] = Field(default_factory=dict)
    url: str = ""

    @property
    def title_property(self) -> NotionProperty | None:
        """The database's title property (Notion requires exactly one)."""
        for prop in self.properties.values():
            if prop.type == PropertyType.TITLE:
                return prop
        return None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> NotionDatabase:
        """Build from the GET /databases/{id} response."""
        title_parts = data.get("title") or []
        title = "".join(part.get("plain_text", "") for part in title_parts) or "Untitled Database"

        return cls(
            id=data["id"],
            title=title,
            properties={
                name: NotionProperty.from_api(name, prop)
                for name, prop in (data.get("properties") or {}).items()
            },
            url=data.get("url", ""),
        )
