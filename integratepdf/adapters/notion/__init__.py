"""
Notion Adapter - Typed-schema destination.

This is the ONLY place that calls the Notion API.
"""

from .client import NotionClient
from .formatting import format_property_value
from .models import NotionDatabase, NotionOption, NotionProperty, PropertyType

__all__ = [
    "NotionClient",
    "NotionDatabase",
    "NotionProperty",
    "NotionOption",
    "PropertyType",
    "format_property_value",
]
