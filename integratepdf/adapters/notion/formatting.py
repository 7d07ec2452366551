"""
Notion Value Formatting - Coerce extracted strings into property payloads.

One formatter per PropertyType. A formatter returns the JSON shape Notion
expects for that property, or None when the value cannot be represented
(the property is then omitted from the page rather than failing the push).
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from typing import Any

from dateutil import parser as date_parser

from integratepdf.domains.mapping import choose_option

from .models import READ_ONLY_TYPES, NotionProperty, PropertyType

logger = logging.getLogger(__name__)

__all__ = ["format_property_value", "text_value", "parse_number", "parse_date"]

PropertyValue = dict[str, Any]

_CURRENCY_CHARS = re.compile(r"[$,€£¥₹\s]")
MAX_TEXT_LENGTH = 2000


def text_value(kind: str, value: str) -> PropertyValue:
    """Structured text payload for title / rich_text, split at the API's 2000-char limit."""
    chunks = [value[i : i + MAX_TEXT_LENGTH] for i in range(0, len(value), MAX_TEXT_LENGTH)] or [""]
    return {kind: [{"text": {"content": chunk}} for chunk in chunks]}


def parse_number(value: str) -> float | None:
    """Parse "$1,250.00" style amounts; None if not a finite number."""
    cleaned = _CURRENCY_CHARS.sub("", value)
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_date(value: str) -> str | None:
    """Parse a date in any common format to an ISO calendar date."""
    if not value.strip():
        return None
    try:
        return date_parser.parse(value).date().isoformat()
    except (ValueError, OverflowError):
        return None


def _format_title(value: str, prop: NotionProperty) -> PropertyValue | None:
    if not value.strip():
        return None
    return text_value("title", value)


def _format_rich_text(value: str, prop: NotionProperty) -> PropertyValue | None:
    return text_value("rich_text", value)


def _format_number(value: str, prop: NotionProperty) -> PropertyValue | None:
    number = parse_number(value)
    if number is None:
        logger.info("Omitting %s: %r is not a number", prop.name, value)
        return None
    return {"number": number}


def _format_single_option(kind: str) -> Callable[[str, NotionProperty], PropertyValue | None]:
    def formatter(value: str, prop: NotionProperty) -> PropertyValue | None:
        if not value.strip():
            return None
        if not prop.options:
            return {kind: {"name": value.strip()}}
        name = choose_option(value, prop.option_names)
        return {kind: {"name": name}} if name else None

    return formatter


def _format_multi_select(value: str, prop: NotionProperty) -> PropertyValue | None:
    if not value.strip():
        return None

    names: list[str] = []
    for part in (v.strip() for v in value.split(",")):
        if not part:
            continue
        name = choose_option(part, prop.option_names) if prop.options else part
        if name and name not in names:
            names.append(name)

    return {"multi_select": [{"name": name} for name in names]}


def _format_date(value: str, prop: NotionProperty) -> PropertyValue | None:
    iso = parse_date(value)
    if iso is None:
        logger.info("Omitting %s: %r is not a date", prop.name, value)
        return None
    return {"date": {"start": iso}}


def _format_checkbox(value: str, prop: NotionProperty) -> PropertyValue | None:
    return {"checkbox": value.strip().lower() in ("true", "yes")}


def _passthrough(kind: str) -> Callable[[str, NotionProperty], PropertyValue | None]:
    def formatter(value: str, prop: NotionProperty) -> PropertyValue | None:
        return {kind: value}

    return formatter


def _read_only(value: str, prop: NotionProperty) -> PropertyValue | None:
    return None


def _format_unknown(value: str, prop: NotionProperty) -> PropertyValue | None:
    logger.warning("Unknown property type %r for %s, defaulting to rich_text", prop.raw_type, prop.name)
    return text_value("rich_text", value)


_FORMATTERS: dict[PropertyType, Callable[[str, NotionProperty], PropertyValue | None]] = {
    PropertyType.TITLE: _format_title,
    PropertyType.RICH_TEXT: _format_rich_text,
    PropertyType.NUMBER: _format_number,
    PropertyType.SELECT: _format_single_option("select"),
    PropertyType.STATUS: _format_single_option("status"),
    PropertyType.MULTI_SELECT: _format_multi_select,
    PropertyType.DATE: _format_date,
    PropertyType.CHECKBOX: _format_checkbox,
    PropertyType.URL: _passthrough("url"),
    PropertyType.EMAIL: _passthrough("email"),
    PropertyType.PHONE_NUMBER: _passthrough("phone_number"),
    PropertyType.UNKNOWN: _format_unknown,
    **{prop_type: _read_only for prop_type in READ_ONLY_TYPES},
}


def format_property_value(value: str, prop: NotionProperty) -> PropertyValue | None:
    """
    Format an extracted value for a Notion property.

    Args:
        value: Extracted string value
        prop: Target property definition (with live options)

    Returns:
        Property payload, or None to omit the property
    """
    return _FORMATTERS[prop.type](value, prop)
