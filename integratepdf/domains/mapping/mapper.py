"""
Field Mapper - Matches extracted field keys to destination targets.

Pure functions, no I/O. Used by both destination adapters:
- field keys -> Notion property names / sheet column headers
- extracted values -> enumerated option names (select, status, multi_select)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from .models import ExtractedField, FieldMapping

logger = logging.getLogger(__name__)

__all__ = [
    "KEYWORD_CLASSES",
    "OPTION_CATEGORIES",
    "normalize",
    "find_matching_target",
    "suggest_mappings",
    "find_matching_option",
    "find_semantic_option",
    "choose_option",
]

KEYWORD_CLASSES: tuple[tuple[str, ...], ...] = (
    ("amount", "total", "price", "cost", "sum", "value"),
    ("date",),
    ("name", "title"),
    ("description", "notes", "details"),
    ("status", "state"),
    ("category", "type"),
    ("tags", "labels"),
)

# Option category -> keywords shared by extracted values and option names
OPTION_CATEGORIES: dict[str, tuple[str, ...]] = {
    "paid": ("paid", "complete", "completed", "done", "finished", "success"),
    "pending": ("pending", "in progress", "processing", "waiting"),
    "failed": ("failed", "error", "cancelled", "rejected"),
    "draft": ("draft", "new", "created"),
    "active": ("active", "open", "current"),
    "inactive": ("inactive", "closed", "archived"),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(text: str) -> str:
    """Lower-case and strip everything but letters and digits."""
    return _NON_ALNUM.sub("", text.lower())


def _contains_either_way(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return a in b or b in a


def find_matching_target(field_key: str, targets: Sequence[str]) -> str | None:
    """
    Find the destination target for one field key.

    Priority (first match wins):
        1. exact case-insensitive name
        2. normalized name (punctuation and spacing ignored)
        3. substring containment in either direction (raw, then normalized)
        4. shared keyword class (amount, date, name, ...)

    Args:
        field_key: Extracted field key, e.g. "total_amount"
        targets: Property names or column headers

    Returns:
        Matching target name, or None
    """
    key_lower = field_key.lower().strip()
    key_norm = normalize(field_key)

    for target in targets:
        if target.lower().strip() == key_lower:
            return target

    for target in targets:
        if key_norm and normalize(target) == key_norm:
            return target

    for target in targets:
        if _contains_either_way(key_lower, target.lower().strip()):
            return target

    for target in targets:
        if _contains_either_way(key_norm, normalize(target)):
            return target

    for keywords in KEYWORD_CLASSES:
        if not any(keyword in key_lower for keyword in keywords):
            continue
        for target in targets:
            target_lower = target.lower()
            if any(keyword in target_lower for keyword in keywords):
                return target

    return None


def suggest_mappings(
    fields: Iterable[ExtractedField],
    targets: Sequence[str],
) -> FieldMapping:
    """
    Suggest a field mapping with unique targets.

    A field whose best target was already claimed by an earlier field is
    left unmapped rather than re-matched or overwriting the earlier field.
    """
    mapping: FieldMapping = {}
    claimed: set[str] = set()

    for field in fields:
        target = find_matching_target(field.field_key, targets)
        if target is None:
            logger.debug("No mapping found for field: %s", field.field_key)
            continue
        if target in claimed:
            logger.debug("Skipping %s -> %s (already used)", field.field_key, target)
            continue
        mapping[field.field_key] = target
        claimed.add(target)

    return mapping


def find_matching_option(value: str, options: Sequence[str]) -> str | None:
    """Exact (case-insensitive), then partial, match of a value to option names."""
    normalized = value.lower().strip()
    if not normalized or not options:
        return None

    for option in options:
        if option.lower() == normalized:
            return option

    for option in options:
        if _contains_either_way(option.lower(), normalized):
            return option

    return None


def find_semantic_option(value: str, options: Sequence[str]) -> str | None:
    """Match by category, e.g. "completed" picks an option named "Paid" or "Done"."""
    normalized = value.lower().strip()
    if not normalized or not options:
        return None

    for keywords in OPTION_CATEGORIES.values():
        if not any(keyword in normalized for keyword in keywords):
            continue
        for option in options:
            option_lower = option.lower()
            if any(keyword in option_lower for keyword in keywords):
                return option

    return None


def choose_option(value: str, options: Sequence[str]) -> str | None:
    """
    Pick a valid option name for an extracted value.

    Order: exact -> partial -> semantic category -> first option.
    Returns None only when there are no options or the value is empty.
    """
    if not value.strip() or not options:
        return None

    match = find_matching_option(value, options)
    if match is not None:
        return match

    match = find_semantic_option(value, options)
    if match is not None:
        logger.info("Using fallback option %r for value %r", match, value)
        return match

    logger.warning(
        "Option %r not found, falling back to first option %r. Available: %s",
        value,
        options[0],
        list(options),
    )
    return options[0]
