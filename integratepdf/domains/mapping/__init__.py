"""
Mapping Domain - Field-to-destination matching.

This domain handles:
- Extracted field records
- Field key -> property/header suggestions with conflict avoidance
- Enumerated option fallback matching
"""

from .mapper import (
    KEYWORD_CLASSES,
    OPTION_CATEGORIES,
    choose_option,
    find_matching_option,
    find_matching_target,
    find_semantic_option,
    normalize,
    suggest_mappings,
)
from .models import ExtractedField, FieldMapping

__all__ = [
    # Models
    "ExtractedField",
    "FieldMapping",
    # Matching
    "KEYWORD_CLASSES",
    "OPTION_CATEGORIES",
    "normalize",
    "find_matching_target",
    "suggest_mappings",
    "find_matching_option",
    "find_semantic_option",
    "choose_option",
]
