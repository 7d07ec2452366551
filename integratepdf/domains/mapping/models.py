"""
Mapping Models - Extracted field records consumed by the push pipeline.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# field_key -> destination property name or column header
FieldMapping = dict[str, str]


class ExtractedField(BaseModel):
    """One field produced by the upstream extraction pipeline."""

    id: str = ""
    field_key: str
    field_value: str = ""
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    is_corrected: bool = False
    data_type: str = "text"
    document_id: str | None = None

    model_config = {"frozen": True}
