"""
Push Contracts - Interfaces for the push domain.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from integratepdf.domains.errors import ErrorSource
from integratepdf.domains.mapping import ExtractedField, FieldMapping

from .models import PushOutcome


@runtime_checkable
class DestinationAdapter(Protocol):
    """Contract for a destination the orchestrator can push to."""

    error_source: ErrorSource

    async def push(
        self,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
        document_name: str | None = None,
    ) -> PushOutcome:
        """
        Write one document's fields as one record.

        Args:
            fields: Extracted fields
            mapping: Optional explicit field_key -> target mapping
            document_name: Source document name

        Returns:
            PushOutcome with the destination's record id

        Raises:
            IntegrationError: On any destination failure
        """
        ...

    async def test_connection(self) -> bool:
        """Check credentials and target; never raises."""
        ...

    async def describe(self) -> dict[str, Any]:
        """Schema or spreadsheet metadata for display."""
        ...

    async def suggest_mappings(self, fields: Sequence[ExtractedField]) -> FieldMapping:
        """Mapping preview against the live destination."""
        ...

    def config_updates(self) -> dict[str, Any]:
        """Plaintext config values changed by the adapter (to be persisted)."""
        ...

    async def close(self) -> None:
        ...
