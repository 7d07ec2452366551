"""
Integration Routes - Destination management and push endpoints.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from integratepdf.adapters import IntegrationRepository
from integratepdf.config.errors import ErrorCode, IntegratePDFError, NotFoundError
from integratepdf.domains.errors import unsupported_destination
from integratepdf.domains.mapping import ExtractedField
from integratepdf.domains.push import (
    DESTINATION_TYPES,
    DestinationType,
    DestinationTypeInfo,
    PushOrchestrator,
    PushResult,
    get_destination_type,
    missing_required_fields,
)
from integratepdf.domains.vault import SENSITIVE_CONFIG_KEYS, CredentialVault
from integratepdf.interfaces.api.deps import (
    get_integration_repository,
    get_orchestrator,
    get_vault,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REDACTED = "********"


class CreateIntegrationRequest(BaseModel):
    """New destination."""

    integration_type: str
    name: str = Field(..., min_length=1)
    config: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None


class UpdateIntegrationRequest(BaseModel):
    """Partial update of a destination."""

    name: str | None = Field(None, min_length=1)
    config: dict[str, Any] | None = None
    is_active: bool | None = None


class IntegrationResponse(BaseModel):
    """Stored destination with secrets redacted."""

    id: int
    user_id: str | None
    integration_type: str
    name: str
    config: dict[str, Any]
    is_active: bool
    last_sync: str | None
    created_at: str | None


class PushRequest(BaseModel):
    """Push one document's extracted fields."""

    document_id: str = Field(..., min_length=1)
    data: list[ExtractedField]
    mapping: dict[str, str] | None = None
    document_name: str | None = None


class SuggestRequest(BaseModel):
    data: list[ExtractedField]


class ConnectionTestResponse(BaseModel):
    integration_id: int
    success: bool


def _public(row: dict[str, Any]) -> IntegrationResponse:
    config = {
        key: REDACTED if key in SENSITIVE_CONFIG_KEYS and value else value
        for key, value in row["config"].items()
    }
    return IntegrationResponse(**{**row, "config": config})


async def _require(repo: IntegrationRepository, integration_id: int) -> dict[str, Any]:
    row = await repo.get_integration(integration_id)
    if row is None:
        raise NotFoundError(f"Integration {integration_id} not found")
    return row


def _require_type(row: dict[str, Any], expected: DestinationType) -> None:
    if row["integration_type"] != expected.value:
        raise IntegratePDFError(
            ErrorCode.VALIDATION_ERROR,
            f"Integration {row['id']} is not a {expected.value} integration",
        )


@router.get("/types", response_model=list[DestinationTypeInfo])
async def list_destination_types():
    """Catalogue of destination types and their config fields."""
    return list(DESTINATION_TYPES)


@router.post("", response_model=IntegrationResponse, status_code=201)
async def create_integration(
    request: CreateIntegrationRequest,
    repo: IntegrationRepository = Depends(get_integration_repository),
    vault: CredentialVault = Depends(get_vault),
):
    """
    Configure a destination.

    Sensitive config values (API keys, OAuth tokens) are encrypted before storage.
    """
    info = get_destination_type(request.integration_type)
    if info is None:
        raise IntegratePDFError(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown integration type: {request.integration_type}",
        )
    if not info.is_available:
        raise unsupported_destination(info.name)

    missing = missing_required_fields(request.integration_type, request.config)
    if missing:
        raise IntegratePDFError(
            ErrorCode.VALIDATION_ERROR,
            f"Missing required fields: {', '.join(missing)}",
            {"missing": missing},
        )

    integration_id = await repo.create_integration(
        integration_type=request.integration_type,
        name=request.name,
        config=vault.encrypt_config(request.config),
        user_id=request.user_id,
    )
    return _public(await _require(repo, integration_id))


@router.get("", response_model=list[IntegrationResponse])
async def list_integrations(
    user_id: str | None = None,
    integration_type: str | None = None,
    active_only: bool = False,
    repo: IntegrationRepository = Depends(get_integration_repository),
):
    """List configured destinations."""
    rows = await repo.list_integrations(
        user_id=user_id,
        integration_type=integration_type,
        active_only=active_only,
    )
    return [_public(row) for row in rows]


@router.get("/{integration_id}", response_model=IntegrationResponse)
async def get_integration(
    integration_id: int,
    repo: IntegrationRepository = Depends(get_integration_repository),
):
    """Get one destination."""
    return _public(await _require(repo, integration_id))


@router.patch("/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
    integration_id: int,
    request: UpdateIntegrationRequest,
    repo: IntegrationRepository = Depends(get_integration_repository),
    vault: CredentialVault = Depends(get_vault),
):
    """
    Update a destination.

    Config keys are merged into the stored config; new secrets are encrypted
    before storage. A redacted placeholder keeps the stored secret.
    """
    row = await _require(repo, integration_id)

    config = None
    if request.config is not None:
        changes = {key: value for key, value in request.config.items() if value != REDACTED}
        config = {**row["config"], **vault.encrypt_config(changes)}
        missing = missing_required_fields(row["integration_type"], config)
        if missing:
            raise IntegratePDFError(
                ErrorCode.VALIDATION_ERROR,
                f"Missing required fields: {', '.join(missing)}",
                {"missing": missing},
            )
        rotated = sorted(key for key in changes if key in SENSITIVE_CONFIG_KEYS)
        if rotated:
            logger.info("Rotating credentials for integration %s: %s", integration_id, rotated)

    if not await repo.update_integration(
        integration_id,
        name=request.name,
        config=config,
        is_active=request.is_active,
    ):
        raise NotFoundError(f"Integration {integration_id} not found")
    return _public(await _require(repo, integration_id))


@router.delete("/{integration_id}", status_code=204)
async def delete_integration(
    integration_id: int,
    repo: IntegrationRepository = Depends(get_integration_repository),
):
    """Delete a destination (push history is kept)."""
    if not await repo.delete_integration(integration_id):
        raise NotFoundError(f"Integration {integration_id} not found")
    return Response(status_code=204)


@router.post("/{integration_id}/push", response_model=PushResult)
async def push_to_integration(
    integration_id: int,
    request: PushRequest,
    response: Response,
    orchestrator: PushOrchestrator = Depends(get_orchestrator),
):
    """
    Push a document's extracted fields to a destination.

    - **document_id**: Source document
    - **data**: Extracted fields
    - **mapping**: Optional field_key -> property/column mapping
    - **document_name**: Names an auto-created spreadsheet

    A failed push returns 502 with the classified error in the body.
    """
    result = await orchestrator.push_extracted_data(
        integration_id,
        request.document_id,
        request.data,
        mapping=request.mapping,
        document_name=request.document_name,
    )
    if not result.success:
        response.status_code = 502
    return result


@router.post("/{integration_id}/test", response_model=ConnectionTestResponse)
async def test_integration(
    integration_id: int,
    orchestrator: PushOrchestrator = Depends(get_orchestrator),
):
    """Check a destination's credentials."""
    success = await orchestrator.test_destination(integration_id)
    return ConnectionTestResponse(integration_id=integration_id, success=success)


@router.get("/{integration_id}/history")
async def get_push_history(
    integration_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    orchestrator: PushOrchestrator = Depends(get_orchestrator),
) -> list[dict[str, Any]]:
    """Push history of a destination, newest first."""
    return await orchestrator.get_push_history(integration_id, limit=limit)


@router.post("/{integration_id}/mappings/suggest")
async def suggest_mappings(
    integration_id: int,
    request: SuggestRequest,
    orchestrator: PushOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """Preview how fields would map onto the destination."""
    return await orchestrator.suggest_mappings(integration_id, request.data)


@router.get("/{integration_id}/notion/database")
async def get_notion_database(
    integration_id: int,
    repo: IntegrationRepository = Depends(get_integration_repository),
    orchestrator: PushOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Live Notion database schema, including select/status options."""
    _require_type(await _require(repo, integration_id), DestinationType.NOTION)
    return await orchestrator.describe_destination(integration_id)


@router.get("/{integration_id}/sheets/spreadsheet")
async def get_spreadsheet(
    integration_id: int,
    repo: IntegrationRepository = Depends(get_integration_repository),
    orchestrator: PushOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Spreadsheet metadata and sheets of a Google Sheets destination."""
    _require_type(await _require(repo, integration_id), DestinationType.GOOGLE_SHEETS)
    return await orchestrator.describe_destination(integration_id)
