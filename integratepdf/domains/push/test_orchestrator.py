"""
Tests for the push orchestrator and destination catalogue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from integratepdf.adapters.sqlite import IntegrationRepository
from integratepdf.config.errors import ErrorCode, IntegrationError, StorageError
from integratepdf.domains.errors import ErrorSource, classify_status, unsupported_destination
from integratepdf.domains.mapping import ExtractedField, FieldMapping
from integratepdf.domains.vault import CredentialVault

from .catalog import get_available_destination_types, get_destination_type, missing_required_fields
from .contracts import DestinationAdapter
from .models import Destination, PushOutcome
from .orchestrator import PushOrchestrator


class FakeAdapter:
    """Scripted destination: raises the queued errors, then succeeds."""

    error_source = ErrorSource.NOTION

    def __init__(self, errors: list[Exception] | None = None, updates: dict[str, Any] | None = None) -> None:
        self.errors = list(errors or [])
        self.updates = updates or {}
        self.calls = 0
        self.closed = False
        self.config: dict[str, Any] = {}

    async def push(
        self,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
        document_name: str | None = None,
    ) -> PushOutcome:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return PushOutcome(external_id=f"page-{self.calls}", details={"fields": len(fields)})

    async def test_connection(self) -> bool:
        return not self.errors

    async def describe(self) -> dict[str, Any]:
        return {"id": "db-1"}

    async def suggest_mappings(self, fields: Sequence[ExtractedField]) -> FieldMapping:
        return {f.field_key: f.field_key.title() for f in fields}

    def config_updates(self) -> dict[str, Any]:
        return self.updates

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault("test-master-key", iterations=1000)


@pytest.fixture
async def repo(tmp_path: Path):
    repo = IntegrationRepository(tmp_path / "test.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


def _orchestrator(
    repo: IntegrationRepository,
    vault: CredentialVault,
    adapter: FakeAdapter,
    sleep: AsyncMock | None = None,
) -> PushOrchestrator:
    def factory(destination: Destination, config: dict[str, Any]) -> DestinationAdapter:
        adapter.config = config
        return adapter

    return PushOrchestrator(repo, vault, factory, max_attempts=3, sleep=sleep or AsyncMock())


async def _notion(repo: IntegrationRepository, vault: CredentialVault, **overrides: Any) -> int:
    config = vault.encrypt_config({"api_key": "secret_abc", "database_id": "db-1"})
    return await repo.create_integration("notion", "Receipts", config, **overrides)


FIELDS = [
    ExtractedField(field_key="vendor_name", field_value="Acme Corp"),
    ExtractedField(field_key="total_amount", field_value="$99.50"),
]


# --- Catalogue ---


def test_catalog_lists_available_types() -> None:
    """Test only Notion and Google Sheets are available."""
    assert [t.id.value for t in get_available_destination_types()] == ["notion", "google_sheets"]
    airtable = get_destination_type("airtable")
    assert airtable is not None and airtable.is_available is False
    assert get_destination_type("dropbox") is None


def test_missing_required_fields() -> None:
    """Test required config detection."""
    assert missing_required_fields("notion", {"api_key": "k"}) == ["database_id"]
    assert missing_required_fields("notion", {"api_key": " ", "database_id": "d"}) == ["api_key"]
    assert missing_required_fields("google_sheets", {"access_token": "t"}) == []
    assert missing_required_fields("unknown", {}) == []


# --- Push ---


async def test_push_success_records_history(repo, vault, adapter) -> None:
    """Test a successful push is recorded and updates last_sync."""
    destination_id = await _notion(repo, vault)

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is True
    assert result.external_id == "page-1"
    assert result.error is None
    assert adapter.config["api_key"] == "secret_abc"
    assert adapter.closed is True

    history = await repo.list_push_history(destination_id)
    assert len(history) == 1
    assert history[0]["status"] == "success"
    assert history[0]["external_id"] == "page-1"
    assert (await repo.get_integration(destination_id))["last_sync"] is not None


async def test_push_legacy_plaintext_key(repo, vault, adapter) -> None:
    """Test a plaintext stored key is used as-is."""
    destination_id = await repo.create_integration(
        "notion", "Legacy", {"api_key": "plain-api-key-123", "database_id": "db-1"}
    )
    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is True
    assert adapter.config["api_key"] == "plain-api-key-123"


async def test_push_retries_retryable_errors(repo, vault) -> None:
    """Test rate limiting is retried with backoff, then succeeds."""
    destination_id = await _notion(repo, vault)
    adapter = FakeAdapter(errors=[classify_status(429), classify_status(503)])
    sleep = AsyncMock()

    result = await _orchestrator(repo, vault, adapter, sleep).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is True
    assert adapter.calls == 3
    assert sleep.await_count == 2
    first_delay, second_delay = (call.args[0] for call in sleep.await_args_list)
    assert 1.0 <= first_delay <= 1.1
    assert 2.0 <= second_delay <= 2.2


async def test_push_does_not_retry_auth_errors(repo, vault) -> None:
    """Test a 401 fails immediately with the classified error."""
    destination_id = await _notion(repo, vault)
    adapter = FakeAdapter(errors=[classify_status(401)])

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is False
    assert adapter.calls == 1
    assert result.error["code"] == ErrorCode.NOTION_UNAUTHORIZED.value
    assert result.error["retryable"] is False
    assert result.error["suggestions"]

    history = await repo.list_push_history(destination_id)
    assert history[0]["status"] == "failed"
    assert history[0]["error"]["code"] == ErrorCode.NOTION_UNAUTHORIZED.value
    assert (await repo.get_integration(destination_id))["last_sync"] is None


async def test_push_gives_up_after_max_attempts(repo, vault) -> None:
    """Test retries are bounded."""
    destination_id = await _notion(repo, vault)
    adapter = FakeAdapter(errors=[classify_status(500) for _ in range(5)])

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is False
    assert adapter.calls == 3
    assert result.error["code"] == ErrorCode.NOTION_SERVER_ERROR.value


async def test_push_raw_exception_is_classified(repo, vault) -> None:
    """Test unexpected exceptions never escape."""
    destination_id = await _notion(repo, vault)
    adapter = FakeAdapter(errors=[RuntimeError("boom")] * 3)

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is False
    assert result.error["code"] == ErrorCode.INTEGRATION_ERROR.value
    assert result.error["message"] == "boom"


async def test_push_with_wrong_master_key(repo, vault, adapter) -> None:
    """Test undecryptable credentials fail as CREDENTIALS_INVALID."""
    destination_id = await _notion(repo, vault)
    other_vault = CredentialVault("another-key", iterations=1000)

    result = await _orchestrator(repo, other_vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is False
    assert result.error["code"] == ErrorCode.CREDENTIALS_INVALID.value
    assert adapter.calls == 0


async def test_push_unsupported_destination(repo, vault) -> None:
    """Test listed-but-unimplemented types fail cleanly."""
    destination_id = await repo.create_integration("airtable", "Base", {"base_id": "b", "table_name": "t"})

    def factory(destination: Destination, config: dict[str, Any]) -> DestinationAdapter:
        raise unsupported_destination(destination.integration_type)

    orchestrator = PushOrchestrator(repo, vault, factory, sleep=AsyncMock())
    result = await orchestrator.push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is False
    assert result.error["code"] == ErrorCode.DESTINATION_UNSUPPORTED.value


async def test_push_inactive_destination(repo, vault, adapter) -> None:
    """Test inactive destinations are not pushed to."""
    destination_id = await _notion(repo, vault, is_active=False)

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is False
    assert result.error["code"] == ErrorCode.DESTINATION_MISCONFIGURED.value
    assert adapter.calls == 0


async def test_push_deactivated_destination(repo, vault, adapter) -> None:
    """Test deactivating a destination blocks further pushes."""
    destination_id = await _notion(repo, vault)
    orchestrator = _orchestrator(repo, vault, adapter)
    assert (await orchestrator.push_extracted_data(destination_id, "doc-1", FIELDS)).success is True

    await repo.update_integration(destination_id, is_active=False)
    result = await orchestrator.push_extracted_data(destination_id, "doc-2", FIELDS)

    assert result.success is False
    assert result.error["code"] == ErrorCode.DESTINATION_MISCONFIGURED.value
    assert adapter.calls == 1


async def test_push_after_credential_rotation(repo, vault, adapter) -> None:
    """Test a rotated key reaches the adapter on the next push."""
    destination_id = await _notion(repo, vault)
    config = vault.encrypt_config({"api_key": "secret_new", "database_id": "db-1"})
    await repo.update_integration(destination_id, config=config)

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is True
    assert adapter.config["api_key"] == "secret_new"


async def test_push_unknown_destination(repo, vault, adapter) -> None:
    """Test a missing destination raises a classified error."""
    with pytest.raises(IntegrationError) as exc_info:
        await _orchestrator(repo, vault, adapter).push_extracted_data(999, "doc-1", FIELDS)

    assert exc_info.value.code == ErrorCode.DESTINATION_NOT_FOUND
    assert exc_info.value.retryable is False
    assert exc_info.value.details == {"integration_id": 999}


async def test_push_invalid_record_is_classified(repo, vault, adapter) -> None:
    """Test an unreadable stored record surfaces as misconfigured."""
    destination_id = await _notion(repo, vault)
    row = await repo.get_integration(destination_id)
    repo.get_integration = AsyncMock(return_value={**row, "config": "not-a-dict"})

    with pytest.raises(IntegrationError) as exc_info:
        await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert exc_info.value.code == ErrorCode.DESTINATION_MISCONFIGURED
    assert exc_info.value.details["fields"] == ["config"]


async def test_push_close_failure_keeps_success(repo, vault) -> None:
    """Test a failing close after a written page does not fail the push."""
    destination_id = await _notion(repo, vault)

    class BrokenClose(FakeAdapter):
        async def close(self) -> None:
            raise RuntimeError("socket already closed")

    result = await _orchestrator(repo, vault, BrokenClose()).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is True
    assert result.error is None
    assert result.external_id == "page-1"
    history = await repo.list_push_history(destination_id)
    assert history[0]["status"] == "success"


async def test_push_config_store_failure_keeps_success(repo, vault) -> None:
    """Test a failed config write is logged and the push still succeeds."""
    config = vault.encrypt_config({"access_token": "old-token"})
    destination_id = await repo.create_integration("google_sheets", "Sheet", config)
    adapter = FakeAdapter(updates={"spreadsheet_id": "new-1"})
    repo.update_config = AsyncMock(side_effect=StorageError("Database write failed: disk I/O error"))

    result = await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    assert result.success is True
    assert result.error is None
    assert adapter.closed is True


async def test_push_persists_config_updates_encrypted(repo, vault) -> None:
    """Test a created spreadsheet id and refreshed token are stored."""
    config = vault.encrypt_config({"access_token": "old-token"})
    destination_id = await repo.create_integration("google_sheets", "Sheet", config)
    adapter = FakeAdapter(updates={"spreadsheet_id": "new-1", "access_token": "new-token"})

    await _orchestrator(repo, vault, adapter).push_extracted_data(destination_id, "doc-1", FIELDS)

    stored = (await repo.get_integration(destination_id))["config"]
    assert stored["spreadsheet_id"] == "new-1"
    assert vault.is_encrypted(stored["access_token"])
    assert vault.reveal(stored["access_token"]) == "new-token"


async def test_pushes_to_same_destination_are_serialised(repo, vault) -> None:
    """Test concurrent pushes to one destination do not overlap."""
    destination_id = await _notion(repo, vault)
    active = 0
    max_active = 0

    class SlowAdapter(FakeAdapter):
        async def push(self, fields, mapping=None, document_name=None) -> PushOutcome:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1
            return await super().push(fields, mapping, document_name)

    orchestrator = _orchestrator(repo, vault, SlowAdapter())
    results = await asyncio.gather(
        *(orchestrator.push_extracted_data(destination_id, f"doc-{i}", FIELDS) for i in range(3))
    )

    assert all(r.success for r in results)
    assert max_active == 1
    assert orchestrator._locks == {}


async def test_locks_released_for_finished_destinations(repo, vault, adapter) -> None:
    """Test per-destination locks do not accumulate."""
    orchestrator = _orchestrator(repo, vault, adapter)
    for _ in range(3):
        destination_id = await _notion(repo, vault)
        await orchestrator.push_extracted_data(destination_id, "doc-1", FIELDS)

    with pytest.raises(IntegrationError):
        await orchestrator.push_extracted_data(999, "doc-1", FIELDS)

    assert orchestrator._locks == {}


# --- Other operations ---


async def test_test_destination(repo, vault, adapter) -> None:
    """Test connection checks go through the adapter."""
    destination_id = await _notion(repo, vault)
    assert await _orchestrator(repo, vault, adapter).test_destination(destination_id) is True

    failing = FakeAdapter(errors=[classify_status(401)])
    assert await _orchestrator(repo, vault, failing).test_destination(destination_id) is False


async def test_test_destination_undecryptable(repo, vault, adapter) -> None:
    """Test bad credentials report False instead of raising."""
    destination_id = await _notion(repo, vault)
    other_vault = CredentialVault("another-key", iterations=1000)
    assert await _orchestrator(repo, other_vault, adapter).test_destination(destination_id) is False


async def test_describe_and_suggest(repo, vault, adapter) -> None:
    """Test schema description and mapping preview."""
    destination_id = await _notion(repo, vault)
    orchestrator = _orchestrator(repo, vault, adapter)

    assert await orchestrator.describe_destination(destination_id) == {"id": "db-1"}
    assert await orchestrator.suggest_mappings(destination_id, FIELDS[:1]) == {"vendor_name": "Vendor_Name"}


async def test_describe_errors_are_classified(repo, vault, adapter) -> None:
    """Test describe failures surface as IntegrationError."""
    destination_id = await _notion(repo, vault)
    other_vault = CredentialVault("another-key", iterations=1000)

    with pytest.raises(IntegrationError) as exc_info:
        await _orchestrator(repo, other_vault, adapter).describe_destination(destination_id)
    assert exc_info.value.code == ErrorCode.CREDENTIALS_INVALID


async def test_get_push_history(repo, vault, adapter) -> None:
    """Test history is returned newest first."""
    destination_id = await _notion(repo, vault)
    orchestrator = _orchestrator(repo, vault, adapter)
    await orchestrator.push_extracted_data(destination_id, "doc-1", FIELDS)
    await orchestrator.push_extracted_data(destination_id, "doc-2", FIELDS)

    history = await orchestrator.get_push_history(destination_id)
    assert [h["document_id"] for h in history] == ["doc-2", "doc-1"]
    assert len(await orchestrator.get_push_history(document_id="doc-1")) == 1
