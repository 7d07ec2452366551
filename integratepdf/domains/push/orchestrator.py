"""
Push Orchestrator - Pushes extracted fields into a configured destination.

Steps per push:
1. Load the destination and reveal its credentials
2. Build the destination adapter
3. Run the adapter push in a bounded retry loop
4. Persist config the adapter changed (new spreadsheet, refreshed token)
5. Append the PushResult to push history
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt

from integratepdf.config.errors import ConfigurationError, IntegratePDFError
from integratepdf.domains.errors import (
    ErrorSource,
    classify,
    destination_not_found,
    get_retry_delay,
    log_error,
    should_retry,
)
from integratepdf.domains.mapping import ExtractedField, FieldMapping

from .contracts import DestinationAdapter
from .models import Destination, DestinationType, PushOutcome, PushResult

if TYPE_CHECKING:
    from integratepdf.adapters.sqlite import IntegrationRepository
    from integratepdf.domains.vault import CredentialVault

logger = logging.getLogger(__name__)

__all__ = ["PushOrchestrator", "AdapterFactory"]

AdapterFactory = Callable[[Destination, dict[str, Any]], DestinationAdapter]

_SOURCES = {
    DestinationType.NOTION.value: ErrorSource.NOTION,
    DestinationType.GOOGLE_SHEETS.value: ErrorSource.GOOGLE_SHEETS,
}


class PushOrchestrator:
    """
    Coordinates vault, adapters, retries and push history.

    Example:
        >>> orchestrator = PushOrchestrator(repo, vault, adapter_factory)
        >>> result = await orchestrator.push_extracted_data(1, "doc-1", fields)
        >>> result.success
        True
    """

    def __init__(
        self,
        repository: IntegrationRepository,
        vault: CredentialVault,
        adapter_factory: AdapterFactory,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            repository: Integration store
            vault: Credential vault
            adapter_factory: Builds an adapter from a destination and its decrypted config
            max_attempts: Upper bound on attempts per push (first try included)
            sleep: Sleep used between retries
        """
        self._repo = repository
        self._vault = vault
        self._adapter_factory = adapter_factory
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep
        # destination id -> (lock, pushes holding or waiting for it)
        self._locks: dict[int, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _exclusive(self, destination_id: int) -> AsyncIterator[None]:
        """Serialise pushes to one destination; idle locks are dropped."""
        lock, users = self._locks.get(destination_id, (asyncio.Lock(), 0))
        self._locks[destination_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[destination_id]
            if users == 1:
                del self._locks[destination_id]
            else:
                self._locks[destination_id] = (lock, users - 1)

    async def get_destination(self, destination_id: int) -> Destination:
        """
        Load a stored destination.

        Raises:
            IntegrationError: DESTINATION_NOT_FOUND if the destination does not
                exist, DESTINATION_MISCONFIGURED if its record is unreadable
        """
        row = await self._repo.get_integration(destination_id)
        if row is None:
            raise destination_not_found(destination_id)
        try:
            return Destination.model_validate(row)
        except ValidationError as e:
            error = ConfigurationError(
                f"Integration {destination_id} has an invalid record",
                {"fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
            )
            raise classify(error) from e

    def _build_adapter(self, destination: Destination) -> DestinationAdapter:
        config = self._vault.reveal_config(destination.config)
        return self._adapter_factory(destination, config)

    async def _release(self, destination_id: int, adapter: DestinationAdapter) -> None:
        """Persist the adapter's config changes and close it."""
        try:
            await self._persist_config_updates(destination_id, adapter.config_updates())
        except IntegratePDFError as e:
            logger.error(
                "Could not store config changes for integration %s: %s",
                destination_id,
                e.message,
            )
        finally:
            await adapter.close()

    async def _persist_config_updates(self, destination_id: int, updates: dict[str, Any]) -> None:
        """Merge adapter changes into the stored config, secrets encrypted."""
        if not updates:
            return
        row = await self._repo.get_integration(destination_id)
        if row is None:
            return
        config = {**row["config"], **self._vault.encrypt_config(updates)}
        await self._repo.update_config(destination_id, config)
        logger.info("Updated integration %s config: %s", destination_id, sorted(updates))

    async def _push_with_retry(
        self,
        adapter: DestinationAdapter,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None,
        document_name: str | None,
    ) -> PushOutcome:
        source = adapter.error_source

        def retry_if_retryable(retry_state: RetryCallState) -> bool:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            if exc is None:
                return False
            return should_retry(classify(exc, source), retry_state.attempt_number - 1)

        def wait_backoff(retry_state: RetryCallState) -> float:
            return get_retry_delay(retry_state.attempt_number - 1) / 1000

        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Push attempt %d failed (%s), retrying in %.1fs",
                retry_state.attempt_number,
                exc,
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
            )

        async for attempt in AsyncRetrying(
            retry=retry_if_retryable,
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_backoff,
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                return await adapter.push(fields, mapping, document_name)

        raise AssertionError("unreachable")

    async def push_extracted_data(
        self,
        destination_id: int,
        document_id: str,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
        document_name: str | None = None,
    ) -> PushResult:
        """
        Push one document's fields to a destination.

        Args:
            destination_id: Stored destination ID
            document_id: Source document ID
            fields: Extracted fields
            mapping: Optional explicit field_key -> target mapping
            document_name: Source document name (names auto-created spreadsheets)

        Returns:
            PushResult (success=False carries the classified error)

        Raises:
            IntegrationError: DESTINATION_NOT_FOUND if the destination does not exist
        """
        async with self._exclusive(destination_id):
            destination = await self.get_destination(destination_id)
            source = _SOURCES.get(destination.integration_type, ErrorSource.GENERIC)
            logger.info(
                "Pushing document %s to integration %s (%s, %d fields)",
                document_id,
                destination_id,
                destination.integration_type,
                len(fields),
            )

            outcome: PushOutcome | None = None
            error: dict[str, Any] | None = None
            try:
                if not destination.is_active:
                    raise ConfigurationError(f"Integration {destination_id} is not active")
                adapter = self._build_adapter(destination)
                try:
                    outcome = await self._push_with_retry(adapter, fields, mapping, document_name)
                finally:
                    await self._release(destination_id, adapter)
            except Exception as e:
                classified = classify(e, source)
                log_error(
                    classified,
                    {"integration_id": destination_id, "document_id": document_id},
                )
                if outcome is None:
                    error = classified.to_dict()

            result = PushResult(
                success=outcome is not None,
                integration_id=destination_id,
                document_id=document_id,
                external_id=outcome.external_id if outcome else None,
                error=error,
                details=outcome.details if outcome else {},
                pushed_at=datetime.now(timezone.utc),
            )

            await self._repo.record_push(
                integration_id=destination_id,
                document_id=document_id,
                success=result.success,
                pushed_at=result.pushed_at.isoformat(),
                external_id=result.external_id,
                error=result.error,
            )
            if result.success:
                await self._repo.touch_last_sync(destination_id, result.pushed_at.isoformat())
                logger.info("Pushed document %s as %s", document_id, result.external_id)

            return result

    async def test_destination(self, destination_id: int) -> bool:
        """
        Check a destination's credentials and target.

        Returns:
            True if the destination accepted the credentials
        """
        destination = await self.get_destination(destination_id)
        try:
            adapter = self._build_adapter(destination)
        except Exception as e:
            log_error(classify(e), {"integration_id": destination_id})
            return False

        try:
            return await adapter.test_connection()
        finally:
            await self._release(destination_id, adapter)

    async def describe_destination(self, destination_id: int) -> dict[str, Any]:
        """
        Live schema (Notion) or spreadsheet metadata (Google Sheets).

        Raises:
            IntegrationError: If the destination cannot be reached
        """
        destination = await self.get_destination(destination_id)
        source = _SOURCES.get(destination.integration_type, ErrorSource.GENERIC)
        try:
            adapter = self._build_adapter(destination)
        except Exception as e:
            raise classify(e, source) from e

        try:
            return await adapter.describe()
        except Exception as e:
            raise classify(e, source) from e
        finally:
            await self._release(destination_id, adapter)

    async def suggest_mappings(
        self,
        destination_id: int,
        fields: Sequence[ExtractedField],
    ) -> FieldMapping:
        """Mapping preview against the live destination."""
        destination = await self.get_destination(destination_id)
        source = _SOURCES.get(destination.integration_type, ErrorSource.GENERIC)
        try:
            adapter = self._build_adapter(destination)
        except Exception as e:
            raise classify(e, source) from e

        try:
            return await adapter.suggest_mappings(fields)
        except Exception as e:
            raise classify(e, source) from e
        finally:
            await adapter.close()

    async def get_push_history(
        self,
        destination_id: int | None = None,
        document_id: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Push history, newest first."""
        return await self._repo.list_push_history(
            integration_id=destination_id,
            document_id=document_id,
            limit=limit,
        )
