"""
Credential Migration - Encrypt legacy plaintext secrets in stored configs.

Safe to run repeatedly: values already in encrypted form are left untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from integratepdf.config import IntegratePDFError

from .vault import CredentialVault

if TYPE_CHECKING:
    from integratepdf.adapters.sqlite import IntegrationRepository

logger = logging.getLogger(__name__)

__all__ = ["MigrationSummary", "encrypt_stored_credentials"]


class MigrationSummary(BaseModel):
    """Counts from one migration run."""

    checked: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: list[int] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


async def encrypt_stored_credentials(
    repository: IntegrationRepository,
    vault: CredentialVault,
    dry_run: bool = False,
) -> MigrationSummary:
    """
    Encrypt every plaintext sensitive value in the integrations table.

    Args:
        repository: Integration store
        vault: Vault holding the master key
        dry_run: Report what would change without writing

    Returns:
        Summary; rows that failed are listed by id and do not stop the run
    """
    summary = MigrationSummary(dry_run=dry_run)
    integrations = await repository.list_integrations()
    logger.info("Found %d integrations to check", len(integrations))

    for integration in integrations:
        summary.checked += 1
        integration_id = integration["id"]
        config = integration["config"]

        try:
            encrypted = vault.encrypt_config(config)
        except IntegratePDFError as e:
            logger.error("Integration %s: %s", integration_id, e.message)
            summary.failed.append(integration_id)
            continue

        changed = sorted(key for key in encrypted if encrypted[key] != config.get(key))
        if not changed:
            logger.info("Skipping integration %s: nothing to encrypt", integration_id)
            summary.skipped += 1
            continue

        logger.info(
            "Migrating integration %s (%s): %s",
            integration_id,
            integration["integration_type"],
            ", ".join(changed),
        )
        if dry_run:
            summary.migrated += 1
            continue

        try:
            await repository.update_config(integration_id, encrypted)
        except IntegratePDFError as e:
            logger.error("Integration %s: %s", integration_id, e.message)
            summary.failed.append(integration_id)
            continue
        summary.migrated += 1

    logger.info(
        "Migration %s: checked=%d migrated=%d skipped=%d failed=%d",
        "dry run" if dry_run else "complete",
        summary.checked,
        summary.migrated,
        summary.skipped,
        len(summary.failed),
    )
    return summary
