#!/usr/bin/env python3
"""
Encrypt Stored API Keys

One-off migration for databases written before credentials were encrypted.
Encrypts plaintext API keys and OAuth tokens in the integrations table.
Rows that are already encrypted are skipped, so the script can be re-run.

Requires ENCRYPTION_KEY in the environment (or .env).

Usage:
    python encrypt_api_keys.py --db /path/to/integratepdf.db
    python encrypt_api_keys.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from integratepdf.adapters.sqlite import IntegrationRepository
from integratepdf.config import ConfigurationError, get_settings
from integratepdf.domains.vault import CredentialVault, encrypt_stored_credentials

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def migrate(db_path: Path, dry_run: bool) -> int:
    """Run the migration against one database."""
    try:
        vault = CredentialVault.from_settings(get_settings())
    except ConfigurationError as e:
        logger.error("%s", e.message)
        return 1

    repo = IntegrationRepository(db_path)
    try:
        await repo.initialize()
        summary = await encrypt_stored_credentials(repo, vault, dry_run=dry_run)
    finally:
        await repo.close()

    logger.info("Total integrations checked: %d", summary.checked)
    logger.info("Encrypted: %d", summary.migrated)
    logger.info("Skipped (no secrets or already encrypted): %d", summary.skipped)
    if not summary.ok:
        logger.error("Failed integrations: %s", ", ".join(map(str, summary.failed)))
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Encrypt plaintext credentials in the IntegratePDF database"
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to database file (defaults to DB_PATH setting)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be encrypted without writing",
    )

    args = parser.parse_args()
    db_path = args.db or Path(get_settings().db_path)

    if not db_path.exists():
        logger.error("Database not found: %s", db_path)
        return 1

    return asyncio.run(migrate(db_path, args.dry_run))


if __name__ == "__main__":
    exit(main())
