"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of the store, vault and orchestrator.
"""

from __future__ import annotations

from functools import lru_cache, partial

from integratepdf.adapters import IntegrationRepository, build_destination_adapter
from integratepdf.config import get_settings
from integratepdf.domains.push import PushOrchestrator
from integratepdf.domains.vault import CredentialVault


@lru_cache
def get_integration_repository() -> IntegrationRepository:
    """Get integration repository singleton."""
    settings = get_settings()
    return IntegrationRepository(settings.db_path)


@lru_cache
def get_vault() -> CredentialVault:
    """Get credential vault singleton (fails if ENCRYPTION_KEY is unset)."""
    return CredentialVault.from_settings(get_settings())


@lru_cache
def get_orchestrator() -> PushOrchestrator:
    """Get push orchestrator singleton."""
    settings = get_settings()
    return PushOrchestrator(
        get_integration_repository(),
        get_vault(),
        partial(build_destination_adapter, settings=settings),
        max_attempts=settings.push_max_attempts,
    )


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    repo = get_integration_repository()
    await repo.initialize()


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    repo = get_integration_repository()
    await repo.close()
