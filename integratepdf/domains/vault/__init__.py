"""
Vault Domain - Encryption of destination credentials at rest.
"""

from .migration import MigrationSummary, encrypt_stored_credentials
from .vault import SENSITIVE_CONFIG_KEYS, CredentialVault, EncryptedSecret

__all__ = [
    "CredentialVault",
    "EncryptedSecret",
    "MigrationSummary",
    "SENSITIVE_CONFIG_KEYS",
    "encrypt_stored_credentials",
]
