"""
Credential Vault - Encryption at rest for destination secrets.

Each secret is encrypted with AES-256-GCM under a key derived from the
master key and a fresh per-value salt (PBKDF2-HMAC-SHA512). Stored form:

    {"encrypted": "<hex>", "iv": "<hex 16 bytes>", "salt": "<hex 32 bytes>"}

Legacy rows may still hold plaintext; read them through `reveal()`.
"""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel, ValidationError

from integratepdf.config import ConfigurationError, DecryptionError

if TYPE_CHECKING:
    from integratepdf.config import Settings

logger = logging.getLogger(__name__)

__all__ = ["CredentialVault", "EncryptedSecret", "SENSITIVE_CONFIG_KEYS"]

IV_LENGTH = 16
SALT_LENGTH = 32
KEY_LENGTH = 32
KDF_ITERATIONS = 100_000

# Destination config keys that are always stored encrypted
SENSITIVE_CONFIG_KEYS = ("api_key", "access_token", "refresh_token", "client_secret")


class EncryptedSecret(BaseModel):
    """Encrypted secret with its per-value IV and salt (all hex)."""

    encrypted: str
    iv: str
    salt: str

    model_config = {"frozen": True}


class CredentialVault:
    """
    Symmetric encryption for API keys and OAuth tokens.

    Example:
        >>> vault = CredentialVault("master-key")
        >>> stored = vault.encrypt_api_key("secret_abc")
        >>> vault.reveal(stored)
        'secret_abc'
    """

    def __init__(self, master_key: str, iterations: int = KDF_ITERATIONS) -> None:
        """
        Initialize vault.

        Args:
            master_key: Process-wide master secret
            iterations: PBKDF2 iteration count

        Raises:
            ConfigurationError: master key is missing
        """
        if not master_key:
            raise ConfigurationError("ENCRYPTION_KEY environment variable is not set")
        self._master_key = master_key.encode("utf-8")
        self._iterations = iterations

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialVault:
        """Build a vault from the configured ENCRYPTION_KEY."""
        key = settings.encryption_key.get_secret_value() if settings.encryption_key else ""
        return cls(key)

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self._iterations,
        )
        return kdf.derive(self._master_key)

    def encrypt(self, plaintext: str) -> EncryptedSecret:
        """
        Encrypt a secret.

        Args:
            plaintext: Plain text secret

        Returns:
            EncryptedSecret with hex ciphertext (tag appended), IV and salt
        """
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        key = self._derive_key(salt)

        ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)

        return EncryptedSecret(
            encrypted=ciphertext.hex(),
            iv=iv.hex(),
            salt=salt.hex(),
        )

    def decrypt(self, secret: EncryptedSecret | dict[str, Any]) -> str:
        """
        Decrypt a secret produced by `encrypt`.

        Raises:
            DecryptionError: wrong master key, malformed or tampered data
        """
        try:
            if isinstance(secret, dict):
                secret = EncryptedSecret.model_validate(secret)
            salt = bytes.fromhex(secret.salt)
            iv = bytes.fromhex(secret.iv)
            ciphertext = bytes.fromhex(secret.encrypted)
            key = self._derive_key(salt)
            plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError, ValidationError, UnicodeDecodeError) as e:
            logger.error("Decryption failed: %s", type(e).__name__)
            raise DecryptionError(
                "Failed to decrypt sensitive data: Invalid encryption data or key"
            ) from e

    def encrypt_api_key(self, api_key: str) -> str:
        """Encrypt an API key into its JSON storage form."""
        return self.encrypt(api_key).model_dump_json()

    def decrypt_api_key(self, encrypted_api_key: str) -> str:
        """Decrypt an API key from its JSON storage form."""
        try:
            data = json.loads(encrypted_api_key)
        except (TypeError, ValueError) as e:
            raise DecryptionError("Failed to decrypt API key: Invalid encrypted data format") from e
        if not isinstance(data, dict):
            raise DecryptionError("Failed to decrypt API key: Invalid encrypted data format")
        return self.decrypt(data)

    @staticmethod
    def is_encrypted(value: Any) -> bool:
        """Check whether a stored value has the encrypted JSON shape."""
        if not isinstance(value, str):
            return False
        try:
            parsed = json.loads(value)
        except ValueError:
            return False
        return isinstance(parsed, dict) and {"encrypted", "iv", "salt"} <= parsed.keys()

    def migrate_api_key_to_encrypted(self, value: str) -> str:
        """Encrypt a legacy plaintext key; already encrypted values are returned as-is."""
        if self.is_encrypted(value):
            return value
        return self.encrypt_api_key(value)

    def reveal(self, value: str) -> str:
        """Return the plaintext of a stored credential, encrypted or legacy."""
        if self.is_encrypted(value):
            return self.decrypt_api_key(value)
        return value

    def encrypt_config(
        self,
        config: dict[str, Any],
        keys: tuple[str, ...] = SENSITIVE_CONFIG_KEYS,
    ) -> dict[str, Any]:
        """Copy of `config` with sensitive keys in encrypted storage form."""
        encrypted = dict(config)
        for key in keys:
            value = encrypted.get(key)
            if isinstance(value, str) and value:
                encrypted[key] = self.migrate_api_key_to_encrypted(value)
        return encrypted

    def reveal_config(
        self,
        config: dict[str, Any],
        keys: tuple[str, ...] = SENSITIVE_CONFIG_KEYS,
    ) -> dict[str, Any]:
        """Copy of `config` with sensitive keys decrypted for use."""
        revealed = dict(config)
        for key in keys:
            value = revealed.get(key)
            if isinstance(value, str) and value:
                revealed[key] = self.reveal(value)
        return revealed
