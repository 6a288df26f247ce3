"""
Encryption of OAuth credentials at rest.

Credentials are sealed with AES-256-GCM under a single master key supplied
by configuration. A sealed blob is the base64 encoding of:

    salt (32 bytes) | nonce (16 bytes) | auth tag (16 bytes) | ciphertext

A fresh random salt and nonce are drawn for every seal, so sealing the same
plaintext twice never yields the same blob.
"""

import base64
import binascii
import logging
import os
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from plansync.config import Settings, get_settings
from plansync.exceptions import ConfigurationError, CorruptionError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
SALT_LENGTH = 32
NONCE_LENGTH = 16
TAG_LENGTH = 16
HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH


class CredentialVault:
    """
    Seals and opens credential strings with an injected master key.

    The key is validated lazily: a missing or malformed key only raises
    ConfigurationError when seal/open is first called.

    Usage:
        vault = CredentialVault(settings.token_encryption_key)
        blob = vault.seal("ya29.access-token")
        token = vault.open(blob)
    """

    def __init__(self, master_key: Union[str, bytes, None]):
        """
        Args:
            master_key: Base64 string decoding to 32 bytes, or the 32 raw bytes
        """
        self._master_key = master_key
        self._aead: Optional[AESGCM] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CredentialVault":
        """Build a vault from TOKEN_ENCRYPTION_KEY."""
        settings = settings or get_settings()
        return cls(settings.token_encryption_key)

    @staticmethod
    def generate_key() -> str:
        """Generate a new base64-encoded master key."""
        return base64.b64encode(os.urandom(KEY_LENGTH)).decode("ascii")

    def _cipher(self) -> AESGCM:
        if self._aead is None:
            self._aead = AESGCM(_decode_master_key(self._master_key))
        return self._aead

    def seal(self, plaintext: str) -> str:
        """
        Encrypt a credential.

        Raises:
            ConfigurationError: If the master key is missing or malformed
        """
        cipher = self._cipher()
        salt = os.urandom(SALT_LENGTH)
        nonce = os.urandom(NONCE_LENGTH)

        # AESGCM appends the tag to the ciphertext
        sealed = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return base64.b64encode(salt + nonce + tag + ciphertext).decode("ascii")

    def open(self, blob: str) -> str:
        """
        Decrypt a credential sealed by `seal`.

        Raises:
            ConfigurationError: If the master key is missing or malformed
            CorruptionError: If the blob is malformed or fails authentication
        """
        cipher = self._cipher()

        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise CorruptionError("Sealed credential is not valid base64", original_error=e)

        if len(combined) < HEADER_LENGTH:
            raise CorruptionError(
                f"Sealed credential too short ({len(combined)} bytes, need at least {HEADER_LENGTH})"
            )

        nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
        tag = combined[SALT_LENGTH + NONCE_LENGTH:HEADER_LENGTH]
        ciphertext = combined[HEADER_LENGTH:]

        try:
            plaintext = cipher.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise CorruptionError("Sealed credential failed authentication", original_error=e)

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptionError("Sealed credential is not valid UTF-8", original_error=e)


def _decode_master_key(master_key: Union[str, bytes, None]) -> bytes:
    """Decode and validate the configured master key."""
    if not master_key:
        raise ConfigurationError("TOKEN_ENCRYPTION_KEY environment variable is not set")

    if isinstance(master_key, bytes) and len(master_key) == KEY_LENGTH:
        return master_key

    try:
        decoded = base64.b64decode(master_key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(
            "TOKEN_ENCRYPTION_KEY must be a valid base64-encoded 32-byte key",
            original_error=e,
        )

    if len(decoded) != KEY_LENGTH:
        raise ConfigurationError(
            f"TOKEN_ENCRYPTION_KEY must decode to {KEY_LENGTH} bytes (256 bits), got {len(decoded)}"
        )
    return decoded
