"""
Credential vault for MCP server secrets.

Uses AES-256-GCM (authenticated encryption) so tampering with stored
ciphertext is detected on decryption. Each ciphertext is stored as a single
base64 string laid out as:

    IV (12 bytes) || auth tag (16 bytes) || ciphertext

The IV is random per call and travels with the ciphertext.
"""

import base64
import binascii
import os
import re
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mcp_registry.config import get_config
from mcp_registry.models.errors import ConfigurationError, DecryptionError

IV_LENGTH = 12
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")
_BASE64_KEY = re.compile(r"^[A-Za-z0-9+/]{43}=$")


def parse_key(raw_key: str | None) -> bytes:
    """
    Decode an ENCRYPTION_KEY value into 32 raw bytes.

    Accepts a 64-character hex string or a 44-character base64 string.

    Raises:
        ConfigurationError: If the key is missing, malformed or not 256 bits.
    """
    if not raw_key:
        raise ConfigurationError("ENCRYPTION_KEY environment variable is not set")

    if _HEX_KEY.match(raw_key):
        key = bytes.fromhex(raw_key)
    elif _BASE64_KEY.match(raw_key):
        key = base64.b64decode(raw_key)
    else:
        raise ConfigurationError(
            "ENCRYPTION_KEY must be a 64-character hex string or 44-character base64 string "
            f"(32 bytes). Got {len(raw_key)} characters."
        )

    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"ENCRYPTION_KEY must decode to exactly {KEY_LENGTH} bytes for AES-256. Got {len(key)} bytes."
        )
    return key


def generate_encryption_key() -> str:
    """Return a fresh random 256-bit key as a 64-character hex string."""
    return os.urandom(KEY_LENGTH).hex()


class CredentialVault:
    """
    Encrypts and decrypts stored server credentials.

    The key is parsed on first use rather than at construction, so a process
    without ENCRYPTION_KEY can still start and serve servers that carry no
    credentials.
    """

    def __init__(self, raw_key: str | None) -> None:
        self._raw_key = raw_key
        self._aesgcm: AESGCM | None = None

    def _cipher(self) -> AESGCM:
        if self._aesgcm is None:
            self._aesgcm = AESGCM(parse_key(self._raw_key))
        return self._aesgcm

    def encrypt(self, plaintext: str | None) -> str:
        """
        Encrypt a plaintext string.

        Empty or missing input maps to an empty string without touching the key.
        """
        if not plaintext:
            return ""

        iv = os.urandom(IV_LENGTH)
        sealed = self._cipher().encrypt(iv, plaintext.encode("utf-8"), None)
        # cryptography appends the tag; the stored layout puts it before the body
        body, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return base64.b64encode(iv + tag + body).decode("ascii")

    def decrypt(self, ciphertext: str | None) -> str:
        """
        Decrypt a value produced by `encrypt`.

        Raises:
            DecryptionError: If the input is malformed, truncated, or fails
                authentication (tampered data or wrong key).
            ConfigurationError: If the key is missing or invalid.
        """
        if not ciphertext:
            return ""

        cipher = self._cipher()

        try:
            combined = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Invalid ciphertext: not valid base64") from e

        if len(combined) <= IV_LENGTH + AUTH_TAG_LENGTH:
            raise DecryptionError("Invalid ciphertext: too short")

        iv = combined[:IV_LENGTH]
        tag = combined[IV_LENGTH : IV_LENGTH + AUTH_TAG_LENGTH]
        body = combined[IV_LENGTH + AUTH_TAG_LENGTH :]

        try:
            plaintext = cipher.decrypt(iv, body + tag, None)
        except InvalidTag as e:
            raise DecryptionError(
                "Decryption failed: authentication tag mismatch (data may be corrupted or tampered)"
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decryption failed: plaintext is not valid UTF-8") from e


@lru_cache
def get_vault() -> CredentialVault:
    """Get the process-wide vault built from configuration."""
    key = get_config().encryption_key
    return CredentialVault(key.get_secret_value() if key else None)
