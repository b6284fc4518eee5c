"""Encryption of stored server credentials."""

from mcp_registry.security.vault import CredentialVault, generate_encryption_key, get_vault

__all__ = ["CredentialVault", "generate_encryption_key", "get_vault"]
