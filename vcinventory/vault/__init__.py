"""Encrypted credential vault."""

from vcinventory.vault.models import VaultCredentials, SecretInfo, VaultInfo, ResolvedCredential
from vcinventory.vault.store import SecretStore
from vcinventory.vault.resolver import CredentialResolver, CredentialPrompter

__all__ = [
    "VaultCredentials",
    "SecretInfo",
    "VaultInfo",
    "ResolvedCredential",
    "SecretStore",
    "CredentialResolver",
    "CredentialPrompter",
]
