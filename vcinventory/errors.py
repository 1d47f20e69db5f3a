"""
Exception hierarchy for vcinventory.

Path: vcinventory/errors.py

Vault and credential errors are fatal to a run. Per-property extraction
failures never surface here; the shaper absorbs them.
"""

from typing import List, Optional


class VCInventoryError(Exception):
    """Base class for all vcinventory errors."""


class ConfigError(VCInventoryError, ValueError):
    """Configuration file or filter definition is invalid."""


# =============================================================================
# Vault / secret store
# =============================================================================

class VaultUnavailable(VCInventoryError):
    """Secret store or the requested vault cannot be used."""


class VaultLocked(VaultUnavailable):
    """Secret store is locked and no password could be obtained."""


class StoreNotConfigured(VaultUnavailable):
    """Secret store has never been configured on this machine."""


# =============================================================================
# Credentials
# =============================================================================

class CredentialError(VCInventoryError):
    """Base class for credential resolution failures."""

    def __init__(self, message: str, server: Optional[str] = None):
        super().__init__(message)
        self.server = server


class NoCredentialFound(CredentialError):
    """All resolution strategies were exhausted."""


class CredentialInputRequired(NoCredentialFound):
    """
    Resolution needs operator input but no prompter was supplied.

    Carries the candidate usernames (if any) so the calling layer can
    collect a choice or a new credential and retry.
    """

    def __init__(
        self,
        message: str,
        server: Optional[str] = None,
        candidates: Optional[List[str]] = None,
    ):
        super().__init__(message, server=server)
        self.candidates = list(candidates or [])


class PromptCancelled(CredentialError):
    """Operator aborted interactive credential entry."""


class CredentialExists(CredentialError):
    """Credential already stored and overwrite was not forced."""


# =============================================================================
# External collaborators
# =============================================================================

class SessionError(VCInventoryError):
    """Hypervisor session could not be opened or queried."""


class ExportError(VCInventoryError):
    """Workbook could not be written."""


class MailError(VCInventoryError):
    """Report mail could not be delivered."""
