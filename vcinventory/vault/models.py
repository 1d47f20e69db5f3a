"""
Credential data models.

Dataclasses representing credentials and vault metadata.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass
class VaultCredentials:
    """Username/secret pair for a vCenter login."""

    username: str
    password: Optional[str] = None  # in-memory only

    @property
    def has_password(self) -> bool:
        """Check if a secret is available."""
        return self.password is not None

    def __repr__(self) -> str:
        return f"VaultCredentials(username={self.username!r}, password=***)"


@dataclass
class SecretInfo:
    """Stored secret metadata (without the secret)."""

    id: int
    vault: str
    name: str
    username: str
    server: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class VaultInfo:
    """Registered vault."""

    name: str
    backend: str
    is_default: bool = False
    created_at: Optional[str] = None


@dataclass
class StoreConfiguration:
    """Secret store settings applied on first use."""

    authentication: str = "Password"  # "Password" or "None"
    password_timeout: int = 900       # seconds the store stays unlocked
    interaction: str = "Prompt"       # "Prompt" or "None"

    @property
    def requires_password(self) -> bool:
        return self.authentication.lower() == "password"

    @property
    def can_prompt(self) -> bool:
        return self.interaction.lower() == "prompt"


class ResolutionStrategy(Enum):
    """How a credential was found."""
    EXACT_MATCH = "exact_match"
    SINGLE_MATCH = "single_match"
    SELECTED = "selected"
    ENTERED = "entered"


@dataclass
class ResolvedCredential:
    """Result of credential resolution."""

    server: str
    credentials: VaultCredentials
    strategy: ResolutionStrategy
    secret_name: Optional[str] = None
    stored: bool = False  # True if entered interactively and persisted

    @property
    def username(self) -> str:
        return self.credentials.username
