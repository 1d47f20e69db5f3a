"""
Credential Resolver - server-scoped credential lookup.

This module handles:
- Picking the vault to use (the canonical vault always wins)
- Creating the vault, and configuring the store on first use
- Resolving a credential for a vCenter server
- Adding, removing and listing server credentials

Resolution tries three strategies in order:
    1. Exact name   "{prefix}-{server}-{preferred_username}"
    2. Server scan  "{prefix}-{server}-*"; one match is used directly,
                    several are offered to the prompter for selection
    3. Entry        the prompter asks for a new username/secret and
                    optionally saves it

The resolver never reads stdin itself. All interaction goes through a
CredentialPrompter supplied by the caller.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from vcinventory.core.config import CANONICAL_VAULT_NAME, get_config
from vcinventory.errors import (
    CredentialExists,
    CredentialInputRequired,
    NoCredentialFound,
    PromptCancelled,
    StoreNotConfigured,
    VaultUnavailable,
    VCInventoryError,
)
from vcinventory.vault.models import (
    ResolutionStrategy,
    ResolvedCredential,
    SecretInfo,
    StoreConfiguration,
    VaultCredentials,
)
from vcinventory.vault.naming import normalize_server, parse_username, secret_name, server_prefix
from vcinventory.vault.store import SecretStore


logger = logging.getLogger(__name__)


class CredentialPrompter(ABC):
    """Supplies operator input during credential resolution."""

    @abstractmethod
    def choose(self, server: str, usernames: List[str]) -> Any:
        """
        Ask which stored credential to use.

        Returns the raw answer; a 1-based number selects a username,
        anything else declines.
        """

    @abstractmethod
    def enter_credentials(self, server: str) -> Optional[VaultCredentials]:
        """Ask for a new username/secret. None means cancelled."""

    @abstractmethod
    def confirm_save(self, server: str, username: str) -> bool:
        """Ask whether to store the credential just entered."""


class CredentialResolver:
    """
    Resolves vCenter credentials from a SecretStore vault.

    Usage:
        store = SecretStore(password_provider=ask_password)
        resolver = CredentialResolver(store, vault_name="OpsVault")
        resolver.ensure_vault()

        resolved = resolver.resolve("vc01.lab", prompter=ConsolePrompter())
        # use resolved.credentials.username / .password
    """

    def __init__(
        self,
        store: SecretStore,
        vault_name: Optional[str] = None,
        prefix: Optional[str] = None,
    ):
        """
        Initialize resolver.

        Args:
            store: Secret store holding the vaults.
            vault_name: Requested vault. Advisory; see resolve_preferred_vault().
            prefix: Secret name prefix. If None, uses config default.
        """
        config = get_config()
        self.store = store
        self.requested_vault = vault_name or config.vault_name
        self.prefix = prefix or config.secret_prefix

    # =========================================================================
    # Vault selection
    # =========================================================================

    def resolve_preferred_vault(self, requested: Optional[str] = None) -> str:
        """
        Pick the vault name to use.

        An existing canonical vault is always returned, whatever was
        requested, so that every config converges on one vault. Otherwise
        an existing requested vault is used. Otherwise the canonical name
        is returned as the vault to create.
        """
        requested = requested or self.requested_vault

        if self.store.vault_exists(CANONICAL_VAULT_NAME):
            if requested and requested.lower() != CANONICAL_VAULT_NAME.lower():
                logger.debug(f"Using '{CANONICAL_VAULT_NAME}' instead of requested '{requested}'")
            return CANONICAL_VAULT_NAME

        if requested and self.store.vault_exists(requested):
            return requested

        return CANONICAL_VAULT_NAME

    @property
    def vault_name(self) -> str:
        return self.resolve_preferred_vault()

    def ensure_vault(self, name: Optional[str] = None) -> bool:
        """
        Make sure a vault exists, creating it if needed.

        On first-ever use the store is configured with defaults
        (Password authentication, 15 minute timeout, Prompt interaction)
        using the store's password provider, then registration is retried.

        Returns:
            True if the vault exists afterwards. Failures are logged;
            later credential operations raise VaultUnavailable.
        """
        name = name or self.resolve_preferred_vault()

        try:
            if self.store.vault_exists(name):
                return True

            is_default = not self.store.list_vaults()
            try:
                self.store.register_vault(name, is_default=is_default)
            except StoreNotConfigured:
                logger.info("Secret store not configured; applying default configuration")
                password = self.store.password_provider() if self.store.password_provider else None
                self.store.configure(password, StoreConfiguration())
                self.store.register_vault(name, is_default=is_default)

            return True

        except (VCInventoryError, ValueError, sqlite3.Error, OSError) as e:
            logger.error(f"Could not create vault '{name}': {e}")
            return False

    def _require_vault(self) -> str:
        name = self.resolve_preferred_vault()
        if not self.store.vault_exists(name):
            raise VaultUnavailable(
                f"Vault '{name}' does not exist. Run 'vcinventory vault init' first."
            )
        return name

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(
        self,
        server: str,
        preferred_username: Optional[str] = None,
        allow_prompt: bool = True,
        prompter: Optional[CredentialPrompter] = None,
    ) -> ResolvedCredential:
        """
        Resolve credentials for a server.

        Args:
            server: vCenter/ESXi hostname or IP.
            preferred_username: Try this username first.
            allow_prompt: Allow selection and entry through the prompter.
            prompter: Source of operator input.

        Returns:
            ResolvedCredential.

        Raises:
            ValueError: Empty server.
            VaultUnavailable: Store or vault unusable.
            NoCredentialFound: Nothing usable and prompting disabled.
            CredentialInputRequired: Input needed but no prompter given.
            PromptCancelled: Operator cancelled entry.
        """
        if not server or not server.strip():
            raise ValueError("server is required")

        vault = self._require_vault()

        # 1. Exact match
        if preferred_username:
            name = secret_name(server, preferred_username, self.prefix)
            info = self.store.get_secret_info(vault, name)
            creds = None
            if info is not None:
                if self._belongs_to(info, server):
                    creds = self.store.get_secret(vault, name)
                else:
                    logger.debug(f"'{name}' is stored for server '{info.server}', not {server}")
            if creds:
                logger.info(f"Using stored credential '{name}'")
                return ResolvedCredential(
                    server=server,
                    credentials=creds,
                    strategy=ResolutionStrategy.EXACT_MATCH,
                    secret_name=name,
                )
            logger.debug(f"No stored credential named '{name}'")

        # 2. Server-scoped search
        matches = self.candidates(server)

        if len(matches) == 1:
            creds = self.store.get_secret(vault, matches[0].name)
            if creds:
                logger.info(f"Using only stored credential for {server}: '{matches[0].name}'")
                return ResolvedCredential(
                    server=server,
                    credentials=creds,
                    strategy=ResolutionStrategy.SINGLE_MATCH,
                    secret_name=matches[0].name,
                )

        elif len(matches) > 1:
            usernames = [self.username_of(m, server) for m in matches]

            if allow_prompt:
                if prompter is None:
                    raise CredentialInputRequired(
                        f"{len(matches)} credentials stored for {server}; a selection is required",
                        server=server,
                        candidates=usernames,
                    )

                index = self._select(prompter, server, usernames)
                if index is not None:
                    chosen = matches[index]
                    creds = self.store.get_secret(vault, chosen.name)
                    if creds:
                        logger.info(f"Using selected credential '{chosen.name}'")
                        return ResolvedCredential(
                            server=server,
                            credentials=creds,
                            strategy=ResolutionStrategy.SELECTED,
                            secret_name=chosen.name,
                        )
                logger.info(f"No stored credential selected for {server}")
            else:
                logger.warning(
                    f"{len(matches)} credentials stored for {server}; "
                    "not choosing one without prompting"
                )

        # 3. Interactive creation
        if not allow_prompt:
            raise NoCredentialFound(
                f"No usable credential for {server} in vault '{vault}'",
                server=server,
            )

        if prompter is None:
            raise CredentialInputRequired(
                f"No stored credential for {server}; credentials must be entered",
                server=server,
            )

        entered = prompter.enter_credentials(server)
        if entered is None or not entered.username:
            raise PromptCancelled(f"Credential entry for {server} cancelled", server=server)

        name = secret_name(server, entered.username, self.prefix)
        stored = False
        if prompter.confirm_save(server, entered.username):
            try:
                self.store.set_secret(vault, name, entered, server=normalize_server(server))
                stored = True
                logger.info(f"Stored credential '{name}' in vault '{vault}'")
            except (VCInventoryError, sqlite3.Error, OSError) as e:
                logger.warning(f"Could not store credential '{name}': {e}")

        return ResolvedCredential(
            server=server,
            credentials=entered,
            strategy=ResolutionStrategy.ENTERED,
            secret_name=name if stored else None,
            stored=stored,
        )

    @staticmethod
    def _select(prompter: CredentialPrompter, server: str, usernames: List[str]) -> Optional[int]:
        """Return a 0-based index, or None for any invalid answer."""
        answer = prompter.choose(server, usernames)
        try:
            number = int(str(answer).strip())
        except (TypeError, ValueError):
            return None
        if 1 <= number <= len(usernames):
            return number - 1
        return None

    # =========================================================================
    # Credential management
    # =========================================================================

    def username_of(self, info: SecretInfo, server: Optional[str] = None) -> str:
        """Username of a stored secret, from metadata when available."""
        if info.username:
            return info.username
        return parse_username(info.name, server, self.prefix)

    def candidates(self, server: str) -> List[SecretInfo]:
        """
        Stored secrets for one server.

        Name prefixes alone are ambiguous ("vc01" is a prefix of "vc01-b"),
        so secrets carrying server metadata must match it exactly.
        """
        vault = self._require_vault()
        pattern = f"{server_prefix(server, self.prefix)}*"

        return [
            info for info in self.store.list_secrets(vault, pattern=pattern)
            if self._belongs_to(info, server)
        ]

    @staticmethod
    def _belongs_to(info: SecretInfo, server: str) -> bool:
        """Secrets without server metadata are matched by name alone."""
        return info.server is None or info.server.lower() == normalize_server(server).lower()

    def list_credentials(self, server: Optional[str] = None) -> List[SecretInfo]:
        """List server credentials (without secrets)."""
        if server:
            return self.candidates(server)
        vault = self._require_vault()
        return self.store.list_secrets(vault, pattern=f"{self.prefix}-*")

    def store_credential(
        self,
        server: str,
        username: str,
        password: str,
        force: bool = False,
    ) -> str:
        """
        Store a credential for a server.

        Returns:
            Secret name.

        Raises:
            CredentialExists: Already stored and force is False.
        """
        vault = self._require_vault()
        name = secret_name(server, username, self.prefix)

        if not force and self.store.secret_exists(vault, name):
            raise CredentialExists(f"Credential '{name}' already exists", server=server)

        self.store.set_secret(
            vault,
            name,
            VaultCredentials(username=username, password=password),
            server=normalize_server(server),
        )
        logger.info(f"Stored credential '{name}' in vault '{vault}'")
        return name

    def remove_credential(self, server: str, username: str) -> bool:
        vault = self._require_vault()
        return self.store.remove_secret(vault, secret_name(server, username, self.prefix))

    def store_named_secret(self, name: str, username: str, password: str, force: bool = False):
        """Store a non-server secret (e.g. the Graph client secret) by exact name."""
        vault = self._require_vault()
        if not force and self.store.secret_exists(vault, name):
            raise CredentialExists(f"Secret '{name}' already exists")
        self.store.set_secret(vault, name, VaultCredentials(username=username, password=password))

    def get_named_secret(self, name: str) -> Optional[VaultCredentials]:
        vault = self._require_vault()
        return self.store.get_secret(vault, name)
