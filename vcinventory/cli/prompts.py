"""
Console prompting.

Path: vcinventory/cli/prompts.py

Interactive input for the CLI: the credential prompter handed to the
resolver and the store password provider.
"""

import getpass
import os
from typing import List, Optional

from vcinventory.vault.models import VaultCredentials
from vcinventory.vault.resolver import CredentialPrompter

VAULT_PASS_ENV = "VCINVENTORY_VAULT_PASS"


class ConsolePrompter(CredentialPrompter):
    """Prompt on the terminal with input()/getpass()."""

    def choose(self, server: str, usernames: List[str]) -> Optional[str]:
        print(f"\nMultiple stored credentials for {server}:")
        for number, username in enumerate(usernames, start=1):
            print(f"  {number}. {username}")
        try:
            return input(f"Select credential [1-{len(usernames)}], Enter to add a new one: ")
        except EOFError:
            return None

    def enter_credentials(self, server: str) -> Optional[VaultCredentials]:
        print(f"\nEnter credentials for {server} (Ctrl+C to cancel)")
        try:
            username = input("Username: ").strip()
            if not username:
                return None
            password = getpass.getpass(f"Password for {username}: ")
        except (EOFError, KeyboardInterrupt):
            print()
            return None
        return VaultCredentials(username=username, password=password)

    def confirm_save(self, server: str, username: str) -> bool:
        return confirm(f"Save credential for {username}@{server} to the vault?")


def confirm(question: str) -> bool:
    try:
        answer = input(f"{question} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def make_password_provider(vault_pass: Optional[str] = None):
    """
    Store password provider.

    Order: explicit value, VCINVENTORY_VAULT_PASS, then getpass on demand.
    """
    def provider() -> Optional[str]:
        password = vault_pass or os.environ.get(VAULT_PASS_ENV)
        if password:
            return password
        try:
            return getpass.getpass("Vault password: ")
        except (EOFError, KeyboardInterrupt):
            return None

    return provider
