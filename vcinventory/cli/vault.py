"""
Vault CLI handler.

Handles: vcinventory vault <command>
"""

import getpass

from vcinventory.cli.prompts import make_password_provider
from vcinventory.vault.models import StoreConfiguration
from vcinventory.vault.resolver import CredentialResolver
from vcinventory.vault.store import SecretStore


def handle_vault(args) -> int:
    """Handle vault subcommand."""

    if not args.vault_command:
        print("Usage: vcinventory vault <command>")
        print("Commands: init, list")
        return 1

    store = SecretStore(password_provider=make_password_provider(args.vault_pass))
    resolver = CredentialResolver(store, vault_name=args.vault)

    if args.vault_command == "init":
        return _vault_init(store, resolver, args)
    elif args.vault_command == "list":
        return _vault_list(store, resolver)
    else:
        print(f"Unknown vault command: {args.vault_command}")
        return 1


def _vault_init(store: SecretStore, resolver: CredentialResolver, args) -> int:
    """Configure store and create the vault."""
    print(f"Secret store: {store.db_path}")

    if store.is_configured():
        print("Secret store already configured")
    else:
        print("Configuring secret store...\n")
        password = args.vault_pass
        if not password:
            password = getpass.getpass("Enter store password: ")
            confirm = getpass.getpass("Confirm store password: ")

            if password != confirm:
                print("Error: Passwords do not match")
                return 1

        if len(password) < 8:
            print("Error: Password must be at least 8 characters")
            return 1

        try:
            store.configure(password, StoreConfiguration())
        except ValueError as e:
            print(f"Error: {e}")
            return 1
        print("✓ Secret store configured")

    vault_name = resolver.resolve_preferred_vault()
    if not resolver.ensure_vault(vault_name):
        print(f"Error: Could not create vault '{vault_name}'")
        return 1

    print(f"✓ Vault ready: {vault_name}")
    print("\nNext steps:")
    print("  vcinventory creds add <server> --username <user>")
    return 0


def _vault_list(store: SecretStore, resolver: CredentialResolver) -> int:
    """List vaults."""
    if not store.is_configured():
        print("Secret store not configured. Run 'vcinventory vault init'.")
        return 1

    vaults = store.list_vaults()
    if not vaults:
        print("No vaults registered")
        return 0

    preferred = resolver.resolve_preferred_vault()
    print(f"Vaults ({len(vaults)}):\n")
    for v in vaults:
        markers = []
        if v.name.lower() == preferred.lower():
            markers.append("preferred")
        if v.is_default:
            markers.append("default")
        marker = f" ({', '.join(markers)})" if markers else ""
        print(f"  {v.name}{marker}")
        print(f"    Backend: {v.backend}")
        print(f"    Created: {v.created_at}")
        print()

    return 0
