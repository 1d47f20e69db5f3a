"""
Credentials CLI handler.

Path: vcinventory/cli/creds.py

Handles: vcinventory creds <command> [options]

Commands:
    add         Store a credential for a server
    add-secret  Store a named secret (Graph client secret)
    list        List stored credentials
    remove      Remove a stored credential
    test        Resolve a credential and try to log in
"""

import getpass

from vcinventory.cli.prompts import ConsolePrompter, confirm, make_password_provider
from vcinventory.core.config import get_config
from vcinventory.errors import CredentialExists, VCInventoryError
from vcinventory.inventory.session import VCenterSession
from vcinventory.vault.resolver import CredentialResolver
from vcinventory.vault.store import SecretStore


def handle_creds(args) -> int:
    """Handle creds subcommand."""

    if not args.creds_command:
        print("Usage: vcinventory creds <command>")
        print("Commands: add, add-secret, list, remove, test")
        return 1

    store = SecretStore(password_provider=make_password_provider(args.vault_pass))
    resolver = CredentialResolver(store, vault_name=args.vault)

    handlers = {
        "add": _handle_add,
        "add-secret": _handle_add_secret,
        "list": _handle_list,
        "remove": _handle_remove,
        "test": _handle_test,
    }
    handler = handlers.get(args.creds_command)
    if handler is None:
        print(f"Unknown command: {args.creds_command}")
        return 1

    try:
        return handler(resolver, args)
    except VCInventoryError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.lock()


def _handle_add(resolver: CredentialResolver, args) -> int:
    """Store a server credential."""
    if not resolver.ensure_vault():
        print("Error: Vault unavailable. Run 'vcinventory vault init' first.")
        return 1

    password = getpass.getpass(f"Password for {args.username}@{args.server}: ")
    if not password:
        print("Error: Password is required")
        return 1

    try:
        name = resolver.store_credential(args.server, args.username, password, force=args.force)
    except CredentialExists:
        if not confirm(f"Credential for {args.username}@{args.server} exists. Overwrite?"):
            print("Aborted")
            return 0
        name = resolver.store_credential(args.server, args.username, password, force=True)

    print(f"\n✓ Stored credential '{name}' in vault '{resolver.vault_name}'")
    return 0


def _handle_add_secret(resolver: CredentialResolver, args) -> int:
    """Store a named secret."""
    if not resolver.ensure_vault():
        print("Error: Vault unavailable. Run 'vcinventory vault init' first.")
        return 1

    secret = getpass.getpass(f"Secret value for '{args.name}': ")
    if not secret:
        print("Error: Secret is required")
        return 1

    username = args.username or args.name
    try:
        resolver.store_named_secret(args.name, username, secret, force=args.force)
    except CredentialExists:
        if not confirm(f"Secret '{args.name}' exists. Overwrite?"):
            print("Aborted")
            return 0
        resolver.store_named_secret(args.name, username, secret, force=True)

    print(f"\n✓ Stored secret '{args.name}'")
    return 0


def _handle_list(resolver: CredentialResolver, args) -> int:
    """List credentials (no secrets shown)."""
    creds = resolver.list_credentials(server=args.server)

    if not creds:
        print("No credentials stored")
        print("\nAdd credentials with: vcinventory creds add <server> --username <user>")
        return 0

    print(f"Credentials in '{resolver.vault_name}' ({len(creds)}):\n")
    for c in creds:
        print(f"  {c.name}")
        print(f"    Server:   {c.server or '(unknown)'}")
        print(f"    Username: {resolver.username_of(c, args.server)}")
        print(f"    Updated:  {c.updated_at}")
        print()

    return 0


def _handle_remove(resolver: CredentialResolver, args) -> int:
    """Remove a credential."""
    if not args.yes:
        if not confirm(f"Remove credential for {args.username}@{args.server}?"):
            print("Aborted")
            return 0

    if resolver.remove_credential(args.server, args.username):
        print(f"✓ Removed credential for {args.username}@{args.server}")
        return 0

    print(f"Error: No credential for {args.username}@{args.server}")
    return 1


def _handle_test(resolver: CredentialResolver, args) -> int:
    """Resolve a credential and log in."""
    config = get_config()

    resolved = resolver.resolve(
        args.server,
        preferred_username=args.username,
        allow_prompt=not args.no_prompt,
        prompter=ConsolePrompter(),
    )
    print(f"Resolved credential: {resolved.username} ({resolved.strategy.value})")

    with VCenterSession.connect(args.server, resolved.credentials, config.port, config.verify_ssl):
        print(f"✓ Login to {args.server} succeeded")
    return 0
