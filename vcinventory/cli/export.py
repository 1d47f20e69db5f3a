"""
Export CLI handler.

Path: vcinventory/cli/export.py

Handles: vcinventory export [options]
"""

import sys
from pathlib import Path

from vcinventory.cli.prompts import ConsolePrompter, make_password_provider
from vcinventory.core.config import get_config
from vcinventory.jobs.runner import ExportRunner
from vcinventory.vault.resolver import CredentialResolver
from vcinventory.vault.store import SecretStore


def handle_export(args) -> int:
    """Handle export subcommand."""
    config = get_config()

    for warning in config.check_warnings():
        print(f"Warning: {warning}", file=sys.stderr)

    store = SecretStore(password_provider=make_password_provider(args.vault_pass))
    resolver = CredentialResolver(store, vault_name=args.vault)

    runner = ExportRunner(
        resolver=resolver,
        config=config,
        prompter=None if args.no_prompt else ConsolePrompter(),
        allow_prompt=not args.no_prompt,
    )

    try:
        result = runner.run(
            server=args.server,
            preferred_username=args.username,
            output_dir=Path(args.output_dir).expanduser() if args.output_dir else None,
            send_mail=args.email,
        )
    finally:
        store.lock()

    print("=" * 60)
    if result.output_path:
        print(f"Report:   {result.output_path}")
        print(f"VMs:      {result.exported_vms} exported of {result.total_vms}")
    if result.mail_sent:
        print("Mail:     sent")
    elif result.mail_sent is False:
        print(f"Mail:     FAILED - {result.mail_error}")
    print(f"Duration: {result.duration_ms / 1000:.1f}s")

    if result.error:
        print(f"\nError: {result.error}", file=sys.stderr)
        if result.suggest_credential_setup:
            server = result.server or "<server>"
            print(
                f"Check the stored credential with 'vcinventory creds test {server}' "
                f"or re-add it with 'vcinventory creds add {server} --username <user>'.",
                file=sys.stderr,
            )

    return 0 if result.success else 1
