"""
vcinventory CLI - Main entry point.

Usage:
    vcinventory init                   # Write default config
    vcinventory vault <command> [options]
    vcinventory creds <command> [options]
    vcinventory export [options]
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from vcinventory import __version__
from vcinventory.core.config import Config, set_config
from vcinventory.core.log import configure_logging
from vcinventory.errors import ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vcinventory",
        description="vCenter VM inventory export with encrypted credential vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  init        Write a default config file
  vault       Manage the secret store and vaults
  creds       Manage vCenter credentials
  export      Export VM inventory to Excel

Examples:
  # First-time setup
  vcinventory init
  vcinventory vault init
  vcinventory creds add vcenter01.lab --username administrator@vsphere.local

  # Export (uses source_server_host from config)
  vcinventory export
  vcinventory export --server vcenter02.lab --no-email

  # Unattended run: no prompts, store password from the environment
  VCINVENTORY_VAULT_PASS=... vcinventory export --no-prompt

Use 'vcinventory <command> --help' for more information on a command.
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--config", "-c", help="Config file (default: ~/.vcinventory/config.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    init_parser = subparsers.add_parser(
        "init",
        help="Write a default config file",
        description="Create the config file and directories for a fresh installation",
    )
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite an existing config file")

    vault_parser = subparsers.add_parser(
        "vault",
        help="Manage the secret store and vaults",
        description="Manage the secret store and vaults",
    )
    _setup_vault_parser(vault_parser)

    creds_parser = subparsers.add_parser(
        "creds",
        help="Manage vCenter credentials",
        description="Add, list, remove and test stored vCenter credentials",
    )
    _setup_creds_parser(creds_parser)

    export_parser = subparsers.add_parser(
        "export",
        help="Export VM inventory",
        description="Connect to vCenter, filter VMs and write an Excel report",
    )
    _setup_export_parser(export_parser)

    return parser


def _add_vault_pass(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--vault-pass",
        help="Secret store password (or set VCINVENTORY_VAULT_PASS)",
    )
    parser.add_argument("--vault", help="Vault name (an existing VCenterVault always wins)")


def _setup_vault_parser(parser: argparse.ArgumentParser):
    """Set up vault subcommand parser."""
    subparsers = parser.add_subparsers(dest="vault_command", metavar="<action>")

    init_parser = subparsers.add_parser("init", help="Configure the secret store and create the vault")
    _add_vault_pass(init_parser)

    list_parser = subparsers.add_parser("list", help="List registered vaults")
    _add_vault_pass(list_parser)


def _setup_creds_parser(parser: argparse.ArgumentParser):
    """Set up creds subcommand parser."""
    subparsers = parser.add_subparsers(dest="creds_command", metavar="<action>")

    add_parser = subparsers.add_parser("add", help="Store a credential for a server")
    add_parser.add_argument("server", help="vCenter/ESXi hostname or IP")
    add_parser.add_argument("--username", "-u", required=True, help="Login username")
    add_parser.add_argument("--force", "-f", action="store_true", help="Overwrite without asking")
    _add_vault_pass(add_parser)

    secret_parser = subparsers.add_parser("add-secret", help="Store a named secret (e.g. Graph client secret)")
    secret_parser.add_argument("name", help="Secret name")
    secret_parser.add_argument("--username", "-u", help="Associated user or client id")
    secret_parser.add_argument("--force", "-f", action="store_true", help="Overwrite without asking")
    _add_vault_pass(secret_parser)

    list_parser = subparsers.add_parser("list", help="List stored credentials")
    list_parser.add_argument("--server", "-s", help="Only credentials for this server")
    _add_vault_pass(list_parser)

    remove_parser = subparsers.add_parser("remove", help="Remove a stored credential")
    remove_parser.add_argument("server", help="vCenter/ESXi hostname or IP")
    remove_parser.add_argument("--username", "-u", required=True, help="Login username")
    remove_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    _add_vault_pass(remove_parser)

    test_parser = subparsers.add_parser("test", help="Resolve a credential and try to log in")
    test_parser.add_argument("server", help="vCenter/ESXi hostname or IP")
    test_parser.add_argument("--username", "-u", help="Preferred username")
    test_parser.add_argument("--no-prompt", action="store_true", help="Fail instead of prompting")
    _add_vault_pass(test_parser)


def _setup_export_parser(parser: argparse.ArgumentParser):
    """Set up export subcommand parser."""
    # Also accepted after the subcommand; SUPPRESS keeps a value given before it
    parser.add_argument("--config", "-c", default=argparse.SUPPRESS,
                        help="Config file (default: ~/.vcinventory/config.yaml)")
    parser.add_argument("--debug", action="store_true", default=argparse.SUPPRESS,
                        help="Enable debug logging")
    parser.add_argument("--server", "-s", help="Override source_server_host")
    parser.add_argument("--username", "-u", help="Override preferred_username")
    parser.add_argument("--output-dir", "-o", help="Override export.output_dir")
    parser.add_argument("--no-prompt", action="store_true", help="Fail instead of prompting (unattended runs)")

    mail_group = parser.add_mutually_exclusive_group()
    mail_group.add_argument("--email", dest="email", action="store_true", default=None,
                            help="Mail the report even if email.enabled is false")
    mail_group.add_argument("--no-email", dest="email", action="store_false",
                            help="Do not mail the report")
    _add_vault_pass(parser)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = Config.load(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    set_config(config)

    configure_logging(
        level="DEBUG" if args.debug else config.logging.level,
        log_file=config.logging.file if args.command == "export" else None,
    )

    # Dispatch to subcommand handler
    if args.command == "init":
        return _handle_init(config, args)
    elif args.command == "vault":
        from vcinventory.cli.vault import handle_vault

        return handle_vault(args)
    elif args.command == "creds":
        from vcinventory.cli.creds import handle_creds

        return handle_creds(args)
    elif args.command == "export":
        from vcinventory.cli.export import handle_export

        return handle_export(args)
    else:
        parser.print_help()
        return 1


def _handle_init(config: Config, args) -> int:
    """Write default config."""
    if config.config_file.exists():
        if not args.force:
            print(f"Config already exists: {config.config_file}")
            return 1
        config.config_file.unlink()

    config.save_default_config()
    print(f"✓ Wrote {config.config_file}")
    print("\nNext steps:")
    print(f"  Edit {config.config_file} (source_server_host, filters)")
    print("  vcinventory vault init")
    print("  vcinventory creds add <server> --username <user>")
    return 0


if __name__ == "__main__":
    sys.exit(main())
