"""Command line flows against a temporary config and store."""

import functools

import pytest

from conftest import STORE_PASSWORD, FakeSession, make_vm, write_yaml

import vcinventory.cli.export as cli_export
from vcinventory.cli.main import build_parser, main
from vcinventory.jobs.runner import ExportRunner


@pytest.fixture
def config_file(tmp_path):
    return write_yaml(tmp_path / "cli.yaml", f"""
source_server_host: vc01.lab
vault_db: {tmp_path / 'cli-vault.db'}
export:
  output_dir: {tmp_path / 'out'}
""")


@pytest.fixture
def cli(config_file):
    def run(*args):
        return main(["--config", str(config_file), *args])
    return run


@pytest.fixture
def typed_password(monkeypatch):
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "vc-password")


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_email_flags_default_to_config():
    parser = build_parser()
    assert parser.parse_args(["export"]).email is None
    assert parser.parse_args(["export", "--email"]).email is True
    assert parser.parse_args(["export", "--no-email"]).email is False


def test_export_accepts_global_options_after_subcommand():
    parser = build_parser()

    args = parser.parse_args(["export", "--config", "x.yaml", "--debug"])
    assert args.config == "x.yaml"
    assert args.debug is True

    args = parser.parse_args(["--config", "y.yaml", "--debug", "export"])
    assert args.config == "y.yaml"
    assert args.debug is True

    args = parser.parse_args(["export"])
    assert args.config is None
    assert args.debug is False


def test_invalid_config_exits_non_zero(tmp_path, capsys):
    bad = write_yaml(tmp_path / "bad.yaml", "filters:\n  power_states: [Running]\n")
    assert main(["--config", str(bad), "vault", "list"]) == 1
    assert "Running" in capsys.readouterr().err


def test_init_keeps_existing_config_unless_forced(tmp_path, config_file):
    write_yaml(config_file, config_file.read_text() + f"base_dir: {tmp_path / 'base'}\n")

    assert main(["--config", str(config_file), "init"]) == 1
    assert "vcenter01.example.com" not in config_file.read_text()

    assert main(["--config", str(config_file), "init", "--force"]) == 0
    text = config_file.read_text()
    assert "source_server_host: vcenter01.example.com" in text
    assert str(tmp_path / "cli-vault.db") in text
    assert (tmp_path / "base").is_dir()
    assert (tmp_path / "out").is_dir()


def test_vault_init_and_list(cli, capsys):
    assert cli("vault", "init", "--vault-pass", STORE_PASSWORD) == 0
    assert "Vault ready: VCenterVault" in capsys.readouterr().out

    assert cli("vault", "list") == 0
    out = capsys.readouterr().out
    assert "VCenterVault (preferred, default)" in out


def test_vault_init_rejects_short_password(cli):
    assert cli("vault", "init", "--vault-pass", "short") == 1


def test_vault_list_before_init(cli, capsys):
    assert cli("vault", "list") == 1


def test_creds_add_list_remove(cli, capsys, typed_password):
    cli("vault", "init", "--vault-pass", STORE_PASSWORD)

    assert cli("creds", "add", "vc01.lab", "-u", "admin", "--vault-pass", STORE_PASSWORD) == 0
    assert "VCenter-vc01.lab-admin" in capsys.readouterr().out

    assert cli("creds", "list") == 0
    out = capsys.readouterr().out
    assert "Username: admin" in out
    assert "vc-password" not in out

    assert cli("creds", "remove", "vc01.lab", "-u", "admin", "-y", "--vault-pass", STORE_PASSWORD) == 0
    assert cli("creds", "remove", "vc01.lab", "-u", "admin", "-y", "--vault-pass", STORE_PASSWORD) == 1


def test_creds_add_existing_declined(cli, capsys, typed_password, monkeypatch):
    cli("vault", "init", "--vault-pass", STORE_PASSWORD)
    cli("creds", "add", "vc01.lab", "-u", "admin", "--vault-pass", STORE_PASSWORD)
    monkeypatch.setattr("builtins.input", lambda prompt="": "n")

    assert cli("creds", "add", "vc01.lab", "-u", "admin", "--vault-pass", STORE_PASSWORD) == 0
    assert "Aborted" in capsys.readouterr().out


def test_creds_with_locked_store_and_no_password(cli, capsys, typed_password, monkeypatch):
    cli("vault", "init", "--vault-pass", STORE_PASSWORD)
    cli("creds", "add", "vc01.lab", "-u", "admin", "--vault-pass", STORE_PASSWORD)
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "wrong-password")

    assert cli("creds", "test", "vc01.lab", "-u", "admin", "--no-prompt") == 1
    assert "Invalid secret store password" in capsys.readouterr().out


def test_export_unattended(cli, capsys, typed_password, monkeypatch, tmp_path):
    cli("vault", "init", "--vault-pass", STORE_PASSWORD)
    cli("creds", "add", "vc01.lab", "-u", "admin", "--vault-pass", STORE_PASSWORD)
    capsys.readouterr()

    sessions = []

    def fake_session(server, credentials, port, verify_ssl):
        session = FakeSession(server, [make_vm("web-1"), make_vm("web-2")])
        sessions.append(session)
        return session

    monkeypatch.setattr(cli_export, "ExportRunner",
                        functools.partial(ExportRunner, session_factory=fake_session))
    monkeypatch.setenv("VCINVENTORY_VAULT_PASS", STORE_PASSWORD)

    assert cli("export", "--no-prompt", "--no-email") == 0

    out = capsys.readouterr().out
    assert "VMs:      2 exported of 2" in out
    assert sessions[0].disconnected
    assert list((tmp_path / "out").glob("VMInventory_vc01.lab_*.xlsx"))


def test_export_without_credentials_hints_setup(cli, capsys, monkeypatch):
    cli("vault", "init", "--vault-pass", STORE_PASSWORD)
    capsys.readouterr()
    monkeypatch.setattr(cli_export, "ExportRunner",
                        functools.partial(ExportRunner, session_factory=lambda *a: pytest.fail("no login")))

    assert cli("export", "--no-prompt", "--vault-pass", STORE_PASSWORD) == 1

    err = capsys.readouterr().err
    assert "No usable credential" in err
    assert "vcinventory creds add vc01.lab" in err
