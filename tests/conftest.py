"""Shared fixtures: isolated config, temporary secret store, fake VMs."""

import logging
from pathlib import Path
from types import SimpleNamespace
from typing import List, Optional

import pytest

from vcinventory.core.config import Config, ExportConfig, set_config
from vcinventory.vault.models import VaultCredentials
from vcinventory.vault.resolver import CredentialPrompter, CredentialResolver
from vcinventory.vault.store import SecretStore

STORE_PASSWORD = "correct-horse-battery"
GB = 1024 ** 3


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Every test gets its own config, vault file and report directory."""
    monkeypatch.delenv("VCINVENTORY_VAULT_PASS", raising=False)
    monkeypatch.delenv("VCINVENTORY_CONFIG", raising=False)
    # Fast key derivation for tests
    monkeypatch.setattr(SecretStore, "KDF_ITERATIONS", 1000)

    config = Config(
        base_dir=tmp_path,
        config_file=tmp_path / "config.yaml",
        vault_db=tmp_path / "vault.db",
        export=ExportConfig(output_dir=tmp_path / "reports"),
    )
    set_config(config)
    yield config
    set_config(None)

    package_logger = logging.getLogger("vcinventory")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def empty_store(tmp_path) -> SecretStore:
    """Store that has never been configured."""
    return SecretStore(db_path=tmp_path / "vault.db", password_provider=lambda: STORE_PASSWORD)


@pytest.fixture
def store(empty_store) -> SecretStore:
    """Configured, unlocked store with the canonical vault registered."""
    empty_store.configure(STORE_PASSWORD)
    empty_store.register_vault("VCenterVault", is_default=True)
    return empty_store


@pytest.fixture
def resolver(store) -> CredentialResolver:
    return CredentialResolver(store)


class ScriptedPrompter(CredentialPrompter):
    """Prompter returning canned answers and recording every call."""

    def __init__(
        self,
        choice=None,
        entered: Optional[VaultCredentials] = None,
        save: bool = False,
    ):
        self.choice = choice
        self.entered = entered
        self.save = save
        self.calls: List[tuple] = []

    def choose(self, server, usernames):
        self.calls.append(("choose", server, list(usernames)))
        return self.choice

    def enter_credentials(self, server):
        self.calls.append(("enter", server))
        return self.entered

    def confirm_save(self, server, username):
        self.calls.append(("confirm", server, username))
        return self.save

    def called(self, kind: str) -> bool:
        return any(call[0] == kind for call in self.calls)


class NoPromptAllowed(CredentialPrompter):
    """Fails the test if any prompt is shown."""

    def choose(self, server, usernames):
        pytest.fail("choose() should not be called")

    def enter_credentials(self, server):
        pytest.fail("enter_credentials() should not be called")

    def confirm_save(self, server, username):
        pytest.fail("confirm_save() should not be called")


def make_vm(
    name: str = "web-1",
    power_state: str = "poweredOn",
    guest=None,
    annotation: str = "",
):
    """Build an object shaped like a pyVmomi VirtualMachine."""
    nic = SimpleNamespace(
        macAddress="00:50:56:aa:bb:cc",
        deviceInfo=SimpleNamespace(label="Network adapter 1"),
        backing=SimpleNamespace(deviceName="VM Network"),
    )
    disk = SimpleNamespace(
        deviceInfo=SimpleNamespace(label="Hard disk 1"),
        backing=SimpleNamespace(fileName="[ds1] web-1/web-1.vmdk"),
    )
    if guest is None:
        guest = SimpleNamespace(
            guestFullName="Ubuntu Linux (64-bit)",
            toolsVersion="12352",
            toolsStatus="toolsOk",
            ipAddress="10.0.0.5",
            net=[SimpleNamespace(ipAddress=["10.0.0.5", "fe80::250:56ff:feaa:bbcc"])],
        )

    return SimpleNamespace(
        name=name,
        config=SimpleNamespace(
            uuid="4201a1b2-c3d4-e5f6-0718-293a4b5c6d7e",
            annotation=annotation,
            version="vmx-19",
            hardware=SimpleNamespace(numCPU=2, memoryMB=4096, device=[disk, nic]),
        ),
        runtime=SimpleNamespace(
            powerState=power_state,
            host=SimpleNamespace(name="esx01.lab", parent=SimpleNamespace(name="cluster-a")),
        ),
        guest=guest,
        summary=SimpleNamespace(
            storage=SimpleNamespace(committed=10 * GB, uncommitted=5 * GB),
        ),
        datastore=[SimpleNamespace(name="ds1"), SimpleNamespace(name="ds2")],
        parent=SimpleNamespace(name="Production"),
    )


class FakeSession:
    """Stand-in for VCenterSession."""

    def __init__(self, server: str, vms: list):
        self.server = server
        self._vms = vms
        self.disconnected = False

    def virtual_machines(self):
        return iter(self._vms)

    def disconnect(self):
        self.disconnected = True


def write_yaml(path: Path, text: str) -> Path:
    path.write_text(text)
    return path
