"""Secret store: configuration, locking, vaults and secrets."""

import pytest

from conftest import STORE_PASSWORD

import vcinventory.vault.store as store_module
from vcinventory.errors import StoreNotConfigured, VaultLocked, VaultUnavailable
from vcinventory.vault.models import StoreConfiguration, VaultCredentials
from vcinventory.vault.store import SecretStore


class TestConfiguration:

    def test_unconfigured_store(self, empty_store):
        assert not empty_store.is_configured()
        with pytest.raises(StoreNotConfigured):
            empty_store.get_configuration()

    def test_configure_applies_defaults_and_unlocks(self, empty_store):
        assert empty_store.configure(STORE_PASSWORD)

        config = empty_store.get_configuration()
        assert config.authentication == "Password"
        assert config.password_timeout == 900
        assert config.interaction == "Prompt"
        assert empty_store.is_unlocked

    def test_configure_twice_rejected(self, store):
        with pytest.raises(ValueError):
            store.configure(STORE_PASSWORD)

    def test_password_required(self, empty_store):
        with pytest.raises(ValueError):
            empty_store.configure("")

    def test_unlock_with_wrong_password(self, store):
        store.lock()
        assert not store.unlock("wrong")
        assert not store.is_unlocked
        assert store.unlock(STORE_PASSWORD)

    def test_unlock_expires_after_timeout(self, store, monkeypatch):
        now = store_module.time.monotonic()
        monkeypatch.setattr(store_module.time, "monotonic", lambda: now + 901)
        assert not store.is_unlocked


class TestVaults:

    def test_register_requires_configuration(self, empty_store):
        with pytest.raises(StoreNotConfigured):
            empty_store.register_vault("VCenterVault")

    def test_register_and_list(self, store):
        assert store.register_vault("OtherVault") is True
        assert store.register_vault("OtherVault") is False

        vaults = {v.name: v for v in store.list_vaults()}
        assert set(vaults) == {"VCenterVault", "OtherVault"}
        assert vaults["VCenterVault"].is_default
        assert vaults["OtherVault"].backend == "SecretStore"

    def test_vault_names_case_insensitive(self, store):
        assert store.vault_exists("vcentervault")

    def test_secret_ops_on_missing_vault(self, store):
        with pytest.raises(VaultUnavailable):
            store.get_secret("Nope", "x")
        with pytest.raises(VaultUnavailable):
            store.set_secret("Nope", "x", VaultCredentials("u", "p"))


class TestSecrets:

    def test_set_get_round_trip(self, store):
        store.set_secret("VCenterVault", "VCenter-vc01-admin", VaultCredentials("admin", "s3cret"),
                         server="vc01")
        creds = store.get_secret("VCenterVault", "VCenter-vc01-admin")

        assert creds.username == "admin"
        assert creds.password == "s3cret"

    def test_secret_not_stored_in_plaintext(self, store):
        store.set_secret("VCenterVault", "n", VaultCredentials("admin", "plain-text-secret"))
        assert b"plain-text-secret" not in store.db_path.read_bytes()

    def test_get_missing_returns_none(self, store):
        assert store.get_secret("VCenterVault", "missing") is None

    def test_overwrite_keeps_single_row(self, store):
        first = store.set_secret("VCenterVault", "n", VaultCredentials("admin", "one"))
        second = store.set_secret("VCenterVault", "n", VaultCredentials("admin", "two"))

        assert first == second
        assert store.get_secret("VCenterVault", "n").password == "two"
        assert len(store.list_secrets("VCenterVault")) == 1

    def test_list_with_pattern(self, store):
        for name in ["VCenter-vc01-a", "VCenter-vc01-b", "VCenter-vc02-a"]:
            store.set_secret("VCenterVault", name, VaultCredentials("u", "p"))

        listed = [s.name for s in store.list_secrets("VCenterVault", pattern="VCenter-vc01-*")]
        assert listed == ["VCenter-vc01-a", "VCenter-vc01-b"]

    def test_remove(self, store):
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        assert store.remove_secret("VCenterVault", "n")
        assert not store.remove_secret("VCenterVault", "n")
        assert not store.secret_exists("VCenterVault", "n")

    def test_listing_does_not_need_unlock(self, store):
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        store.lock()
        store.password_provider = None

        assert [s.username for s in store.list_secrets("VCenterVault")] == ["u"]


class TestLocking:

    def test_locked_store_prompts_on_demand(self, store):
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        store.lock()
        calls = []

        def provider():
            calls.append(1)
            return STORE_PASSWORD

        store.password_provider = provider
        assert store.get_secret("VCenterVault", "n").password == "p"
        assert calls == [1]

    def test_locked_store_without_provider(self, store):
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        store.lock()
        store.password_provider = None

        with pytest.raises(VaultLocked):
            store.get_secret("VCenterVault", "n")

    def test_wrong_password_from_provider(self, store):
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        store.lock()
        store.password_provider = lambda: "wrong"

        with pytest.raises(VaultLocked):
            store.get_secret("VCenterVault", "n")

    def test_interaction_none_never_prompts(self, tmp_path):
        store = SecretStore(db_path=tmp_path / "other.db", password_provider=lambda: STORE_PASSWORD)
        store.configure(STORE_PASSWORD, StoreConfiguration(interaction="None"))
        store.register_vault("VCenterVault")
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        store.lock()

        with pytest.raises(VaultLocked):
            store.get_secret("VCenterVault", "n")

    def test_no_authentication_unlocks_itself(self, tmp_path):
        store = SecretStore(db_path=tmp_path / "open.db")
        store.configure(None, StoreConfiguration(authentication="None"))
        store.register_vault("VCenterVault")
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        store.lock()

        assert store.get_secret("VCenterVault", "n").password == "p"

    def test_lock_expiry_reprompts(self, store, monkeypatch):
        store.set_secret("VCenterVault", "n", VaultCredentials("u", "p"))
        calls = []

        def provider():
            calls.append(1)
            return STORE_PASSWORD

        store.password_provider = provider
        now = store_module.time.monotonic()
        monkeypatch.setattr(store_module.time, "monotonic", lambda: now + 1000)

        assert store.get_secret("VCenterVault", "n").password == "p"
        assert calls == [1]


def test_secret_info_without_unlock(store):
    store.set_secret("VCenterVault", "VCenter-vc01-admin", VaultCredentials("admin", "p"), server="vc01")
    store.lock()
    store.password_provider = None

    info = store.get_secret_info("VCenterVault", "VCenter-vc01-admin")
    assert (info.username, info.server) == ("admin", "vc01")
    assert store.get_secret_info("VCenterVault", "missing") is None
