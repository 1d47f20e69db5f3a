"""
Secret Store - encrypted local vault storage.

This module handles:
- One-time store configuration (password, unlock timeout, interaction)
- Unlocking the store, with on-demand password prompting
- Registering named vaults inside the store
- Adding, removing, listing and reading secrets in a vault

Secrets are encrypted with Fernet symmetric encryption. The key is derived
from the store password via PBKDF2. Username and server are kept as plain
columns so secrets can be listed without unlocking.
"""

import base64
import hashlib
import logging
import os
import sqlite3
import time
from pathlib import Path
from typing import Callable, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from vcinventory.core.config import get_config
from vcinventory.errors import StoreNotConfigured, VaultLocked, VaultUnavailable
from vcinventory.inventory.filters import compile_glob, glob_match
from vcinventory.vault.models import SecretInfo, StoreConfiguration, VaultCredentials, VaultInfo


logger = logging.getLogger(__name__)

BACKEND_NAME = "SecretStore"

PasswordProvider = Callable[[], Optional[str]]


class SecretStore:
    """
    Encrypted, password-protected secret store holding named vaults.

    Usage:
        store = SecretStore(password_provider=lambda: getpass.getpass())

        # First use on a machine
        store.configure("master-password")
        store.register_vault("VCenterVault")

        store.set_secret("VCenterVault", "VCenter-vc01-admin",
                         VaultCredentials("admin", "secret"))
        creds = store.get_secret("VCenterVault", "VCenter-vc01-admin")

        store.lock()
    """

    KDF_ITERATIONS = 480000

    def __init__(
        self,
        db_path: Optional[Path] = None,
        password_provider: Optional[PasswordProvider] = None,
    ):
        """
        Initialize store.

        Args:
            db_path: Path to vault.db. If None, uses config default.
            password_provider: Called when the store is locked and its
                interaction mode allows prompting.
        """
        config = get_config()
        self.db_path = Path(db_path) if db_path else config.vault_db
        self.password_provider = password_provider
        self._fernet: Optional[Fernet] = None
        self._unlocked_until: Optional[float] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection, creating schema if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        self._ensure_schema(conn)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection):
        """Create database schema if it doesn't exist."""
        conn.executescript("""
            -- Store configuration and key material
            CREATE TABLE IF NOT EXISTS store_metadata (
                id INTEGER PRIMARY KEY,
                key TEXT UNIQUE NOT NULL,
                value TEXT
            );

            -- Registered vaults
            CREATE TABLE IF NOT EXISTS vaults (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL COLLATE NOCASE,
                backend TEXT NOT NULL,
                is_default INTEGER DEFAULT 0,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            -- Encrypted secrets
            CREATE TABLE IF NOT EXISTS secrets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                vault TEXT NOT NULL COLLATE NOCASE,
                name TEXT NOT NULL COLLATE NOCASE,
                username TEXT NOT NULL,
                server TEXT,
                secret_encrypted TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (vault, name)
            );

            CREATE INDEX IF NOT EXISTS idx_secrets_vault ON secrets(vault);
            CREATE INDEX IF NOT EXISTS idx_secrets_server ON secrets(server);
        """)
        conn.commit()

    def _derive_key(self, password: str, salt: bytes) -> bytes:
        """Derive encryption key from password using PBKDF2."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.KDF_ITERATIONS,
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode()))

    def _read_metadata(self) -> dict:
        conn = self._get_connection()
        rows = conn.execute("SELECT key, value FROM store_metadata").fetchall()
        conn.close()
        return {row["key"]: row["value"] for row in rows}

    # =========================================================================
    # Configuration / unlock
    # =========================================================================

    def is_configured(self) -> bool:
        """Check if the store has been configured on this machine."""
        return "salt" in self._read_metadata()

    def get_configuration(self) -> StoreConfiguration:
        """
        Read store configuration.

        Raises:
            StoreNotConfigured: Store never configured.
        """
        meta = self._read_metadata()
        if "salt" not in meta:
            raise StoreNotConfigured(f"Secret store not configured: {self.db_path}")

        return StoreConfiguration(
            authentication=meta.get("authentication", "Password"),
            password_timeout=int(meta.get("password_timeout", 900)),
            interaction=meta.get("interaction", "Prompt"),
        )

    def configure(
        self,
        password: Optional[str],
        configuration: Optional[StoreConfiguration] = None,
    ) -> bool:
        """
        Configure the store and unlock it.

        Args:
            password: Store password. Ignored when authentication is "None".
            configuration: Settings; defaults to Password/900s/Prompt.

        Returns:
            True if successful.

        Raises:
            ValueError: Already configured, or password required but missing.
        """
        if self.is_configured():
            raise ValueError("Secret store already configured")

        configuration = configuration or StoreConfiguration()
        if configuration.requires_password:
            if not password:
                raise ValueError("A store password is required")
        else:
            password = ""

        salt = os.urandom(16)

        # Hash password for verification
        password_hash = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode(),
            salt,
            100000
        )

        conn = self._get_connection()
        conn.executemany(
            "INSERT INTO store_metadata (key, value) VALUES (?, ?)",
            [
                ("salt", base64.b64encode(salt).decode()),
                ("password_hash", base64.b64encode(password_hash).decode()),
                ("authentication", configuration.authentication),
                ("password_timeout", str(configuration.password_timeout)),
                ("interaction", configuration.interaction),
            ],
        )
        conn.commit()
        conn.close()

        logger.info(
            f"Secret store configured: authentication={configuration.authentication}, "
            f"timeout={configuration.password_timeout}s, interaction={configuration.interaction}"
        )
        return self.unlock(password)

    def unlock(self, password: str) -> bool:
        """
        Unlock store with its password.

        Returns:
            True if password correct and store unlocked.
        """
        meta = self._read_metadata()
        if "salt" not in meta or "password_hash" not in meta:
            return False

        salt = base64.b64decode(meta["salt"])
        stored_hash = base64.b64decode(meta["password_hash"])

        computed_hash = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode(),
            salt,
            100000
        )
        if computed_hash != stored_hash:
            logger.warning("Secret store unlock failed: invalid password")
            return False

        timeout = int(meta.get("password_timeout", 900))
        self._fernet = Fernet(self._derive_key(password, salt))
        self._unlocked_until = time.monotonic() + timeout
        logger.debug(f"Secret store unlocked for {timeout}s")
        return True

    def lock(self):
        """Lock store, clearing encryption key from memory."""
        self._fernet = None
        self._unlocked_until = None

    @property
    def is_unlocked(self) -> bool:
        """Check if store is unlocked and the unlock has not expired."""
        if self._fernet is None or self._unlocked_until is None:
            return False
        if time.monotonic() >= self._unlocked_until:
            self.lock()
            return False
        return True

    def _require_unlocked(self):
        """
        Make sure the store is unlocked, prompting if allowed.

        Raises:
            StoreNotConfigured: Store never configured.
            VaultLocked: No usable password.
        """
        if self.is_unlocked:
            return

        configuration = self.get_configuration()

        if not configuration.requires_password:
            if self.unlock(""):
                return
            raise VaultLocked("Secret store could not be unlocked")

        if configuration.can_prompt and self.password_provider:
            password = self.password_provider()
            if password and self.unlock(password):
                return
            raise VaultLocked("Invalid secret store password")

        raise VaultLocked("Secret store is locked")

    def _encrypt(self, plaintext: str) -> str:
        self._require_unlocked()
        return self._fernet.encrypt(plaintext.encode()).decode()

    def _decrypt(self, ciphertext: str) -> str:
        self._require_unlocked()
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            raise VaultUnavailable("Stored secret could not be decrypted")

    # =========================================================================
    # Vaults
    # =========================================================================

    def vault_exists(self, name: str) -> bool:
        conn = self._get_connection()
        row = conn.execute("SELECT 1 FROM vaults WHERE name = ?", (name,)).fetchone()
        conn.close()
        return row is not None

    def register_vault(self, name: str, backend: str = BACKEND_NAME, is_default: bool = False) -> bool:
        """
        Register a vault.

        Returns:
            True if created, False if it already existed.

        Raises:
            StoreNotConfigured: Store never configured.
        """
        if not self.is_configured():
            raise StoreNotConfigured(f"Secret store not configured: {self.db_path}")

        if self.vault_exists(name):
            return False

        conn = self._get_connection()
        cursor = conn.cursor()

        # If setting as default, clear other defaults
        if is_default:
            cursor.execute("UPDATE vaults SET is_default = 0")

        cursor.execute(
            "INSERT INTO vaults (name, backend, is_default) VALUES (?, ?, ?)",
            (name, backend, 1 if is_default else 0),
        )
        conn.commit()
        conn.close()

        logger.info(f"Registered vault '{name}' ({backend})")
        return True

    def list_vaults(self) -> List[VaultInfo]:
        conn = self._get_connection()
        rows = conn.execute(
            "SELECT name, backend, is_default, created_at FROM vaults ORDER BY name"
        ).fetchall()
        conn.close()

        return [
            VaultInfo(
                name=row["name"],
                backend=row["backend"],
                is_default=bool(row["is_default"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def _require_vault(self, vault: str):
        if not self.vault_exists(vault):
            raise VaultUnavailable(f"Vault '{vault}' does not exist")

    # =========================================================================
    # Secrets
    # =========================================================================

    def secret_exists(self, vault: str, name: str) -> bool:
        """Check for a secret without unlocking."""
        self._require_vault(vault)
        conn = self._get_connection()
        row = conn.execute(
            "SELECT 1 FROM secrets WHERE vault = ? AND name = ?", (vault, name)
        ).fetchone()
        conn.close()
        return row is not None

    def get_secret_info(self, vault: str, name: str) -> Optional[SecretInfo]:
        """Secret metadata by exact name, without unlocking."""
        self._require_vault(vault)

        conn = self._get_connection()
        row = conn.execute("""
            SELECT id, vault, name, username, server, created_at, updated_at
            FROM secrets
            WHERE vault = ? AND name = ?
        """, (vault, name)).fetchone()
        conn.close()

        if not row:
            return None
        return _secret_info(row)

    def get_secret(self, vault: str, name: str) -> Optional[VaultCredentials]:
        """
        Get decrypted credentials by exact name.

        Returns:
            VaultCredentials or None if not found.
        """
        self._require_vault(vault)

        conn = self._get_connection()
        row = conn.execute(
            "SELECT username, secret_encrypted FROM secrets WHERE vault = ? AND name = ?",
            (vault, name),
        ).fetchone()
        conn.close()

        if not row:
            return None

        password = None
        if row["secret_encrypted"]:
            password = self._decrypt(row["secret_encrypted"])

        return VaultCredentials(username=row["username"], password=password)

    def set_secret(
        self,
        vault: str,
        name: str,
        credentials: VaultCredentials,
        server: Optional[str] = None,
    ) -> int:
        """
        Add or overwrite a secret.

        Returns:
            ID of the stored secret.
        """
        self._require_vault(vault)
        secret_enc = self._encrypt(credentials.password) if credentials.password else None

        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO secrets (vault, name, username, server, secret_encrypted)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (vault, name) DO UPDATE SET
                username = excluded.username,
                server = excluded.server,
                secret_encrypted = excluded.secret_encrypted,
                updated_at = CURRENT_TIMESTAMP
        """, (vault, name, credentials.username, server, secret_enc))

        row = cursor.execute(
            "SELECT id FROM secrets WHERE vault = ? AND name = ?", (vault, name)
        ).fetchone()
        conn.commit()
        conn.close()

        logger.debug(f"Stored secret '{name}' in vault '{vault}'")
        return row["id"]

    def remove_secret(self, vault: str, name: str) -> bool:
        """Remove a secret."""
        self._require_vault(vault)

        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("DELETE FROM secrets WHERE vault = ? AND name = ?", (vault, name))
        deleted = cursor.rowcount > 0
        conn.commit()
        conn.close()

        return deleted

    def list_secrets(self, vault: str, pattern: Optional[str] = None) -> List[SecretInfo]:
        """
        List secrets in a vault (without secrets).

        Args:
            vault: Vault name.
            pattern: Optional case-insensitive glob on the secret name.
        """
        self._require_vault(vault)

        conn = self._get_connection()
        rows = conn.execute("""
            SELECT id, vault, name, username, server, created_at, updated_at
            FROM secrets
            WHERE vault = ?
            ORDER BY name
        """, (vault,)).fetchall()
        conn.close()

        regex = compile_glob(pattern) if pattern else None

        return [
            _secret_info(row) for row in rows
            if regex is None or glob_match(regex, row["name"])
        ]


def _secret_info(row: sqlite3.Row) -> SecretInfo:
    return SecretInfo(
        id=row["id"],
        vault=row["vault"],
        name=row["name"],
        username=row["username"],
        server=row["server"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
