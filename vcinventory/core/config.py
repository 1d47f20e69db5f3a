"""
Configuration management for vcinventory.

Handles loading config from ~/.vcinventory/config.yaml and providing
default values for all settings. Filters are validated here so a bad
pattern fails at load time rather than mid-run.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from vcinventory.errors import ConfigError
from vcinventory.inventory.filters import FilterSpec


# Default paths
DEFAULT_BASE_DIR = Path.home() / ".vcinventory"
DEFAULT_CONFIG_FILE = DEFAULT_BASE_DIR / "config.yaml"
DEFAULT_VAULT_DB = DEFAULT_BASE_DIR / "vault.db"
DEFAULT_REPORTS_DIR = DEFAULT_BASE_DIR / "reports"
DEFAULT_LOG_DIR = DEFAULT_BASE_DIR / "logs"

# Vault that always wins over a configured name when it exists
CANONICAL_VAULT_NAME = "VCenterVault"

DEFAULT_VM_PROPERTIES: Dict[str, str] = {
    "Name": "Virtual machine name",
    "PowerState": "Current power state",
    "NumCPU": "Number of virtual CPUs",
    "MemoryGB": "Configured memory (GB)",
    "ProvisionedSpaceGB": "Provisioned storage (GB)",
    "UsedSpaceGB": "Used storage (GB)",
    "GuestOS": "Guest operating system",
    "IPAddresses": "IPv4 addresses reported by VMware Tools",
    "HostSystem": "ESXi host",
    "Cluster": "Cluster",
    "Datastore": "Datastores",
    "Folder": "VM folder",
    "VMToolsStatus": "VMware Tools status",
    "Annotation": "Notes",
}


@dataclass
class ExportConfig:
    """Workbook output settings."""

    output_dir: Path = DEFAULT_REPORTS_DIR
    file_prefix: str = "VMInventory"


@dataclass
class EmailConfig:
    """Microsoft Graph mail settings."""

    enabled: bool = False
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret_name: str = "GraphMail"  # secret name in the vault
    sender: Optional[str] = None
    recipients: List[str] = field(default_factory=list)
    subject: str = "VM inventory report"
    body: str = "The VM inventory report is attached."
    max_attachment_mb: float = 3.0

    def missing_settings(self) -> List[str]:
        """Names of required settings that are not set."""
        required = {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "sender": self.sender,
            "recipients": self.recipients,
        }
        return [key for key, value in required.items() if not value]


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: Optional[Path] = None


@dataclass
class Config:
    """Main configuration container."""

    # Base directory
    base_dir: Path = DEFAULT_BASE_DIR
    config_file: Path = DEFAULT_CONFIG_FILE

    # Secret store
    vault_db: Path = DEFAULT_VAULT_DB
    vault_name: str = CANONICAL_VAULT_NAME
    secret_prefix: str = "VCenter"

    # Source vCenter
    source_server_host: Optional[str] = None
    preferred_username: Optional[str] = None
    port: int = 443
    verify_ssl: bool = False

    # Inventory
    filters: FilterSpec = field(default_factory=FilterSpec)
    vm_properties: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_VM_PROPERTIES))

    export: ExportConfig = field(default_factory=ExportConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def property_names(self) -> List[str]:
        return list(self.vm_properties.keys())

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to config file. If None, uses default location.
                         Can also be set via VCINVENTORY_CONFIG env var.

        Returns:
            Config instance with values from file merged with defaults.

        Raises:
            ConfigError: Invalid YAML, invalid value types or filters.
        """
        if config_path is None:
            config_path = Path(
                os.environ.get("VCINVENTORY_CONFIG", str(DEFAULT_CONFIG_FILE))
            )
        config_path = Path(config_path).expanduser()

        config = cls()
        config.config_file = config_path

        # If config file doesn't exist, return defaults
        if not config_path.exists():
            return config

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config YAML: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping: {config_path}")

        config._apply(data)
        return config

    def _apply(self, data: dict):
        """Merge a parsed YAML mapping into this config."""
        if "base_dir" in data:
            self.base_dir = Path(data["base_dir"]).expanduser()

        # Secret store
        if "vault_db" in data:
            self.vault_db = Path(data["vault_db"]).expanduser()

        # Backward compatibility: legacy key names
        vault_name = _first(data, "vault_name", "VaultName", "preferredVault")
        if vault_name:
            self.vault_name = str(vault_name)

        if "secret_prefix" in data:
            self.secret_prefix = str(data["secret_prefix"])

        # Source vCenter
        server = _first(data, "source_server_host", "SourceServerHost")
        if server:
            self.source_server_host = str(server)

        username = _first(data, "preferred_username", "PreferredUsername")
        if username:
            self.preferred_username = str(username)

        if "port" in data:
            try:
                self.port = int(data["port"])
            except (TypeError, ValueError):
                raise ConfigError(f"'port' must be an integer, got {data['port']!r}")

        if "verify_ssl" in data:
            self.verify_ssl = bool(data["verify_ssl"])

        # Filters
        filters = _first(data, "filters", "Filters")
        if filters is not None:
            if not isinstance(filters, dict):
                raise ConfigError("'filters' must be a mapping")
            self.filters = FilterSpec.from_lists(
                power_states=_first(filters, "power_states", "PowerStates"),
                exclude_names=_first(filters, "exclude_names", "ExcludeNames"),
                include_names=_first(filters, "include_names", "IncludeNames"),
            )

        # Properties
        properties = _first(data, "vm_properties", "VMProperties")
        if properties is not None:
            self.vm_properties = _parse_properties(properties)

        # Export
        if "export" in data:
            export_data = data["export"] or {}
            self.export = ExportConfig(
                output_dir=Path(export_data.get("output_dir", DEFAULT_REPORTS_DIR)).expanduser(),
                file_prefix=export_data.get("file_prefix", "VMInventory"),
            )

        # Email
        if "email" in data:
            email_data = data["email"] or {}
            try:
                max_attachment_mb = float(email_data.get("max_attachment_mb", 3.0))
            except (TypeError, ValueError):
                raise ConfigError(
                    f"'email.max_attachment_mb' must be a number, "
                    f"got {email_data.get('max_attachment_mb')!r}"
                )
            recipients = email_data.get("recipients") or []
            if isinstance(recipients, str):
                recipients = [r.strip() for r in recipients.split(",") if r.strip()]
            self.email = EmailConfig(
                enabled=bool(email_data.get("enabled", False)),
                tenant_id=email_data.get("tenant_id"),
                client_id=email_data.get("client_id"),
                client_secret_name=email_data.get("client_secret_name", "GraphMail"),
                sender=email_data.get("sender"),
                recipients=list(recipients),
                subject=email_data.get("subject", "VM inventory report"),
                body=email_data.get("body", "The VM inventory report is attached."),
                max_attachment_mb=max_attachment_mb,
            )

        # Logging settings
        if "logging" in data:
            log_data = data["logging"] or {}
            log_file = log_data.get("file")
            self.logging = LoggingConfig(
                level=log_data.get("level", "INFO"),
                file=Path(log_file).expanduser() if log_file else None,
            )

    def check_warnings(self) -> list:
        """
        Check for configuration issues that need attention.

        Returns:
            List of warning messages.
        """
        warnings = []

        if not self.source_server_host:
            warnings.append("No 'source_server_host' configured; pass --server.")

        if not self.vault_db.exists():
            warnings.append(
                f"Secret store not found: {self.vault_db}. "
                "Run 'vcinventory vault init' to create it."
            )

        if self.email.enabled and self.email.missing_settings():
            missing = ", ".join(self.email.missing_settings())
            warnings.append(f"Email enabled but missing: {missing}")

        if "Name" not in self.vm_properties:
            warnings.append("'Name' is not in vm_properties; rows will not identify VMs.")

        return warnings

    def ensure_directories(self):
        """Create required directories if they don't exist."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.export.output_dir.mkdir(parents=True, exist_ok=True)
        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)

    def save_default_config(self):
        """Save a default config file if one doesn't exist."""
        if self.config_file.exists():
            return

        self.ensure_directories()
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        properties = "\n".join(
            f"  {name}: {description}" for name, description in DEFAULT_VM_PROPERTIES.items()
        )

        default_config = f"""\
# vcinventory Configuration

# =============================================================================
# Source vCenter
# =============================================================================

source_server_host: vcenter01.example.com
# preferred_username: administrator@vsphere.local
port: 443
verify_ssl: false

# =============================================================================
# Secret Store
# =============================================================================

base_dir: {self.base_dir}
vault_db: {self.vault_db}
vault_name: {CANONICAL_VAULT_NAME}

# =============================================================================
# Filters (applied in order: power_states, exclude_names, include_names)
# =============================================================================

filters:
  power_states: []        # PoweredOn, PoweredOff, Suspended
  exclude_names: []       # glob patterns, e.g. "tpl-*"
  include_names: []       # glob patterns; empty keeps everything

# =============================================================================
# Exported properties (column order)
# =============================================================================

vm_properties:
{properties}

# =============================================================================
# Output
# =============================================================================

export:
  output_dir: {self.export.output_dir}
  file_prefix: VMInventory

email:
  enabled: false
  tenant_id: ""
  client_id: ""
  client_secret_name: GraphMail   # stored with 'vcinventory creds add-secret'
  sender: ""
  recipients: []
  subject: VM inventory report
  max_attachment_mb: 3

# =============================================================================
# Logging
# =============================================================================

logging:
  level: INFO              # DEBUG, INFO, WARNING, ERROR
  file: {DEFAULT_LOG_DIR / 'vcinventory.log'}
"""

        with open(self.config_file, "w") as f:
            f.write(default_config)


def _first(data: dict, *keys):
    """Value of the first key present in data."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_properties(value) -> Dict[str, str]:
    if isinstance(value, dict):
        properties = {str(k): "" if v is None else str(v) for k, v in value.items()}
    elif isinstance(value, list):
        properties = {str(item): "" for item in value}
    else:
        raise ConfigError("'vm_properties' must be a mapping or a list")

    if not properties:
        raise ConfigError("'vm_properties' must name at least one property")
    return properties


# Singleton instance
_config: Optional[Config] = None


def get_config(reload: bool = False) -> Config:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload from file.

    Returns:
        Config instance.
    """
    global _config

    if _config is None or reload:
        _config = Config.load()

    return _config


def set_config(config: Optional[Config]):
    """Replace the global configuration (CLI --config, tests)."""
    global _config
    _config = config
