"""
vcinventory - vCenter VM inventory export with encrypted credential vault.

Usage:
    vcinventory vault init
    vcinventory creds add vcenter01.lab --username administrator@vsphere.local
    vcinventory export
"""

__version__ = "0.1.0"

from vcinventory.core.config import Config, get_config
from vcinventory.vault.store import SecretStore
from vcinventory.vault.resolver import CredentialResolver, CredentialPrompter
from vcinventory.vault.models import VaultCredentials, ResolvedCredential
from vcinventory.inventory.models import VMRecord, PowerState, SENTINEL
from vcinventory.inventory.filters import FilterSpec, apply_filters
from vcinventory.inventory.shaper import shape_record, shape_records

__all__ = [
    # Version
    "__version__",
    # Config
    "Config",
    "get_config",
    # Vault
    "SecretStore",
    "CredentialResolver",
    "CredentialPrompter",
    "VaultCredentials",
    "ResolvedCredential",
    # Inventory
    "VMRecord",
    "PowerState",
    "SENTINEL",
    "FilterSpec",
    "apply_filters",
    "shape_record",
    "shape_records",
]
