"""
VM record shaper.

Path: vcinventory/inventory/shaper.py

Projects raw pyVmomi VirtualMachine objects into flat VMRecords.

Each property name maps to an extractor in EXTRACTORS. Unknown names fall
back to a reflective attribute read. Every extractor is isolated: an
exception or an empty value yields SENTINEL for that one field and the
rest of the row (and the batch) carries on.
"""

import ipaddress
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from vcinventory.inventory.models import SENTINEL, PowerState, VMRecord


logger = logging.getLogger(__name__)

Extractor = Callable[[Any], Any]

BYTES_PER_GB = 1024 ** 3
LIST_SEPARATOR = ", "

# Tried in order when an unknown property name has no dot
REFLECTIVE_ROOTS = ("", "config", "guest", "runtime", "summary.config")

EXTRACTORS: Dict[str, Extractor] = {}


def extractor(*names: str):
    """Register a function as the extractor for one or more property names."""
    def decorator(func: Extractor) -> Extractor:
        for name in names:
            EXTRACTORS[name] = func
        return func
    return decorator


def _join(values: Iterable[Any]) -> Optional[str]:
    items = [str(v) for v in values if v not in (None, "")]
    return LIST_SEPARATOR.join(items) if items else None


def _to_gb(num_bytes: Optional[float]) -> Optional[float]:
    if num_bytes is None:
        return None
    return round(num_bytes / BYTES_PER_GB, 2)


def _is_ipv4(value: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(value), ipaddress.IPv4Address)
    except ValueError:
        return False


# =============================================================================
# Extractors
# =============================================================================

@extractor("Name")
def _name(vm):
    return vm.name


@extractor("UUID")
def _uuid(vm):
    return vm.config.uuid


@extractor("PowerState")
def _power_state(vm):
    state = PowerState.parse(vm.runtime.powerState)
    return state.value if state else None


@extractor("NumCPU")
def _num_cpu(vm):
    return vm.config.hardware.numCPU


@extractor("MemoryMB")
def _memory_mb(vm):
    return vm.config.hardware.memoryMB


@extractor("MemoryGB")
def _memory_gb(vm):
    return round(vm.config.hardware.memoryMB / 1024, 2)


@extractor("ProvisionedSpaceGB")
def _provisioned_gb(vm):
    storage = vm.summary.storage
    return _to_gb((storage.committed or 0) + (storage.uncommitted or 0))


@extractor("UsedSpaceGB")
def _used_gb(vm):
    return _to_gb(vm.summary.storage.committed)


@extractor("Datastore")
def _datastore(vm):
    return _join(ds.name for ds in vm.datastore or [])


@extractor("NetworkAdapters")
def _network_adapters(vm):
    adapters = []
    for device in vm.config.hardware.device or []:
        # Ethernet cards are the only devices carrying a MAC address
        if getattr(device, "macAddress", None) is None:
            continue
        label = device.deviceInfo.label
        network = getattr(device.backing, "deviceName", None)
        adapters.append(f"{label} ({network})" if network else label)
    return _join(adapters)


@extractor("IPAddresses")
def _ip_addresses(vm):
    addresses = []
    for nic in vm.guest.net or []:
        for address in nic.ipAddress or []:
            if _is_ipv4(address) and address not in addresses:
                addresses.append(address)
    if not addresses and vm.guest.ipAddress and _is_ipv4(vm.guest.ipAddress):
        addresses.append(vm.guest.ipAddress)
    return _join(addresses)


@extractor("GuestOS")
def _guest_os(vm):
    return vm.guest.guestFullName


@extractor("Annotation", "Notes")
def _annotation(vm):
    return vm.config.annotation


@extractor("HostSystem")
def _host_system(vm):
    return vm.runtime.host.name


@extractor("Cluster")
def _cluster(vm):
    return vm.runtime.host.parent.name


@extractor("VMToolsVersion")
def _tools_version(vm):
    return vm.guest.toolsVersion


@extractor("VMToolsStatus")
def _tools_status(vm):
    return vm.guest.toolsStatus


@extractor("Folder")
def _folder(vm):
    return vm.parent.name


@extractor("HardwareVersion")
def _hardware_version(vm):
    return vm.config.version


# =============================================================================
# Reflective fallback
# =============================================================================

def _read_path(obj: Any, path: str) -> Any:
    for part in path.split("."):
        if obj is None:
            return None
        obj = getattr(obj, part)
    return obj


def reflective_read(vm: Any, prop: str) -> Any:
    """
    Read an arbitrary property by name.

    Dotted names ("config.cpuHotAddEnabled") are read as a path from the
    VM. Plain names are tried on the VM itself, then under each of
    REFLECTIVE_ROOTS.
    """
    if "." in prop:
        return _read_path(vm, prop)

    for root in REFLECTIVE_ROOTS:
        path = f"{root}.{prop}" if root else prop
        try:
            value = _read_path(vm, path)
        except AttributeError:
            continue
        if value is not None:
            return value
    return None


# =============================================================================
# Public API
# =============================================================================

def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and not value:
        return True
    return False


def extract_property(vm: Any, prop: str) -> Any:
    """Extract one property, returning SENTINEL on any failure."""
    func = EXTRACTORS.get(prop)
    try:
        value = func(vm) if func else reflective_read(vm, prop)
    except Exception as e:
        logger.debug(f"{_vm_label(vm)}: {prop} unavailable ({type(e).__name__}: {e})")
        return SENTINEL

    if _is_empty(value):
        return SENTINEL
    if isinstance(value, (str, int, float, bool)):
        return value
    # Managed objects and enums are exported as text
    return str(value)


def shape_record(vm: Any, properties: Sequence[str]) -> VMRecord:
    """
    Build a VMRecord holding every requested property.

    Never raises. Unreadable fields hold SENTINEL.
    """
    return VMRecord({prop: extract_property(vm, prop) for prop in properties})


def shape_records(
    vms: Iterable[Any],
    properties: Sequence[str],
    progress_callback: Optional[Callable[[int, VMRecord], None]] = None,
) -> List[VMRecord]:
    """Shape a collection of VMs sequentially."""
    records = []
    for index, vm in enumerate(vms, start=1):
        record = shape_record(vm, properties)
        records.append(record)

        if progress_callback:
            try:
                progress_callback(index, record)
            except Exception as cb_err:
                logger.warning(f"Progress callback error: {cb_err}")

    logger.info(f"Shaped {len(records)} VM records ({len(properties)} properties each)")
    return records


def _vm_label(vm: Any) -> str:
    try:
        return str(vm.name)
    except Exception:
        return "<unnamed vm>"
