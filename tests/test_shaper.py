"""Record shaping and per-field fault isolation."""

from types import SimpleNamespace

from conftest import make_vm

from vcinventory.inventory.models import SENTINEL, PowerState
from vcinventory.inventory.shaper import EXTRACTORS, extract_property, shape_record, shape_records


ALL_KNOWN = [
    "Name", "UUID", "PowerState", "NumCPU", "MemoryMB", "MemoryGB",
    "ProvisionedSpaceGB", "UsedSpaceGB", "Datastore", "NetworkAdapters",
    "IPAddresses", "GuestOS", "Annotation", "HostSystem", "Cluster",
    "VMToolsVersion", "VMToolsStatus", "Folder", "HardwareVersion",
]


class ExplodingGuest:
    toolsVersion = "12352"
    toolsStatus = "toolsOk"
    ipAddress = "10.0.0.7"
    net = []

    @property
    def guestFullName(self):
        raise RuntimeError("guest operations unavailable")


def test_known_extractors_registered():
    for prop in ALL_KNOWN:
        assert prop in EXTRACTORS


def test_shape_all_known_properties():
    record = shape_record(make_vm(annotation="Web frontend"), ALL_KNOWN)

    assert list(record.keys()) == ALL_KNOWN
    assert record["Name"] == "web-1"
    assert record["UUID"] == "4201a1b2-c3d4-e5f6-0718-293a4b5c6d7e"
    assert record["PowerState"] == "PoweredOn"
    assert record["NumCPU"] == 2
    assert record["MemoryMB"] == 4096
    assert record["MemoryGB"] == 4.0
    assert record["ProvisionedSpaceGB"] == 15.0
    assert record["UsedSpaceGB"] == 10.0
    assert record["Datastore"] == "ds1, ds2"
    assert record["NetworkAdapters"] == "Network adapter 1 (VM Network)"
    assert record["IPAddresses"] == "10.0.0.5"
    assert record["GuestOS"] == "Ubuntu Linux (64-bit)"
    assert record["Annotation"] == "Web frontend"
    assert record["HostSystem"] == "esx01.lab"
    assert record["Cluster"] == "cluster-a"
    assert record["VMToolsVersion"] == "12352"
    assert record["VMToolsStatus"] == "toolsOk"
    assert record["Folder"] == "Production"
    assert record["HardwareVersion"] == "vmx-19"


def test_raising_accessor_yields_sentinel_only_for_that_field():
    vm = make_vm(guest=ExplodingGuest())
    record = shape_record(vm, ["Name", "GuestOS", "VMToolsVersion", "NumCPU"])

    assert record["GuestOS"] == SENTINEL
    assert record["Name"] == "web-1"
    assert record["VMToolsVersion"] == "12352"
    assert record["NumCPU"] == 2


def test_empty_values_become_sentinel():
    vm = make_vm(annotation="   ")
    vm.datastore = []
    record = shape_record(vm, ["Annotation", "Datastore"])

    assert record["Annotation"] == SENTINEL
    assert record["Datastore"] == SENTINEL


def test_missing_branch_yields_sentinel():
    vm = make_vm()
    vm.runtime.host = None
    record = shape_record(vm, ["HostSystem", "Cluster", "Name"])

    assert record["HostSystem"] == SENTINEL
    assert record["Cluster"] == SENTINEL
    assert record["Name"] == "web-1"


def test_ip_addresses_keep_ipv4_only():
    guest = SimpleNamespace(
        guestFullName="Windows",
        toolsVersion="1",
        toolsStatus="toolsOk",
        ipAddress="fe80::1",
        net=[
            SimpleNamespace(ipAddress=["fe80::1", "192.168.1.10"]),
            SimpleNamespace(ipAddress=["192.168.1.11", "not-an-ip", "192.168.1.10"]),
            SimpleNamespace(ipAddress=None),
        ],
    )
    record = shape_record(make_vm(guest=guest), ["IPAddresses"])
    assert record["IPAddresses"] == "192.168.1.10, 192.168.1.11"


def test_ip_addresses_fall_back_to_primary_address():
    guest = SimpleNamespace(guestFullName="x", toolsVersion="1", toolsStatus="ok",
                            ipAddress="10.1.1.1", net=[])
    assert extract_property(make_vm(guest=guest), "IPAddresses") == "10.1.1.1"


def test_ipv6_only_is_sentinel():
    guest = SimpleNamespace(guestFullName="x", toolsVersion="1", toolsStatus="ok",
                            ipAddress="fe80::1", net=[SimpleNamespace(ipAddress=["fe80::1"])])
    assert extract_property(make_vm(guest=guest), "IPAddresses") == SENTINEL


def test_power_state_normalized():
    record = shape_record(make_vm(power_state="suspended"), ["PowerState"])
    assert record["PowerState"] == "Suspended"
    assert record.power_state is PowerState.SUSPENDED


def test_unknown_power_state_is_sentinel():
    assert extract_property(make_vm(power_state="weird"), "PowerState") == SENTINEL


def test_reflective_dotted_path():
    assert extract_property(make_vm(), "config.version") == "vmx-19"


def test_reflective_plain_name_searches_roots():
    # "version" lives under vm.config
    assert extract_property(make_vm(), "version") == "vmx-19"
    # "toolsVersion" lives under vm.guest
    assert extract_property(make_vm(), "toolsVersion") == "12352"


def test_reflective_unknown_property_is_sentinel():
    assert extract_property(make_vm(), "cpuHotAddEnabled") == SENTINEL
    assert extract_property(make_vm(), "config.nothing.here") == SENTINEL


def test_non_scalar_values_exported_as_text():
    vm = make_vm()
    vm.config.hardware.numCPU = SimpleNamespace(value=4)
    value = extract_property(vm, "NumCPU")
    assert isinstance(value, str)


def test_rows_are_rectangular():
    good = make_vm("web-1")
    broken = SimpleNamespace(name="broken")
    records = shape_records([good, broken], ["Name", "NumCPU", "GuestOS"])

    assert [list(r.keys()) for r in records] == [["Name", "NumCPU", "GuestOS"]] * 2
    assert records[1]["Name"] == "broken"
    assert records[1]["NumCPU"] == SENTINEL
    assert records[1]["GuestOS"] == SENTINEL


def test_unnamed_vm_does_not_break_batch():
    class Nameless:
        @property
        def name(self):
            raise RuntimeError("no name")

    records = shape_records([Nameless(), make_vm("web-2")], ["Name", "NumCPU"])
    assert records[0]["Name"] == SENTINEL
    assert records[1]["Name"] == "web-2"


def test_progress_callback_errors_are_contained():
    seen = []

    def callback(index, record):
        seen.append(index)
        raise ValueError("callback bug")

    records = shape_records([make_vm("a"), make_vm("b")], ["Name"], progress_callback=callback)
    assert [r["Name"] for r in records] == ["a", "b"]
    assert seen == [1, 2]
