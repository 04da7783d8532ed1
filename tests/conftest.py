import plistlib
import struct
from datetime import datetime

import pytest

PREFIX = "wifi.network.ssid."


def bss_entry(signature=None, dhcp_server_id=None, last_associated=None):
    entry = {"BSSID": "aa:bb:cc:dd:ee:ff", "Channel": 36}
    if signature is not None:
        entry["IPv4NetworkSignature"] = signature
    if dhcp_server_id is not None:
        entry["DHCPServerID"] = dhcp_server_id
    if last_associated is not None:
        entry["LastAssociatedAt"] = last_associated
    return entry


def network_entry(ssid, bss=(), added_at=None, joined_by_user_at=None, joined_by_system_at=None):
    entry = {
        "SSID": ssid.encode("utf-8"),
        "SupportedSecurityTypes": "WPA2 Personal",
        "__OSSpecific__": {"TemporarilyDisabled": False},
        "BSSList": list(bss),
    }
    if added_at is not None:
        entry["AddedAt"] = added_at
    if joined_by_user_at is not None:
        entry["JoinedByUserAt"] = joined_by_user_at
    if joined_by_system_at is not None:
        entry["JoinedBySystemAt"] = joined_by_system_at
    return entry


def build_registry(networks, fmt=plistlib.FMT_BINARY):
    """networks: mapping of SSID -> network_entry(...) dict."""
    tree = {PREFIX + ssid: entry for ssid, entry in networks.items()}
    return plistlib.dumps(tree, fmt=fmt)


def self_referencing_registry(ssid="Loop"):
    """
    Hand-assembled binary plist {PREFIX + ssid: A} where A is an array whose
    only element is A itself.
    """
    name = (PREFIX + ssid).encode("ascii")
    marker = bytes([0x50 | len(name)]) if len(name) < 15 else bytes([0x5F, 0x10, len(name)])
    objects = [b"\xd1\x01\x02", marker + name, b"\xa1\x02"]
    body = b"bplist00"
    offsets = []
    for obj in objects:
        offsets.append(len(body))
        body += obj
    table_offset = len(body)
    body += bytes(offsets)
    return body + struct.pack(">6xBBQQQ", 1, 1, len(objects), 0, table_offset)


def deeply_nested_registry(depth=3000, ssid="Deep"):
    """XML plist with one network whose value is depth nested arrays."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n<plist version="1.0"><dict>'
        f"<key>{PREFIX}{ssid}</key>" + "<array>" * depth + "</array>" * depth +
        "</dict></plist>"
    ).encode("utf-8")


@pytest.fixture
def home_registry():
    return build_registry({
        "Home": network_entry("Home", [
            bss_entry("192.168.1.1/24", b"\xc0\xa8\x01\x01", datetime(2024, 3, 1, 8, 30, 0)),
        ], added_at=datetime(2021, 5, 4, 12, 0, 0)),
        "Office": network_entry("Office", [
            bss_entry("IPv4.Router=10.20.0.1;IPv4.RouterHardwareAddress=00:11:22:33:44:55",
                      b"\x0a\x14\x00\x02", datetime(2024, 2, 1, 9, 0, 0)),
        ]),
        "Cafe": network_entry("Cafe", joined_by_user_at=datetime(2023, 11, 20, 17, 45, 0)),
    })


@pytest.fixture
def registry_file(tmp_path, home_registry):
    path = tmp_path / "com.apple.wifi.known-networks.plist"
    path.write_bytes(home_registry)
    return path
