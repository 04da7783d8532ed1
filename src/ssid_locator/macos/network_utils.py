"""
network_utils.py
Queries of the live macOS network environment. None of these touch CoreWLAN,
so none of them trigger a Location Services prompt.
"""

import ipaddress
import re
import socket
import subprocess
from dataclasses import dataclass, asdict
from typing import List, Optional, Tuple

import psutil

from ssid_locator.macos.constants import AIRPORT, COMMAND_TIMEOUT, FALLBACK_INTERFACE
from ssid_locator.macos.logging_utils import _log


@dataclass(frozen=True)
class EnvironmentSnapshot:
    router_address: Optional[str] = None
    dhcp_server_address: Optional[str] = None

    def __post_init__(self):
        # ipconfig prints nothing for a missing option; treat blanks as absent.
        object.__setattr__(self, 'router_address', (self.router_address or "").strip() or None)
        object.__setattr__(self, 'dhcp_server_address', (self.dhcp_server_address or "").strip() or None)

    @property
    def is_connected(self) -> bool:
        return bool(self.router_address or self.dhcp_server_address)


@dataclass(frozen=True)
class SignalInfo:
    rssi: str = "N/A"
    noise: str = "N/A"
    channel: str = "N/A"
    security: str = "N/A"
    tx_rate: str = "N/A"

    def as_dict(self):
        return asdict(self)


def _run(cmd: List[str]) -> Optional[str]:
    """
    Run a command and return its stdout, or None if it failed to start,
    timed out or exited non-zero.
    """
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="ignore", timeout=COMMAND_TIMEOUT)
    except subprocess.TimeoutExpired:
        _log.warning(f"{cmd[0]} timed out after {COMMAND_TIMEOUT}s")
        return None
    except (OSError, subprocess.SubprocessError) as e:
        _log.debug(f"Could not run {' '.join(cmd)}: {e}")
        return None
    if result.returncode != 0:
        _log.debug(f"{' '.join(cmd)} exited with {result.returncode}")
        return None
    return result.stdout


def list_wifi_hardware_ports() -> List[Tuple[str, str]]:
    """
    (hardware port, device) pairs for every Wi-Fi port reported by
    networksetup -listallhardwareports.
    """
    output = _run(["networksetup", "-listallhardwareports"])
    ports = []
    if not output:
        return ports
    current_port = None
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("Hardware Port:"):
            current_port = line.split(":", 1)[1].strip()
        elif line.startswith("Device:") and current_port:
            if "Wi-Fi" in current_port or "AirPort" in current_port:
                ports.append((current_port, line.split(":", 1)[1].strip()))
            current_port = None
    return ports


def detect_wifi_interface() -> str:
    ports = list_wifi_hardware_ports()
    if ports:
        return ports[0][1]
    _log.warning(f"Could not auto-detect Wi-Fi interface; falling back to {FALLBACK_INTERFACE}.")
    return FALLBACK_INTERFACE


def interface_exists(interface: str) -> bool:
    return interface in psutil.net_if_addrs()


def looks_like_wifi(interface: str) -> bool:
    return any(device == interface for _, device in list_wifi_hardware_ports())


def get_connected_networks():
    """
    Enumerate all IPv4 subnets the local machine is currently connected to.
    Returns a list of (interface, subnet) tuples.
    """
    networks = []
    for interface, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if getattr(addr, 'family', None) != socket.AF_INET:
                continue
            if addr.address and addr.netmask:
                try:
                    net = ipaddress.IPv4Network(f"{addr.address}/{addr.netmask}", strict=False)
                except ValueError:
                    continue
                networks.append((interface, str(net)))
    return networks


def vpn_tunnel_active() -> bool:
    """True if a utun interface is up and carries an IPv4 address."""
    stats = psutil.net_if_stats()
    for interface, _ in get_connected_networks():
        if interface.startswith("utun") and getattr(stats.get(interface), 'isup', False):
            return True
    return False


def _ipconfig_option(interface: str, option: str) -> Optional[str]:
    output = _run(["ipconfig", "getoption", interface, option])
    value = (output or "").strip()
    return value or None


def get_router_ip(interface: str) -> Optional[str]:
    return _ipconfig_option(interface, "router")


def get_dhcp_server(interface: str) -> Optional[str]:
    return _ipconfig_option(interface, "server_identifier")


def get_environment_snapshot(interface: str) -> EnvironmentSnapshot:
    snapshot = EnvironmentSnapshot(get_router_ip(interface), get_dhcp_server(interface))
    _log.debug(f"Router IP: {snapshot.router_address or '<none>'}  "
               f"DHCP Server: {snapshot.dhcp_server_address or '<none>'}")
    return snapshot


IO80211_SSID_RE = re.compile(r'"IO80211SSID"\s*=\s*"([^"]*)"')


def fallback_ioreg_ssid() -> Optional[str]:
    """
    SSID reported by the AirPort driver. On recent releases this is the
    redaction placeholder unless the caller holds Location Services access.
    """
    output = _run(["ioreg", "-l", "-n", "AirPortDriver"])
    if not output:
        return None
    match = IO80211_SSID_RE.search(output)
    return match.group(1) if match else None


AIRPORT_FIELDS = {
    "agrCtlRSSI": "rssi",
    "agrCtlNoise": "noise",
    "channel": "channel",
    "link auth": "security",
    "lastTxRate": "tx_rate",
}


def parse_airport_info(output: str) -> SignalInfo:
    values = {}
    for line in output.splitlines():
        if ":" not in line:
            continue
        label, value = line.split(":", 1)
        name = AIRPORT_FIELDS.get(label.strip())
        value = value.strip()
        if name and value:
            values[name] = value
    return SignalInfo(**values)


def get_signal_info() -> SignalInfo:
    """Best-effort RSSI/noise/channel; the airport tool was removed in macOS 14.4."""
    output = _run([AIRPORT, "-I"])
    if output is None:
        _log.debug("airport utility not available; signal info unavailable.")
        return SignalInfo()
    return parse_airport_info(output)
