"""
Plain, verbose and JSON renderings of resolution and listing results.
"""
import json
from dataclasses import asdict, is_dataclass
from enum import Enum

from ssid_locator.macos.network_utils import SignalInfo

LABEL_WIDTH = 16


def make_jsonable(val):
    """Convert locator objects to a JSON-serializable form."""
    if isinstance(val, (str, int, float, bool)) or val is None:
        return val

    if isinstance(val, Enum):
        return val.value

    if isinstance(val, (list, tuple, set)):
        return [make_jsonable(v) for v in val]

    if isinstance(val, dict):
        return {str(k): make_jsonable(v) for k, v in val.items()}

    # Raw registry payloads such as DHCPServerID
    if isinstance(val, (bytes, bytearray)):
        return val.hex()

    if is_dataclass(val) and not isinstance(val, type):
        return make_jsonable(asdict(val))

    return str(val)


def _row(label, value):
    return f"{label + ':':<{LABEL_WIDTH}} {value}"


def render_plain(result) -> str:
    return f"{result.ssid}\n"


def render_verbose(result, interface: str, signal: SignalInfo) -> str:
    snapshot = result.snapshot
    rows = [
        _row("Interface", interface),
        _row("SSID", result.ssid),
        _row("Source", result.provenance.value if result.provenance else "N/A"),
        _row("Score", result.score if result.score else "N/A"),
        _row("Router IP", (snapshot and snapshot.router_address) or "N/A"),
        _row("DHCP Server", (snapshot and snapshot.dhcp_server_address) or "N/A"),
        _row("RSSI", signal.rssi),
        _row("Noise", signal.noise),
        _row("Channel", signal.channel),
        _row("Security", signal.security),
        _row("Tx Rate", signal.tx_rate),
    ]
    return "\n".join(rows) + "\n"


def render_json(result, interface: str, signal: SignalInfo) -> str:
    snapshot = result.snapshot
    payload = {
        "interface": interface,
        "ssid": result.ssid,
        "source": result.provenance,
        "router_ip": (snapshot and snapshot.router_address) or "",
        "dhcp_server": (snapshot and snapshot.dhcp_server_address) or "",
    }
    payload.update(signal.as_dict())
    return json.dumps(make_jsonable(payload), indent=2) + "\n"


def render_listing_plain(ssids) -> str:
    lines = ["Known Wi-Fi Networks:"]
    lines.extend(f"  {i}. {ssid}" for i, ssid in enumerate(ssids, start=1))
    return "\n".join(lines) + "\n"


def render_listing_verbose(ssids, source: str) -> str:
    lines = [f"Known Wi-Fi Networks (from {source}):", ""]
    lines.extend(f"  [{i}] SSID: {ssid}" for i, ssid in enumerate(ssids, start=1))
    lines.extend(["", f"Total: {len(ssids)} network(s)"])
    return "\n".join(lines) + "\n"


def render_listing_json(ssids) -> str:
    return json.dumps({"known_networks": make_jsonable(ssids)}, indent=2) + "\n"
