"""
Paths, registry key names and exit codes shared by the locator modules.
"""
import os

VERSION = "2.0.0"

# Known-networks registry written by the Wi-Fi daemon (root readable only).
DEFAULT_KNOWN_NETWORKS_PLIST = "/Library/Preferences/com.apple.wifi.known-networks.plist"
PLIST_ENV_VAR = "SSID_LOCATOR_PLIST"

AIRPORT = "/System/Library/PrivateFrameworks/Apple80211.framework/Versions/Current/Resources/airport"

# Registry layout
NETWORK_KEY_PREFIX = "wifi.network.ssid."
SIGNATURE_KEY = "IPv4NetworkSignature"
DHCP_SERVER_ID_KEY = "DHCPServerID"
TIMESTAMP_KEYS = ("LastAssociatedAt", "JoinedBySystemAt", "JoinedByUserAt", "AddedAt")
PLIST_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Value the driver reports in place of the SSID when TCC hides it.
REDACTED_SSID = "<redacted>"

# Score tiers
SCORE_NONE = 0
SCORE_ROUTER = 70
SCORE_DHCP = 85
SCORE_CORROBORATED = 90

COMMAND_TIMEOUT = 10  # seconds
# Deepest container nesting accepted in the registry
REGISTRY_MAX_DEPTH = 64
FALLBACK_INTERFACE = "en0"
MIN_MACOS_MAJOR = 11

# Exit codes
EX_OK = 0
EX_USAGE = 2
EX_NOT_CONNECTED = 3
EX_SSID_NOT_FOUND = 4
EX_PLIST_UNREADABLE = 5
EX_NOT_ROOT = 10
EX_NOT_MACOS = 11
EX_BAD_INTERFACE = 12


def known_networks_plist_path():
    """Registry location, overridable through the SSID_LOCATOR_PLIST environment variable."""
    return os.environ.get(PLIST_ENV_VAR) or DEFAULT_KNOWN_NETWORKS_PLIST
