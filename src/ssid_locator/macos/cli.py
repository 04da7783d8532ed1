"""
Command-line entry point: infer the current Wi-Fi SSID on macOS without
Location Services, or list every network in the known-networks registry.
"""
import os
import platform
import sys
from argparse import ArgumentParser, RawDescriptionHelpFormatter

from ssid_locator.macos import constants
from ssid_locator.macos.constants import (EX_BAD_INTERFACE, EX_NOT_CONNECTED, EX_NOT_MACOS, EX_NOT_ROOT, EX_OK,
                                          EX_PLIST_UNREADABLE, EX_SSID_NOT_FOUND, MIN_MACOS_MAJOR, VERSION)
from ssid_locator.macos.errors import RegistryUnreadable
from ssid_locator.macos.known_networks import read_registry_bytes
from ssid_locator.macos.locator import FailureKind, list_known_networks, locate_ssid
from ssid_locator.macos.logging_utils import _log, configure_logging
from ssid_locator.macos import network_utils
from ssid_locator.macos import render_utils

FAILURE_EXIT_CODES = {
    FailureKind.REGISTRY_UNREADABLE: EX_PLIST_UNREADABLE,
    FailureKind.NO_ENVIRONMENT: EX_NOT_CONNECTED,
    FailureKind.NO_MATCH: EX_SSID_NOT_FOUND,
    FailureKind.EMPTY_REGISTRY: EX_SSID_NOT_FOUND,
}

EPILOG = """exit codes:
   0   success
   2   usage error (bad arguments)
   3   not connected to Wi-Fi
   4   SSID not found in known-networks plist, or
       no known networks to list (--all)
   5   plist file unreadable
  10   not running as root
  11   not running on macOS
  12   invalid network interface
"""


class CliError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog='ssid-locator',
        description='Infer the current Wi-Fi SSID on macOS from the known-networks plist and the '
                    'DHCP/router environment, without triggering a Location Services prompt. '
                    'Falls back to ioreg if plist matching fails.',
        epilog=EPILOG,
        formatter_class=RawDescriptionHelpFormatter,
    )
    parser.add_argument('-i', '--interface', metavar='IFACE',
                        help='Wi-Fi interface to inspect (default: auto-detect).')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show detailed connection info (RSSI, channel, etc.) and debug logging.')
    parser.add_argument('-j', '--json', action='store_true',
                        help='Output in JSON format.')
    parser.add_argument('-a', '--all', action='store_true', dest='list_all',
                        help='List all known Wi-Fi networks from the system plist.')
    parser.add_argument('--plist', metavar='PATH', default=None,
                        help=f'Known-networks plist to read (default: ${constants.PLIST_ENV_VAR} '
                             f'or {constants.DEFAULT_KNOWN_NETWORKS_PLIST}).')
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s {VERSION}')
    return parser


def check_macos():
    system = platform.system()
    if system != "Darwin":
        raise CliError(EX_NOT_MACOS, f"This tool requires macOS (detected: {system}).")
    release = platform.mac_ver()[0]
    if release:
        try:
            major = int(release.split(".")[0])
        except ValueError:
            return
        if major < MIN_MACOS_MAJOR:
            _log.warning(f"macOS {MIN_MACOS_MAJOR}+ recommended (detected: {release}). Results may be unreliable.")


def check_root():
    if os.geteuid() != 0:
        raise CliError(EX_NOT_ROOT, f"Root privileges required. Run with: sudo {os.path.basename(sys.argv[0])}")


def resolve_interface(requested):
    if not requested:
        interface = network_utils.detect_wifi_interface()
        _log.debug(f"Auto-detected Wi-Fi interface: {interface}")
        return interface
    if not network_utils.interface_exists(requested):
        raise CliError(EX_BAD_INTERFACE, f"Interface '{requested}' not found.")
    if not network_utils.looks_like_wifi(requested):
        _log.warning(f"Interface '{requested}' may not be a Wi-Fi adapter.")
    return requested


def load_registry(path: str) -> bytes:
    if not os.access(path, os.R_OK):
        raise CliError(EX_PLIST_UNREADABLE, f"Cannot read {path} - ensure root and macOS 11+.")
    try:
        return read_registry_bytes(path)
    except RegistryUnreadable as e:
        raise CliError(EX_PLIST_UNREADABLE, str(e)) from e


def run_listing(args, raw: bytes, plist_path: str, out) -> int:
    listing = list_known_networks(raw, source=plist_path)
    if listing.failure is FailureKind.REGISTRY_UNREADABLE:
        raise CliError(EX_PLIST_UNREADABLE, "Failed to read known-networks plist.")
    if listing.failure is FailureKind.EMPTY_REGISTRY:
        raise CliError(EX_SSID_NOT_FOUND, "No known networks found in plist.")

    if args.json:
        out.write(render_utils.render_listing_json(listing.ssids))
    elif args.verbose:
        out.write(render_utils.render_listing_verbose(listing.ssids, plist_path))
    else:
        out.write(render_utils.render_listing_plain(listing.ssids))
    return EX_OK


def run_locate(args, raw: bytes, plist_path: str, interface: str, out) -> int:
    snapshot = network_utils.get_environment_snapshot(interface)
    result = locate_ssid(raw, snapshot, probe=network_utils.fallback_ioreg_ssid, source=plist_path)
    if not result.ok:
        messages = {
            FailureKind.NO_ENVIRONMENT: f"Not connected to Wi-Fi on {interface} (no router / DHCP info).",
            FailureKind.REGISTRY_UNREADABLE: "Failed to decode known-networks plist.",
            FailureKind.NO_MATCH: "Connected but SSID could not be determined.",
        }
        raise CliError(FAILURE_EXIT_CODES[result.failure], messages.get(result.failure, result.detail))

    if args.json:
        out.write(render_utils.render_json(result, interface, network_utils.get_signal_info()))
    elif args.verbose:
        out.write(render_utils.render_verbose(result, interface, network_utils.get_signal_info()))
    else:
        out.write(render_utils.render_plain(result))
    return EX_OK


def main(argv=None, out=None) -> int:
    out = out or sys.stdout
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    plist_path = args.plist or constants.known_networks_plist_path()

    try:
        check_macos()
        check_root()
        interface = resolve_interface(args.interface)
        if network_utils.vpn_tunnel_active():
            _log.warning("VPN tunnel (utun) detected; router IP may differ from Wi-Fi gateway.")
        raw = load_registry(plist_path)
        if args.list_all:
            return run_listing(args, raw, plist_path, out)
        return run_locate(args, raw, plist_path, interface, out)
    except CliError as e:
        sys.stderr.write(f"Error: {e.message}\n")
        return e.code


if __name__ == '__main__':
    sys.exit(main())
