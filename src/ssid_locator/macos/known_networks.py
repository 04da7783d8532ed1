"""
known_networks.py
Decoder for the macOS known-networks registry
(/Library/Preferences/com.apple.wifi.known-networks.plist).

The plist is decoded once, flattened into a document-ordered stream of key and
value tokens, and a small state machine groups the tokens into one
KnownNetworkRecord per "wifi.network.ssid.<SSID>" key. Nothing is scored here.
"""

import base64
import binascii
import plistlib
import xml.parsers.expat
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from ssid_locator.macos.constants import (DHCP_SERVER_ID_KEY, NETWORK_KEY_PREFIX, PLIST_DATE_FORMAT,
                                          REGISTRY_MAX_DEPTH, SIGNATURE_KEY, TIMESTAMP_KEYS)
from ssid_locator.macos.errors import RegistryUnreadable
from ssid_locator.macos.logging_utils import _log

KEY = "key"
VALUE = "value"


@dataclass(frozen=True)
class KnownNetworkRecord:
    identifier: str
    ipv4_signatures: Tuple[str, ...] = ()
    dhcp_server_ids: Tuple[bytes, ...] = ()
    # Left out of the hash so records stay usable in sets.
    association_instants: Dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def dhcp_server_id(self) -> Optional[bytes]:
        """The most recently stored DHCP server id, if any."""
        return self.dhcp_server_ids[-1] if self.dhcp_server_ids else None


class DecoderState(Enum):
    BETWEEN_RECORDS = "between-records"
    IN_RECORD = "in-record"
    AWAITING_VALUE = "awaiting-value"


class _RecordBuilder:
    def __init__(self, identifier):
        self.identifier = identifier
        self.signatures = []
        self.dhcp_server_ids = []
        self.instants = {}

    def add(self, key, value):
        if key == SIGNATURE_KEY:
            if isinstance(value, str):
                self.signatures.append(value)
        elif key == DHCP_SERVER_ID_KEY:
            decoded = _decode_dhcp_server_id(value)
            if decoded is not None:
                self.dhcp_server_ids.append(decoded)
        elif key in TIMESTAMP_KEYS:
            stamp = _timestamp_text(value)
            # A network remembered on several BSSes repeats the keys; keep the latest.
            if stamp and stamp > self.instants.get(key, ""):
                self.instants[key] = stamp

    def build(self) -> KnownNetworkRecord:
        return KnownNetworkRecord(
            identifier=self.identifier,
            ipv4_signatures=tuple(self.signatures),
            dhcp_server_ids=tuple(self.dhcp_server_ids),
            association_instants=dict(self.instants),
        )


def _decode_dhcp_server_id(value) -> Optional[bytes]:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            _log.debug(f"Ignoring {DHCP_SERVER_ID_KEY} that is not valid base64: {value!r}")
    return None


def _timestamp_text(value) -> Optional[str]:
    """Render a plist <date> back to its fixed-width XML text form."""
    if isinstance(value, datetime):
        return value.strftime(PLIST_DATE_FORMAT)
    if isinstance(value, str):
        return value
    return None


_NO_KEY = object()


def _entries(container):
    if isinstance(container, dict):
        return iter(container.items())
    return ((_NO_KEY, item) for item in container)


def _is_container(node) -> bool:
    return isinstance(node, (dict, list, tuple))


def iter_tokens(node) -> Iterator[Tuple[str, object]]:
    """
    Flatten a decoded plist into ("key", name) and ("value", leaf) tokens,
    depth first, in stored order.

    Walks with an explicit stack. A container that holds itself (possible in a
    corrupt binary plist) or nesting deeper than REGISTRY_MAX_DEPTH raises
    RegistryUnreadable.
    """
    if not _is_container(node):
        yield VALUE, node
        return

    path = [id(node)]
    stack = [_entries(node)]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            path.pop()
            continue
        key, value = entry
        if key is not _NO_KEY:
            yield KEY, key
        if not _is_container(value):
            yield VALUE, value
            continue
        if id(value) in path:
            raise RegistryUnreadable("Known-networks registry contains a container that refers to itself.")
        if len(stack) >= REGISTRY_MAX_DEPTH:
            raise RegistryUnreadable(f"Known-networks registry nests deeper than {REGISTRY_MAX_DEPTH} levels.")
        path.append(id(value))
        stack.append(_entries(value))


def iter_records(tokens) -> Iterator[KnownNetworkRecord]:
    """Group a token stream into records."""
    state = DecoderState.BETWEEN_RECORDS
    current = None
    pending_key = None

    for kind, payload in tokens:
        if kind == KEY:
            if isinstance(payload, str) and payload.startswith(NETWORK_KEY_PREFIX):
                if current is not None:
                    yield current.build()
                current = _RecordBuilder(payload[len(NETWORK_KEY_PREFIX):])
                state, pending_key = DecoderState.IN_RECORD, None
            elif state != DecoderState.BETWEEN_RECORDS:
                # A key directly after a key means the previous one held a container.
                state, pending_key = DecoderState.AWAITING_VALUE, payload
        elif state == DecoderState.AWAITING_VALUE:
            current.add(pending_key, payload)
            state, pending_key = DecoderState.IN_RECORD, None

    if current is not None:
        yield current.build()


class KnownNetworks:
    """
    Lazy, restartable view over a decoded registry. Every iteration re-runs the
    record decoder, so the same object can feed both scoring and listing.
    Iterating a corrupt tree raises RegistryUnreadable.
    """

    def __init__(self, tree: dict, source: str = "<bytes>"):
        self._tree = tree
        self.source = source

    def __iter__(self) -> Iterator[KnownNetworkRecord]:
        return iter_records(iter_tokens(self._tree))

    def identifiers(self) -> List[str]:
        return [record.identifier for record in self]


def parse_known_networks(raw: bytes, source: str = "<bytes>") -> KnownNetworks:
    """
    Decode the registry (binary or XML plist). Raises RegistryUnreadable when
    the bytes cannot be decoded into a dictionary.
    """
    if not raw:
        raise RegistryUnreadable(f"Known-networks registry {source} is empty.")
    try:
        tree = plistlib.loads(raw)
    except (plistlib.InvalidFileException, xml.parsers.expat.ExpatError, ValueError,
            TypeError, KeyError, IndexError, OverflowError, RecursionError) as e:
        raise RegistryUnreadable(f"Failed to decode known-networks registry {source}: {e}") from e
    if not isinstance(tree, dict):
        raise RegistryUnreadable(f"Known-networks registry {source} does not hold a dictionary.")
    _log.debug(f"Decoded known-networks registry {source} ({len(tree)} top-level keys)")
    return KnownNetworks(tree, source)


def read_registry_bytes(path: str) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise RegistryUnreadable(f"Cannot read {path}: {e.strerror or e}") from e


def read_known_networks(path: str) -> KnownNetworks:
    """Read and decode the registry file at path."""
    return parse_known_networks(read_registry_bytes(path), source=path)


def list_known_ssids(known_networks) -> List[str]:
    """Every SSID in the registry, deduplicated and sorted."""
    return sorted({record.identifier for record in known_networks})
