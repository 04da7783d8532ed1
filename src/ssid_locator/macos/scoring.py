"""
Confidence scoring of known-network records against the live environment,
and the single-pass reduction that picks the winning record.

Escalation table (scores are raised, never summed):

    rule  condition                                         score
    1     router address inside an IPv4NetworkSignature     70
    2     DHCP server address inside a signature            85, 90 with rule 1
    3     DHCP server address == stored DHCPServerID bytes  at least 85, 90 when already >= 70
"""

import ipaddress
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from ssid_locator.macos.constants import SCORE_CORROBORATED, SCORE_DHCP, SCORE_NONE, SCORE_ROUTER
from ssid_locator.macos.known_networks import KnownNetworkRecord
from ssid_locator.macos.logging_utils import _log
from ssid_locator.macos.network_utils import EnvironmentSnapshot

# Sorts below every real timestamp.
NO_TIMESTAMP = ""


@dataclass(frozen=True)
class ScoredCandidate:
    identifier: str
    score: int
    recency_key: str = NO_TIMESTAMP

    @property
    def eligible(self) -> bool:
        return self.score > SCORE_NONE


def ip_to_hex(address: str) -> Optional[str]:
    """
    Convert a dotted-quad address to 0x-prefixed big-endian hex
    (10.58.64.21 -> 0x0a3a4015). Returns None for anything that is not IPv4.
    """
    try:
        return "0x" + ipaddress.IPv4Address(address.strip()).packed.hex()
    except (ipaddress.AddressValueError, ValueError, AttributeError):
        _log.debug(f"Cannot convert {address!r} to hex; DHCPServerID matching disabled")
        return None


def _signature_hit(address: Optional[str], signatures) -> bool:
    return bool(address) and any(address in signature for signature in signatures)


def _dhcp_id_hit(dhcp_hex: Optional[str], dhcp_server_ids) -> bool:
    return bool(dhcp_hex) and any("0x" + raw.hex() == dhcp_hex for raw in dhcp_server_ids)


def recency_key(record: KnownNetworkRecord) -> str:
    """Latest association timestamp of the record, compared as text."""
    return max(record.association_instants.values(), default=NO_TIMESTAMP)


def score_record(record: KnownNetworkRecord, snapshot: EnvironmentSnapshot,
                 dhcp_hex: Optional[str] = None) -> ScoredCandidate:
    """
    Score one record. dhcp_hex may be passed in when scoring many records
    against the same snapshot; it is derived from the snapshot otherwise.
    """
    router_hit = _signature_hit(snapshot.router_address, record.ipv4_signatures)
    dhcp_hit = _signature_hit(snapshot.dhcp_server_address, record.ipv4_signatures)

    score = SCORE_NONE
    if router_hit:
        score = SCORE_ROUTER
    if dhcp_hit:
        score = max(score, SCORE_CORROBORATED if router_hit else SCORE_DHCP)

    if snapshot.dhcp_server_address and record.dhcp_server_ids:
        if dhcp_hex is None:
            dhcp_hex = ip_to_hex(snapshot.dhcp_server_address)
        if _dhcp_id_hit(dhcp_hex, record.dhcp_server_ids):
            score = max(score, SCORE_CORROBORATED if score >= SCORE_ROUTER else SCORE_DHCP)

    return ScoredCandidate(record.identifier, score, recency_key(record))


def score_candidates(records: Iterable[KnownNetworkRecord],
                     snapshot: EnvironmentSnapshot) -> Iterator[ScoredCandidate]:
    dhcp_hex = ip_to_hex(snapshot.dhcp_server_address) if snapshot.dhcp_server_address else None
    for record in records:
        candidate = score_record(record, snapshot, dhcp_hex)
        _log.debug(f"Scored '{candidate.identifier}': {candidate.score} (last seen {candidate.recency_key or 'never'})")
        yield candidate


@dataclass(frozen=True)
class BestCandidate:
    """Running state of the resolver fold."""
    candidate: Optional[ScoredCandidate] = None

    def offer(self, candidate: ScoredCandidate) -> "BestCandidate":
        if not candidate.eligible:
            return self
        best = self.candidate
        if best is None or candidate.score > best.score or (
                candidate.score == best.score and candidate.recency_key > best.recency_key):
            return BestCandidate(candidate)
        return self


def resolve_best(candidates: Iterable[ScoredCandidate]) -> Optional[ScoredCandidate]:
    """Highest score wins; equal scores go to the most recent timestamp. None if nothing scored."""
    state = BestCandidate()
    for candidate in candidates:
        state = state.offer(candidate)
    return state.candidate
