"""
locator.py
Resolution pipeline: registry decode -> per-record scoring -> best-candidate
fold -> driver probe fallback. Every failure comes back as a result value;
nothing raised inside the pipeline escapes these functions.
"""

import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from ssid_locator.macos.constants import REDACTED_SSID, SCORE_NONE
from ssid_locator.macos.errors import RegistryUnreadable
from ssid_locator.macos.known_networks import list_known_ssids, parse_known_networks
from ssid_locator.macos.logging_utils import _log
from ssid_locator.macos.network_utils import EnvironmentSnapshot, fallback_ioreg_ssid
from ssid_locator.macos.scoring import resolve_best, score_candidates


class Provenance(Enum):
    REGISTRY_MATCH = "registry-match"
    FALLBACK_PROBE = "fallback-probe"


class FailureKind(Enum):
    REGISTRY_UNREADABLE = "registry-unreadable"
    NO_ENVIRONMENT = "no-environment"
    NO_MATCH = "no-match"
    EMPTY_REGISTRY = "empty-registry"


@dataclass(frozen=True)
class ResolutionResult:
    ssid: Optional[str] = None
    provenance: Optional[Provenance] = None
    failure: Optional[FailureKind] = None
    score: int = SCORE_NONE
    snapshot: Optional[EnvironmentSnapshot] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None and self.ssid is not None

    @classmethod
    def failed(cls, failure: FailureKind, snapshot=None, detail: str = "") -> "ResolutionResult":
        return cls(failure=failure, snapshot=snapshot, detail=detail)


@dataclass(frozen=True)
class ListingResult:
    ssids: Tuple[str, ...] = ()
    failure: Optional[FailureKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


def interpret_probe_result(value: Optional[str]) -> Optional[str]:
    """The probe's SSID, or None when it is empty or redacted."""
    if value is None:
        return None
    value = value.strip()
    if not value or value == REDACTED_SSID:
        return None
    return value


def _run_probe(probe: Callable[[], Optional[str]]) -> Optional[str]:
    try:
        raw = probe()
    except (OSError, subprocess.SubprocessError) as e:
        _log.warning(f"Driver probe failed: {e}")
        return None
    ssid = interpret_probe_result(raw)
    if ssid is None and raw:
        _log.debug(f"Driver probe returned unusable value {raw.strip()!r}")
    return ssid


def locate_ssid(raw_registry: bytes, snapshot: EnvironmentSnapshot,
                probe: Optional[Callable[[], Optional[str]]] = fallback_ioreg_ssid,
                source: str = "<bytes>") -> ResolutionResult:
    """
    Work out the SSID of the current network.

    raw_registry: contents of the known-networks plist (binary or XML)
    snapshot: router / DHCP server addresses of the Wi-Fi interface
    probe: zero-argument callable asking the driver for the SSID, or None to skip
    """
    if not snapshot.is_connected:
        return ResolutionResult.failed(FailureKind.NO_ENVIRONMENT, snapshot,
                                       "no router or DHCP server address")
    try:
        known_networks = parse_known_networks(raw_registry, source)
        best = resolve_best(score_candidates(known_networks, snapshot))
    except RegistryUnreadable as e:
        _log.debug(str(e))
        return ResolutionResult.failed(FailureKind.REGISTRY_UNREADABLE, snapshot, str(e))

    if best is not None:
        _log.debug(f"Registry match: '{best.identifier}' (score {best.score})")
        return ResolutionResult(ssid=best.identifier, provenance=Provenance.REGISTRY_MATCH,
                                score=best.score, snapshot=snapshot)

    if probe is not None:
        _log.debug("Plist match failed; trying ioreg fallback...")
        ssid = _run_probe(probe)
        if ssid is not None:
            return ResolutionResult(ssid=ssid, provenance=Provenance.FALLBACK_PROBE, snapshot=snapshot)

    return ResolutionResult.failed(FailureKind.NO_MATCH, snapshot,
                                   "connected but SSID could not be determined")


def list_known_networks(raw_registry: bytes, source: str = "<bytes>") -> ListingResult:
    """Sorted, deduplicated SSIDs stored in the registry."""
    try:
        ssids = list_known_ssids(parse_known_networks(raw_registry, source))
    except RegistryUnreadable as e:
        _log.debug(str(e))
        return ListingResult(failure=FailureKind.REGISTRY_UNREADABLE, detail=str(e))
    if not ssids:
        return ListingResult(failure=FailureKind.EMPTY_REGISTRY, detail="no known networks found")
    return ListingResult(ssids=tuple(ssids))
