import base64
import plistlib
from datetime import datetime

import pytest

from conftest import PREFIX, build_registry, bss_entry, deeply_nested_registry, network_entry
from ssid_locator.macos.constants import REGISTRY_MAX_DEPTH
from ssid_locator.macos.errors import RegistryUnreadable
from ssid_locator.macos.known_networks import (DecoderState, KnownNetworkRecord, iter_records, iter_tokens,
                                               list_known_ssids, parse_known_networks, read_known_networks)


def _records(raw):
    return {record.identifier: record for record in parse_known_networks(raw)}


class TestParseKnownNetworks:

    @pytest.mark.parametrize("fmt", [plistlib.FMT_BINARY, plistlib.FMT_XML])
    def test_reads_binary_and_xml(self, fmt):
        raw = build_registry({
            "Home": network_entry("Home", [bss_entry("192.168.1.1/24", b"\xc0\xa8\x01\x01",
                                                     datetime(2024, 3, 1, 8, 30, 0))]),
        }, fmt=fmt)
        record = _records(raw)["Home"]
        assert record.ipv4_signatures == ("192.168.1.1/24",)
        assert record.dhcp_server_id == b"\xc0\xa8\x01\x01"
        assert record.association_instants == {"LastAssociatedAt": "2024-03-01T08:30:00Z"}

    def test_records_in_document_order(self, home_registry):
        # plistlib writes keys sorted
        assert parse_known_networks(home_registry).identifiers() == ["Cafe", "Home", "Office"]

    def test_accumulates_repeated_keys_across_bss_entries(self):
        raw = build_registry({
            "Mesh": network_entry("Mesh", [
                bss_entry("IPv4.Router=10.0.0.1", b"\x0a\x00\x00\x01", datetime(2022, 1, 1)),
                bss_entry("IPv4.Router=10.0.1.1", b"\x0a\x00\x01\x01", datetime(2024, 1, 1)),
            ]),
        })
        record = _records(raw)["Mesh"]
        assert record.ipv4_signatures == ("IPv4.Router=10.0.0.1", "IPv4.Router=10.0.1.1")
        assert record.dhcp_server_ids == (b"\x0a\x00\x00\x01", b"\x0a\x00\x01\x01")
        assert record.association_instants["LastAssociatedAt"] == "2024-01-01T00:00:00Z"

    def test_all_four_timestamp_kinds(self):
        raw = build_registry({
            "Net": network_entry("Net", [bss_entry(last_associated=datetime(2024, 6, 1))],
                                 added_at=datetime(2020, 1, 1),
                                 joined_by_user_at=datetime(2021, 1, 1),
                                 joined_by_system_at=datetime(2022, 1, 1)),
        })
        assert _records(raw)["Net"].association_instants == {
            "AddedAt": "2020-01-01T00:00:00Z",
            "JoinedByUserAt": "2021-01-01T00:00:00Z",
            "JoinedBySystemAt": "2022-01-01T00:00:00Z",
            "LastAssociatedAt": "2024-06-01T00:00:00Z",
        }

    def test_record_without_signatures_is_valid(self, home_registry):
        cafe = _records(home_registry)["Cafe"]
        assert cafe == KnownNetworkRecord("Cafe", association_instants={"JoinedByUserAt": "2023-11-20T17:45:00Z"})
        assert cafe.dhcp_server_id is None

    def test_identifier_keeps_dots_and_spaces(self):
        raw = build_registry({"my.net 5G": network_entry("my.net 5G")})
        assert parse_known_networks(raw).identifiers() == ["my.net 5G"]

    def test_ignores_keys_before_first_record(self):
        raw = plistlib.dumps({
            "IPv4NetworkSignature": "192.168.1.1",
            PREFIX + "Only": {"IPv4NetworkSignature": "10.0.0.1"},
        })
        records = list(parse_known_networks(raw))
        assert [r.identifier for r in records] == ["Only"]
        assert records[0].ipv4_signatures == ("10.0.0.1",)

    def test_base64_text_dhcp_server_id(self):
        raw = plistlib.dumps({PREFIX + "Net": {"DHCPServerID": base64.b64encode(b"\x0a\x00\x00\x01").decode()}})
        assert _records(raw)["Net"].dhcp_server_id == b"\x0a\x00\x00\x01"

    def test_empty_registry_has_no_records(self):
        assert list(parse_known_networks(plistlib.dumps({}))) == []

    def test_iteration_is_restartable(self, home_registry):
        known = parse_known_networks(home_registry)
        assert list(known) == list(known)

    @pytest.mark.parametrize("raw", [
        b"",
        b"definitely not a plist",
        b"bplist00\x00\x01",
        b"<?xml version='1.0'?><plist><dict><key>x</key>",
    ])
    def test_undecodable_registry(self, raw):
        with pytest.raises(RegistryUnreadable):
            parse_known_networks(raw)

    def test_top_level_must_be_a_dictionary(self):
        with pytest.raises(RegistryUnreadable):
            parse_known_networks(plistlib.dumps(["not", "a", "dict"]))


class TestDecoderStates:

    def test_tokens_are_depth_first(self):
        tokens = list(iter_tokens({"a": {"b": 1}, "c": [2, 3]}))
        assert tokens == [("key", "a"), ("key", "b"), ("value", 1), ("key", "c"), ("value", 2), ("value", 3)]

    def test_self_containing_array_is_unreadable(self):
        loop = []
        loop.append(loop)
        with pytest.raises(RegistryUnreadable):
            list(iter_tokens({PREFIX + "Loop": loop}))

    def test_shared_sibling_containers_are_not_cycles(self):
        shared = {"IPv4NetworkSignature": "10.0.0.1"}
        tokens = list(iter_tokens({"a": shared, "b": shared}))
        assert tokens.count(("value", "10.0.0.1")) == 2

    def test_excessive_nesting_is_unreadable(self):
        node = []
        for _ in range(REGISTRY_MAX_DEPTH + 1):
            node = [node]
        with pytest.raises(RegistryUnreadable):
            list(iter_tokens({PREFIX + "Deep": node}))

    def test_deep_xml_registry_fails_on_iteration(self):
        with pytest.raises(RegistryUnreadable):
            list(parse_known_networks(deeply_nested_registry()))

    def test_container_key_does_not_swallow_next_value(self):
        tokens = [
            ("key", PREFIX + "Net"),
            ("key", "BSSList"),
            ("key", "IPv4NetworkSignature"),
            ("value", "10.0.0.1"),
            ("value", "stray value with no key"),
        ]
        (record,) = iter_records(tokens)
        assert record.ipv4_signatures == ("10.0.0.1",)

    def test_state_names(self):
        assert {s.value for s in DecoderState} == {"between-records", "in-record", "awaiting-value"}


class TestListing:

    def test_sorted_and_deduplicated(self):
        records = [KnownNetworkRecord("b"), KnownNetworkRecord("A"), KnownNetworkRecord("b"), KnownNetworkRecord("a")]
        assert list_known_ssids(records) == ["A", "a", "b"]

    def test_records_are_hashable(self, home_registry):
        records = list(parse_known_networks(home_registry))
        assert len(set(records + records)) == 3

    def test_listing_is_idempotent(self, home_registry):
        known = parse_known_networks(home_registry)
        assert list_known_ssids(known) == list_known_ssids(known) == ["Cafe", "Home", "Office"]


class TestReadKnownNetworks:

    def test_reads_file(self, registry_file):
        known = read_known_networks(str(registry_file))
        assert known.source == str(registry_file)
        assert "Home" in known.identifiers()

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryUnreadable):
            read_known_networks(str(tmp_path / "missing.plist"))
