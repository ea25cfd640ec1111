import threading
import time

import requests

from ip_reputation.addresses import normalize_ip
from ip_reputation.relays import SEED_RELAYS, RelayRegistry, parse_relay_list
from tests.fakes import FakeResponse, FakeSession

BULK_LIST = """\
185.220.101.1
185.220.101.2
not-an-ip
# comment

2001:db8::1
"""

EXIT_ADDRESSES = """\
ExitNode 0011BD2485AD45D984EC4159C88FC066E5E3300E
Published 2024-01-01 00:00:00
LastStatus 2024-01-01 01:00:00
ExitAddress 162.247.74.201 2024-01-01 01:10:09
ExitNode 0091174DE56EA4E052C7E8C3D9D8E7A5C3B8D6F1
ExitAddress 171.25.193.20 2024-01-01 02:00:00
"""


class TestNormalizeIp:
    def test_valid_addresses(self):
        assert normalize_ip("203.0.113.5") == "203.0.113.5"
        assert normalize_ip(" 203.0.113.5 ") == "203.0.113.5"
        assert normalize_ip("2001:DB8::1") == "2001:db8::1"

    def test_invalid_addresses(self):
        assert normalize_ip("") is None
        assert normalize_ip("unknown") is None
        assert normalize_ip("999.1.1.1") is None
        assert normalize_ip(None) is None


class TestParseRelayList:
    def test_bulk_format(self):
        assert parse_relay_list(BULK_LIST) == {"185.220.101.1", "185.220.101.2", "2001:db8::1"}

    def test_exit_addresses_format(self):
        assert parse_relay_list(EXIT_ADDRESSES) == {"162.247.74.201", "171.25.193.20"}

    def test_empty(self):
        assert parse_relay_list("") == set()


class TestRelayRegistry:
    def test_refresh_replaces_snapshot(self):
        session = FakeSession(FakeResponse(BULK_LIST))
        registry = RelayRegistry(source_url="https://relays.test/list", session=session, timeout=2.5,
                                 clock=lambda: 1234.0)

        assert registry.refresh() is True
        assert registry.is_known_relay("185.220.101.1")
        assert not registry.is_known_relay("8.8.8.8")
        assert registry.size == 3
        assert registry.last_successful_update == 1234.0
        assert session.calls == [("https://relays.test/list", 2.5)]

    def test_invalid_address_is_never_a_relay(self):
        registry = RelayRegistry(session=FakeSession(FakeResponse(BULK_LIST)))
        registry.refresh()
        assert not registry.is_known_relay("not-an-ip")
        assert not registry.is_known_relay("")

    def test_failed_first_refresh_applies_seed(self):
        registry = RelayRegistry(session=FakeSession(requests.ConnectionError("unreachable")))
        assert registry.refresh() is False
        assert registry.snapshot() == SEED_RELAYS
        assert registry.is_known_relay("185.220.100.240")
        assert registry.last_successful_update is None

    def test_failures_keep_previous_snapshot(self):
        session = FakeSession(
            FakeResponse(BULK_LIST),
            FakeResponse("", status_code=503),
            requests.Timeout("timed out"),
            FakeResponse("garbage only\n"),
        )
        registry = RelayRegistry(session=session)
        assert registry.refresh()
        before = registry.snapshot()

        for _ in range(3):
            assert registry.refresh() is False
            assert registry.snapshot() is before

        assert registry.is_known_relay("185.220.101.2")
        assert not registry.is_known_relay("185.220.100.240")

    def test_concurrent_refreshes_fetch_once(self):
        gate = threading.Event()
        session = FakeSession(FakeResponse(BULK_LIST), gate=gate)
        registry = RelayRegistry(session=session)
        results = []

        first = threading.Thread(target=lambda: results.append(registry.refresh()))
        first.start()
        while not session.calls:
            time.sleep(0.001)
        assert registry.refreshing

        others = [threading.Thread(target=lambda: results.append(registry.refresh())) for _ in range(5)]
        for t in others:
            t.start()
        for t in others:
            t.join()

        gate.set()
        first.join()

        assert len(session.calls) == 1
        assert sorted(results) == [False] * 5 + [True]
        assert not registry.refreshing
