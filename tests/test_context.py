import pytest
from django.test import RequestFactory

from decision_engine.context import (
    body_preview,
    build_request_context,
    client_ip,
    country_code,
    trusted_networks,
)

PROXY = "10.0.0.2"
TRUSTED = ["10.0.0.0/24"]


@pytest.fixture
def rf():
    return RequestFactory()


class TestClientIp:
    def test_peer_address(self, rf):
        request = rf.get("/", REMOTE_ADDR="198.51.100.4")
        assert client_ip(request) == "198.51.100.4"

    def test_forwarded_headers_ignored_without_trusted_proxies(self, rf):
        request = rf.get("/", REMOTE_ADDR="198.51.100.5", HTTP_X_FORWARDED_FOR="203.0.113.77",
                         HTTP_X_REAL_IP="203.0.113.78")
        assert client_ip(request) == "198.51.100.5"

    def test_forwarded_header_ignored_from_untrusted_peer(self, rf):
        request = rf.get("/", REMOTE_ADDR="198.51.100.4", HTTP_X_FORWARDED_FOR="203.0.113.8")
        assert client_ip(request, trusted_proxies=TRUSTED) == "198.51.100.4"

    def test_forwarded_header_honoured_from_trusted_peer(self, rf):
        request = rf.get("/", REMOTE_ADDR=PROXY, HTTP_X_FORWARDED_FOR="203.0.113.8")
        assert client_ip(request, trusted_proxies=TRUSTED) == "203.0.113.8"

    def test_client_supplied_hops_are_not_believed(self, rf):
        # the client sent "6.6.6.6", the proxy appended the real peer
        request = rf.get("/", REMOTE_ADDR=PROXY, HTTP_X_FORWARDED_FOR="6.6.6.6, 203.0.113.8")
        assert client_ip(request, trusted_proxies=TRUSTED) == "203.0.113.8"

    def test_trusted_hops_are_skipped(self, rf):
        request = rf.get("/", REMOTE_ADDR=PROXY, HTTP_X_FORWARDED_FOR="6.6.6.6, 203.0.113.8, 10.0.0.7")
        assert client_ip(request, trusted_proxies=TRUSTED) == "203.0.113.8"

    def test_malformed_hop_stops_the_walk(self, rf):
        request = rf.get("/", REMOTE_ADDR=PROXY, HTTP_X_FORWARDED_FOR="203.0.113.8, garbage",
                         HTTP_X_REAL_IP="203.0.113.9")
        assert client_ip(request, trusted_proxies=TRUSTED) == "203.0.113.9"

    def test_all_hops_trusted(self, rf):
        request = rf.get("/", REMOTE_ADDR=PROXY, HTTP_X_FORWARDED_FOR="10.0.0.9, 10.0.0.7")
        assert client_ip(request, trusted_proxies=TRUSTED) == "10.0.0.9"

    def test_no_address_at_all(self, rf):
        request = rf.get("/", REMOTE_ADDR="")
        assert client_ip(request) == "unknown"


class TestTrustedNetworks:
    def test_addresses_and_ranges(self):
        networks = trusted_networks(["10.0.0.2", "192.168.0.0/16", "2001:db8::/32"])
        assert [str(n) for n in networks] == ["10.0.0.2/32", "192.168.0.0/16", "2001:db8::/32"]

    def test_invalid_entries_are_skipped(self):
        assert trusted_networks(["not-a-proxy", ""]) == ()

    def test_parsed_networks_pass_through(self):
        networks = trusted_networks(TRUSTED)
        assert trusted_networks(networks) == networks


class TestRequestContext:
    def test_country_header_from_trusted_proxy(self, rf):
        def country(**meta):
            return country_code(rf.get("/", REMOTE_ADDR=PROXY, **meta), trusted_proxies=TRUSTED)

        assert country(HTTP_CF_IPCOUNTRY="kp") == "KP"
        assert country(HTTP_CF_IPCOUNTRY="XX") == ""
        assert country(HTTP_X_COUNTRY="IR") == "IR"
        assert country() == ""

    def test_country_header_ignored_from_untrusted_peer(self, rf):
        request = rf.get("/", REMOTE_ADDR="198.51.100.5", HTTP_X_COUNTRY="KP")
        assert country_code(request) == ""
        assert country_code(request, trusted_proxies=TRUSTED) == ""

    def test_body_preview_is_truncated(self, rf):
        request = rf.post("/comments", data="a" * 100, content_type="text/plain")
        assert body_preview(request, 10) == "a" * 10
        assert body_preview(request, 0) == ""

    def test_build_context(self, rf):
        request = rf.post(
            "/search?q=1",
            data="q=<script>",
            content_type="application/x-www-form-urlencoded",
            REMOTE_ADDR=PROXY,
            HTTP_X_FORWARDED_FOR="198.51.100.4",
            HTTP_USER_AGENT="curl/7.64",
            HTTP_ACCEPT_LANGUAGE="en",
            HTTP_CF_IPCOUNTRY="US",
        )
        ctx = build_request_context(request, trusted_proxies=TRUSTED)

        assert ctx.address == "198.51.100.4"
        assert ctx.method == "POST"
        assert ctx.path == "/search"
        assert ctx.url == "/search?q=1"
        assert ctx.user_agent == "curl/7.64"
        assert ctx.country == "US"
        assert ctx.body_preview == "q=<script>"
        assert ctx.header("accept-language") == "en"

    def test_spoofed_headers_from_direct_client(self, rf):
        request = rf.get("/", REMOTE_ADDR="198.51.100.5",
                         HTTP_X_FORWARDED_FOR="203.0.113.77", HTTP_X_COUNTRY="KP")
        ctx = build_request_context(request)
        assert ctx.address == "198.51.100.5"
        assert ctx.country == ""

    def test_context_is_immutable(self, rf):
        ctx = build_request_context(rf.get("/", REMOTE_ADDR="198.51.100.4"))
        with pytest.raises(AttributeError):
            ctx.address = "203.0.113.1"
        with pytest.raises(TypeError):
            ctx.headers["X-Injected"] = "1"
