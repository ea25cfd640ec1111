import pytest
import requests
from django.core.management import CommandError, call_command

from tests.fakes import FakeResponse


class TestCheckRelayFeed:
    def test_reports_relay_count(self, monkeypatch, capsys):
        seen = []

        def fake_get(session, url, timeout=None):
            seen.append(url)
            return FakeResponse("185.220.101.1\n185.220.101.2\n")

        monkeypatch.setattr(requests.Session, "get", fake_get)
        call_command("check_relay_feed", url="https://relays.test/list")

        assert seen == ["https://relays.test/list"]
        assert "2 addresses" in capsys.readouterr().out

    def test_failed_fetch_is_an_error(self, monkeypatch):
        def fake_get(session, url, timeout=None):
            raise requests.ConnectionError("unreachable")

        monkeypatch.setattr(requests.Session, "get", fake_get)
        with pytest.raises(CommandError):
            call_command("check_relay_feed")
