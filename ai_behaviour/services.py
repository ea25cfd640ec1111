import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db.models import Count
from django.utils import timezone

from decision_engine.models import RequestLog, SecurityEvent
from decision_engine.types import Signal
from ip_reputation.addresses import normalize_ip

logger = logging.getLogger(__name__)

SOURCES = {
    "requests": RequestLog,
    "events": SecurityEvent,
}


@dataclass(frozen=True)
class BehaviourProfile:
    request_count: int = 0
    unique_user_agents: int = 0
    unique_paths: int = 0


EMPTY_PROFILE = BehaviourProfile()


@dataclass(frozen=True)
class BehaviourThresholds:
    automation_requests: int = 200
    automation_max_agents: int = 2
    automation_points: int = 30
    scan_paths: int = 50
    scan_points: int = 25
    rotating_agents: int = 10
    rotating_points: int = 20


class BehaviourAnalyzer:
    """
    Short-window behaviour profile per address.
    Rule based only: volume and diversity of recent requests.
    """

    def __init__(self, source="requests", lookback=timedelta(hours=1), thresholds=BehaviourThresholds()):
        if source not in SOURCES:
            raise ValueError(f"unknown behaviour source {source!r}, expected one of {sorted(SOURCES)}")
        self.source = source
        self.model = SOURCES[source]
        self.lookback = lookback
        self.thresholds = thresholds

    def analyze(self, address, lookback=None):
        ip = normalize_ip(address)
        if ip is None:
            return EMPTY_PROFILE

        since = timezone.now() - (lookback or self.lookback)
        row = (
            self.model.objects
            .filter(ip_address=ip, timestamp__gte=since)
            .aggregate(
                request_count=Count("pk"),
                unique_user_agents=Count("user_agent", distinct=True),
                unique_paths=Count("path", distinct=True),
            )
        )
        return BehaviourProfile(
            request_count=row["request_count"] or 0,
            unique_user_agents=row["unique_user_agents"] or 0,
            unique_paths=row["unique_paths"] or 0,
        )

    def indicators(self, profile):
        t = self.thresholds
        signals = []

        # === volume tinggi dengan UA yang sama → automation
        if profile.request_count > t.automation_requests and profile.unique_user_agents <= t.automation_max_agents:
            signals.append(Signal("behaviour_automation", t.automation_points))

        # === banyak path berbeda → scanning
        if profile.unique_paths > t.scan_paths:
            signals.append(Signal("behaviour_scanning", t.scan_points))

        # === UA berganti-ganti dari satu IP → bot farm
        if profile.unique_user_agents > t.rotating_agents:
            signals.append(Signal("behaviour_rotating_agents", t.rotating_points))

        return signals

    def score(self, address, lookback=None):
        return self.indicators(self.analyze(address, lookback))
