import pytest

from ai_behaviour.services import BehaviourAnalyzer
from decision_engine.detectors import GeoPolicy
from decision_engine.engine import DecisionEngine, ScoringPolicy
from decision_engine.persistence import PersistenceQueue
from decision_engine.services import SecurityEventLog
from ip_reputation.relays import RelayRegistry
from ip_reputation.services import ThreatIntelStore
from ip_reputation.vpn import NullVpnLookup
from middlewares.rate_limit import AdmissionCounter, RateLimitPolicy
from tests.fakes import (
    FakeResponse,
    FakeSession,
    ManualClock,
    MemoryEventLog,
    MemoryThreatIntel,
    StaticBehaviour,
    StaticRelays,
)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def writer():
    # not started: tests drain it with flush()
    return PersistenceQueue(flush_interval=0.01)


@pytest.fixture
def event_log():
    return MemoryEventLog()


@pytest.fixture
def threat_intel():
    return MemoryThreatIntel()


@pytest.fixture
def build_engine(writer, event_log, threat_intel, clock):
    """Factory for an engine over in-memory collaborators; override any of them."""

    def _build(**overrides):
        counter = AdmissionCounter(overrides.pop("limit", 100), overrides.pop("window", 60), clock=clock)
        parts = dict(
            geo=GeoPolicy(["KP", "IR", "CU", "SY", "VE"]),
            rate_limits=RateLimitPolicy(counter),
            relays=StaticRelays(),
            vpn=NullVpnLookup(),
            threat_intel=threat_intel,
            behaviour=StaticBehaviour(),
            event_log=event_log,
            writer=writer,
            policy=ScoringPolicy(),
        )
        parts.update(overrides)
        return DecisionEngine(**parts)

    return _build


@pytest.fixture
def db_engine(writer, clock):
    """Engine wired to the real ORM-backed stores (needs django_db)."""

    def _build(**overrides):
        counter = AdmissionCounter(100, 60, clock=clock)
        parts = dict(
            geo=GeoPolicy(["KP"]),
            rate_limits=RateLimitPolicy(counter),
            relays=RelayRegistry(session=FakeSession(FakeResponse("", 503))),
            vpn=NullVpnLookup(),
            threat_intel=ThreatIntelStore(),
            behaviour=BehaviourAnalyzer(source="events"),
            event_log=SecurityEventLog(),
            writer=writer,
            policy=ScoringPolicy(log_all_requests=True),
        )
        parts.update(overrides)
        return DecisionEngine(**parts)

    return _build
