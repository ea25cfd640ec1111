"""Security Event Log and the wiring of the whole admission pipeline.

``build_pipeline()`` creates one explicitly owned set of service objects
from Django settings. Nothing here is a module-level singleton: the
middleware owns the pipeline it builds, tests build their own.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings as django_settings
from django.db import close_old_connections

from ai_behaviour.services import BehaviourAnalyzer, BehaviourThresholds
from ip_reputation.addresses import normalize_ip
from ip_reputation.relays import RelayRegistry
from ip_reputation.services import ThreatIntelStore
from ip_reputation.vpn import IpQualityScoreLookup, NullVpnLookup
from middlewares.rate_limit import build_rate_limit_policy, get_redis_client

from .detectors import BotRules, GeoPolicy
from .engine import DecisionEngine, ScoringPolicy
from .models import RequestLog, SecurityEvent
from .persistence import PersistenceQueue
from .scheduling import PeriodicTask

logger = logging.getLogger(__name__)


class SecurityEventLog:
    """Append-only writes of security events and request log rows."""

    def append(self, record):
        return SecurityEvent.objects.create(
            id=record.id,
            ip_address=normalize_ip(record.address),
            user_agent=(record.user_agent or "")[:512],
            event_type=record.event_type.value,
            details=dict(record.details),
            path=(record.path or "")[:255],
            method=(record.method or "")[:10],
            country=(record.country or "")[:8],
            is_relay=record.is_relay,
            is_vpn=record.is_vpn,
            risk_score=record.risk_score,
            timestamp=record.timestamp,
        )

    def log_request(self, ctx, decision):
        return RequestLog.objects.create(
            ip_address=normalize_ip(ctx.address),
            path=(ctx.path or "")[:255],
            method=(ctx.method or "")[:10],
            user_agent=(ctx.user_agent or "")[:512],
            score=decision.risk_score,
            decision=decision.outcome.value,
            reason=decision.reason,
            timestamp=ctx.timestamp,
        )


@dataclass
class AdmissionPipeline:
    engine: DecisionEngine
    relays: RelayRegistry
    rate_limits: object
    threat_intel: ThreatIntelStore
    writer: PersistenceQueue
    tasks: list = field(default_factory=list)
    started: bool = False

    def start(self):
        if self.started:
            return
        self.writer.start()
        for task in self.tasks:
            task.start()
        self.started = True
        logger.info("Admission pipeline started (%s background tasks)", len(self.tasks))

    def stop(self, timeout=5.0):
        for task in self.tasks:
            task.stop(timeout)
        self.writer.stop(timeout)
        self.started = False


def _setting(settings, name, default):
    return getattr(settings, name, default)


def build_pipeline(settings=None, relays=None, vpn=None, redis_client=None):
    settings = settings or django_settings

    backend = _setting(settings, "RATE_LIMIT_BACKEND", "memory")
    vpn_key = _setting(settings, "IPQUALITYSCORE_API_KEY", "")
    if redis_client is None and (backend == "redis" or vpn_key):
        redis_client = get_redis_client(_setting(settings, "REDIS_URL", "redis://127.0.0.1:6379/0"))

    rate_limits = build_rate_limit_policy(
        backend,
        limit=_setting(settings, "RATE_LIMIT_REQUESTS", 100),
        window=_setting(settings, "RATE_LIMIT_WINDOW", 60),
        classes=_setting(settings, "RATE_LIMIT_CLASSES", {}),
        redis_client=redis_client,
    )

    if relays is None:
        relays = RelayRegistry(
            source_url=_setting(settings, "RELAY_LIST_URL", "https://check.torproject.org/torbulkexitlist"),
            timeout=_setting(settings, "RELAY_FETCH_TIMEOUT", 5.0),
        )

    if vpn is None:
        if vpn_key:
            vpn = IpQualityScoreLookup(
                vpn_key,
                timeout=_setting(settings, "VPN_LOOKUP_TIMEOUT", 3.0),
                cache=redis_client,
                cache_ttl=_setting(settings, "VPN_CACHE_TTL", 3600),
            )
        else:
            logger.info("No VPN lookup credentials configured, VPN/proxy signal disabled")
            vpn = NullVpnLookup()

    behaviour_source = _setting(settings, "BEHAVIOUR_SOURCE", "requests")
    log_all_requests = _setting(settings, "LOG_ALL_REQUESTS", True)
    if behaviour_source == "requests" and not log_all_requests:
        logger.warning(
            "BEHAVIOUR_SOURCE=requests but LOG_ALL_REQUESTS is off: the request log stays empty "
            "and behaviour indicators will never fire"
        )

    threat_intel = ThreatIntelStore(ttl=timedelta(hours=_setting(settings, "THREAT_INTEL_TTL_HOURS", 24)))

    behaviour = BehaviourAnalyzer(
        source=behaviour_source,
        lookback=timedelta(seconds=_setting(settings, "BEHAVIOUR_LOOKBACK_SECONDS", 3600)),
        thresholds=BehaviourThresholds(
            automation_requests=_setting(settings, "BEHAVIOUR_AUTOMATION_REQUESTS", 200),
            automation_max_agents=_setting(settings, "BEHAVIOUR_AUTOMATION_MAX_AGENTS", 2),
            automation_points=_setting(settings, "BEHAVIOUR_AUTOMATION_POINTS", 30),
            scan_paths=_setting(settings, "BEHAVIOUR_SCAN_PATHS", 50),
            scan_points=_setting(settings, "BEHAVIOUR_SCAN_POINTS", 25),
            rotating_agents=_setting(settings, "BEHAVIOUR_ROTATING_AGENTS", 10),
            rotating_points=_setting(settings, "BEHAVIOUR_ROTATING_POINTS", 20),
        ),
    )

    writer = PersistenceQueue(
        flush_interval=_setting(settings, "SECURITY_EVENT_FLUSH_INTERVAL", 0.2),
        max_buffer_size=_setting(settings, "SECURITY_EVENT_MAX_BUFFER", 10_000),
    )

    policy = ScoringPolicy(
        notable_threshold=_setting(settings, "RISK_NOTABLE_THRESHOLD", 30),
        block_threshold=_setting(settings, "RISK_BLOCK_THRESHOLD", 80),
        relay_policy=_setting(settings, "RELAY_POLICY", "signal"),
        log_all_requests=log_all_requests,
    )

    engine = DecisionEngine(
        geo=GeoPolicy(_setting(settings, "GEO_BLOCKED_COUNTRIES", [])),
        rate_limits=rate_limits,
        relays=relays,
        vpn=vpn,
        threat_intel=threat_intel,
        behaviour=behaviour,
        event_log=SecurityEventLog(),
        writer=writer,
        policy=policy,
        bot_rules=BotRules(
            admin_exempt_prefixes=tuple(_setting(settings, "ADMIN_PROBE_EXEMPT_PREFIXES", ("/admin/",))),
        ),
    )

    tasks = [
        PeriodicTask("relay-refresh", _setting(settings, "RELAY_REFRESH_INTERVAL", 3600), relays.refresh),
        PeriodicTask(
            "rate-limit-purge",
            _setting(settings, "RATE_LIMIT_PURGE_INTERVAL", 300),
            rate_limits.purge_expired,
            run_immediately=False,
        ),
    ]
    sweep_interval = _setting(settings, "THREAT_INTEL_SWEEP_INTERVAL", 0)
    if sweep_interval:
        def sweep():
            try:
                threat_intel.sweep()
            finally:
                close_old_connections()

        tasks.append(PeriodicTask("threat-intel-sweep", sweep_interval, sweep, run_immediately=False))

    return AdmissionPipeline(
        engine=engine,
        relays=relays,
        rate_limits=rate_limits,
        threat_intel=threat_intel,
        writer=writer,
        tasks=tasks,
    )
