"""Risk scorer / decision engine.

    START -> GEO_CHECK -> (BLOCKED)
          -> RATE_CHECK -> (BLOCKED)
          -> [RELAY_CHECK -> (BLOCKED)]      only with relay policy "block"
          -> SIGNAL_AGGREGATION -> THRESHOLD_EVALUATION
          -> ALLOWED | SUSPICIOUS (allowed) | BLOCKED

Short-circuits return immediately without evaluating later signals. Any
exception inside the pipeline fails open: the request is allowed with the
partial score gathered so far and the error goes to the internal logger,
not to the security event stream.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from .detectors import BotRules, InjectionDetector, detect_bot
from .types import (
    EventType,
    Outcome,
    RequestContext,
    SecurityDecision,
    SecurityEventRecord,
    Signal,
    clamp_score,
)

logger = logging.getLogger(__name__)
security_log = logging.getLogger("security_events")

RELAY_POLICY_SIGNAL = "signal"
RELAY_POLICY_BLOCK = "block"

GEO_REASON = "Geographic restriction"
RATE_LIMIT_REASON = "Rate limit exceeded"
RELAY_REASON = "Anonymizing relay not permitted"
HIGH_RISK_REASON = "High risk score"


@dataclass(frozen=True)
class ScoringPolicy:
    notable_threshold: int = 30
    block_threshold: int = 80
    geo_block_score: int = 100
    rate_limit_score: int = 50
    relay_policy: str = RELAY_POLICY_SIGNAL
    relay_points: int = 30
    relay_block_score: int = 90
    vpn_points: int = 20
    log_all_requests: bool = False

    def __post_init__(self):
        if self.relay_policy not in (RELAY_POLICY_SIGNAL, RELAY_POLICY_BLOCK):
            raise ValueError(f"relay_policy must be 'signal' or 'block', got {self.relay_policy!r}")
        if not 0 <= self.notable_threshold <= self.block_threshold <= 100:
            raise ValueError("thresholds must satisfy 0 <= notable <= block <= 100")


class DecisionEngine:
    """Combines every signal into one SecurityDecision per request.

    Collaborators are injected:
        geo: ``is_blocked(country)``
        rate_limits: ``consume(address, path) -> AdmissionVerdict``
        relays: ``is_known_relay(address)``
        vpn: ``lookup(address) -> VpnVerdict``
        threat_intel: ``get_score(address)`` / ``record_score(address, score)``
        behaviour: ``score(address) -> list[Signal]``
        event_log: ``append(record)`` / ``log_request(ctx, decision)``
        writer: ``submit(label, job)``, the async persistence hand-off
    """

    def __init__(self, *, geo, rate_limits, relays, vpn, threat_intel, behaviour,
                 event_log, writer, policy=ScoringPolicy(), bot_rules=BotRules(),
                 injection=None):
        self.geo = geo
        self.rate_limits = rate_limits
        self.relays = relays
        self.vpn = vpn
        self.threat_intel = threat_intel
        self.behaviour = behaviour
        self.event_log = event_log
        self.writer = writer
        self.policy = policy
        self.bot_rules = bot_rules
        self.injection = injection or InjectionDetector()
        self._injection_names = frozenset(self.injection.rules.families) | {"encoded_traversal"}

    def decide(self, ctx: RequestContext) -> SecurityDecision:
        signals: list[Signal] = []
        flags = {"is_relay": False, "is_vpn": False}
        try:
            decision = self._evaluate(ctx, signals, flags)
        except Exception:
            partial_score = clamp_score(sum(s.contribution for s in signals))
            logger.exception(
                "Admission pipeline failed for %s %s from %s, failing open (partial score %s)",
                ctx.method, ctx.path, ctx.address, partial_score,
            )
            decision = SecurityDecision(
                allowed=True,
                risk_score=partial_score,
                signals=tuple(signals),
                outcome=Outcome.ALLOWED,
            )
        self._persist(ctx, decision, flags)
        return decision

    def _evaluate(self, ctx, signals, flags):
        p = self.policy

        # === 1) Geo block
        if self.geo.is_blocked(ctx.country):
            signals.append(Signal("geo_block", p.geo_block_score))
            return self._blocked(p.geo_block_score, GEO_REASON, signals)

        # === 2) Rate limit
        verdict = self.rate_limits.consume(ctx.address, ctx.path)
        if not verdict.allowed:
            signals.append(Signal("rate_limit", p.rate_limit_score))
            return SecurityDecision(
                allowed=False,
                risk_score=clamp_score(p.rate_limit_score),
                reason=RATE_LIMIT_REASON,
                signals=tuple(signals),
                outcome=Outcome.RATE_LIMITED,
                retry_after=verdict.retry_after,
            )

        # === 3) Anonymizing relay
        if self.relays.is_known_relay(ctx.address):
            flags["is_relay"] = True
            if p.relay_policy == RELAY_POLICY_BLOCK:
                signals.append(Signal("anonymizing_relay", p.relay_block_score))
                return self._blocked(p.relay_block_score, RELAY_REASON, signals)
            signals.append(Signal("anonymizing_relay", p.relay_points))

        # === 4) VPN / proxy
        if self.vpn.lookup(ctx.address).flagged:
            flags["is_vpn"] = True
            signals.append(Signal("vpn_proxy", p.vpn_points))

        # === 5) Bot + injection patterns
        signals.extend(detect_bot(ctx, self.bot_rules))
        signals.extend(self.injection(ctx))

        # === 6) Threat intel (added as-is)
        stored = self.threat_intel.get_score(ctx.address)
        if stored:
            signals.append(Signal("threat_intel", int(stored)))

        # === 7) Behaviour
        signals.extend(self.behaviour.score(ctx.address))

        # === Threshold evaluation
        score = clamp_score(sum(s.contribution for s in signals))
        if score >= p.block_threshold:
            return self._blocked(score, HIGH_RISK_REASON, signals)
        if score >= p.notable_threshold:
            return SecurityDecision(True, score, None, tuple(signals), Outcome.SUSPICIOUS)
        return SecurityDecision(True, score, None, tuple(signals), Outcome.ALLOWED)

    @staticmethod
    def _blocked(score, reason, signals):
        return SecurityDecision(
            allowed=False,
            risk_score=clamp_score(score),
            reason=reason,
            signals=tuple(signals),
            outcome=Outcome.BLOCKED,
        )

    def event_type_for(self, decision):
        if decision.outcome is Outcome.RATE_LIMITED:
            return EventType.RATE_LIMITED
        if decision.outcome is Outcome.BLOCKED:
            return EventType.BLOCKED
        if decision.outcome is Outcome.SUSPICIOUS:
            if any(s.name in self._injection_names for s in decision.signals):
                return EventType.ATTACK
            return EventType.SUSPICIOUS
        return None

    def _persist(self, ctx, decision, flags):
        """Hand writes to the async writer. Never raises into the request path."""
        try:
            event_type = self.event_type_for(decision)
            if event_type is not None:
                record = SecurityEventRecord(
                    address=ctx.address,
                    user_agent=ctx.user_agent,
                    event_type=event_type,
                    risk_score=decision.risk_score,
                    details={
                        "reason": decision.reason,
                        "url": ctx.url or ctx.path,
                        "signals": [[s.name, s.contribution] for s in decision.signals],
                    },
                    country=ctx.country,
                    is_relay=flags["is_relay"],
                    is_vpn=flags["is_vpn"],
                    path=ctx.path,
                    method=ctx.method,
                    timestamp=ctx.timestamp,
                )
                security_log.info(
                    "%s address=%s path=%s score=%s reason=%s",
                    event_type.value, ctx.address, ctx.path, decision.risk_score, decision.reason,
                )
                self.writer.submit("security_event", partial(self.event_log.append, record))

                if (event_type is not EventType.RATE_LIMITED
                        and decision.risk_score > self.policy.notable_threshold):
                    self.writer.submit(
                        "threat_intel",
                        partial(self.threat_intel.record_score, ctx.address, decision.risk_score),
                    )

            if self.policy.log_all_requests:
                self.writer.submit("request_log", partial(self.event_log.log_request, ctx, decision))
        except Exception:
            logger.exception("Failed to queue security event for %s", ctx.address)
