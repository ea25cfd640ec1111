"""Value objects passed between the HTTP boundary, the detectors and the engine.

All of them are frozen: a RequestContext is built once per request, a
SecurityDecision is produced once and never mutated.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from django.utils import timezone
from requests.structures import CaseInsensitiveDict


class Outcome(str, Enum):
    ALLOWED = "allowed"
    SUSPICIOUS = "suspicious"
    BLOCKED = "blocked"
    RATE_LIMITED = "rate_limited"


class EventType(str, Enum):
    BLOCKED = "blocked"
    SUSPICIOUS = "suspicious"
    RATE_LIMITED = "rate_limited"
    ATTACK = "attack"


@dataclass(frozen=True)
class RequestContext:
    address: str
    user_agent: str = ""
    method: str = "GET"
    path: str = "/"
    url: str = ""
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(CaseInsensitiveDict()))
    country: str = ""
    body_preview: str = ""
    timestamp: datetime = field(default_factory=timezone.now)

    @classmethod
    def build(cls, address, headers=None, **kwargs: Any) -> RequestContext:
        """Snapshot headers into a read-only, case-insensitive mapping.

        User-Agent defaults to the header value and url (path plus query
        string) to the path when not passed explicitly.
        """
        snapshot = CaseInsensitiveDict()
        for key, value in (headers or {}).items():
            snapshot[key] = value
        kwargs.setdefault("user_agent", snapshot.get("User-Agent", ""))
        kwargs.setdefault("url", kwargs.get("path", "/"))
        country = (kwargs.pop("country", "") or "").strip().upper()
        return cls(address=address, headers=MappingProxyType(snapshot), country=country, **kwargs)

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name, default)


@dataclass(frozen=True)
class Signal:
    name: str
    contribution: int


@dataclass(frozen=True)
class SecurityDecision:
    allowed: bool
    risk_score: int
    reason: str | None = None
    signals: tuple[Signal, ...] = ()
    outcome: Outcome = Outcome.ALLOWED
    retry_after: float | None = None

    @property
    def rate_limited(self) -> bool:
        return self.outcome is Outcome.RATE_LIMITED


@dataclass(frozen=True)
class SecurityEventRecord:
    """Append-only security event, created at decision time."""
    address: str
    user_agent: str
    event_type: EventType
    risk_score: int
    details: Mapping[str, Any] = field(default_factory=dict)
    country: str = ""
    is_relay: bool = False
    is_vpn: bool = False
    path: str = ""
    method: str = ""
    timestamp: datetime = field(default_factory=timezone.now)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


def clamp_score(score: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, int(score)))
