"""Stateless request classifiers.

Every detector takes a RequestContext and returns the list of signals it
fired. Same context in, same signals out: nothing here touches shared state,
the network or the database.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import unquote_plus

from .types import RequestContext, Signal

BOT_UA_TOKENS = (
    "bot", "crawler", "spider", "scraper", "curl", "wget",
    "python", "java", "perl", "ruby", "php", "go-http-client", "libwww",
)
BROWSER_HEADERS = ("Accept", "Accept-Language", "Accept-Encoding")
ADMIN_PROBE_TOKENS = ("admin", "wp-login", "phpmyadmin", ".env", "server-status")

INJECTION_FAMILIES = {
    "sql_injection": (
        r"union\s+(all\s+)?select",
        r"drop\s+table",
        r"insert\s+into",
        r"delete\s+from",
        r"\bupdate\s+\w+\s+set\b",
        r"alter\s+table",
        r"exec\s*\(",
        r"\b(or|and)\b\s+\d+\s*=\s*\d+",
    ),
    "script_injection": (
        r"<\s*script",
        r"<\s*iframe",
        r"\bon(load|error|click|mouseover|focus|blur|submit|change)\s*=",
        r"\b(alert|confirm|prompt|eval)\s*\(",
    ),
    "javascript_scheme": (
        r"javascript\s*:",
    ),
    "path_traversal": (
        r"\.\./",
        r"\.\.\\",
    ),
}
# matched against the raw (still percent-encoded) URL only
ENCODED_TRAVERSAL_PATTERNS = (
    r"%2e%2e",
    r"%2e\.",
    r"\.%2e",
    r"%252e",
    r"%c0%ae",
)


@dataclass(frozen=True)
class BotRules:
    ua_tokens: tuple[str, ...] = BOT_UA_TOKENS
    ua_points: int = 15
    required_headers: tuple[str, ...] = BROWSER_HEADERS
    missing_header_points: int = 10
    admin_tokens: tuple[str, ...] = ADMIN_PROBE_TOKENS
    admin_exempt_prefixes: tuple[str, ...] = ()
    admin_points: int = 20


@dataclass(frozen=True)
class InjectionRules:
    points: int = 50
    families: dict = field(default_factory=lambda: dict(INJECTION_FAMILIES))
    encoded_traversal: tuple[str, ...] = ENCODED_TRAVERSAL_PATTERNS

    def compiled(self):
        compiled = {
            name: [re.compile(p, re.IGNORECASE) for p in patterns]
            for name, patterns in self.families.items()
        }
        compiled["encoded_traversal"] = [re.compile(p, re.IGNORECASE) for p in self.encoded_traversal]
        return compiled


def _decoded(value: str) -> str:
    try:
        return unquote_plus(value)
    except (TypeError, ValueError):
        return value


def detect_bot(ctx: RequestContext, rules: BotRules = BotRules()) -> list[Signal]:
    signals = []

    ua = (ctx.user_agent or "").lower()
    for token in rules.ua_tokens:
        if token in ua:
            signals.append(Signal(f"bot_user_agent:{token}", rules.ua_points))

    for header in rules.required_headers:
        if not ctx.header(header):
            signals.append(Signal(f"missing_header:{header.lower()}", rules.missing_header_points))

    path = _decoded(ctx.path or "").lower()
    if not any(path.startswith(prefix) for prefix in rules.admin_exempt_prefixes):
        if any(token in path for token in rules.admin_tokens):
            signals.append(Signal("admin_probe", rules.admin_points))

    return signals


class InjectionDetector:
    """Pattern families scored once each against the URL and body preview."""

    def __init__(self, rules: InjectionRules = InjectionRules()):
        self.rules = rules
        self._patterns = rules.compiled()

    def __call__(self, ctx: RequestContext) -> list[Signal]:
        raw_url = ctx.url or ctx.path or ""
        targets = (_decoded(raw_url), ctx.body_preview or "")

        signals = []
        for family, patterns in self._patterns.items():
            haystacks = (raw_url,) if family == "encoded_traversal" else targets
            if any(p.search(text) for p in patterns for text in haystacks):
                signals.append(Signal(family, self.rules.points))
        return signals


class GeoPolicy:
    def __init__(self, blocked_countries=()):
        self.blocked = frozenset(c.strip().upper() for c in blocked_countries if c and c.strip())

    def is_blocked(self, country: str | None) -> bool:
        if not country:
            return False
        return country.strip().upper() in self.blocked
