"""VPN / proxy reputation lookup.

Any failure (no credentials, timeout, bad response) yields a clean verdict:
this signal fails open and contributes nothing to the risk score.
"""
import json
import logging
from dataclasses import dataclass
from typing import Protocol

import redis
import requests

from .addresses import normalize_ip

logger = logging.getLogger(__name__)

IPQUALITYSCORE_URL = "https://ipqualityscore.com/api/json/ip/{key}/{ip}"


@dataclass(frozen=True)
class VpnVerdict:
    is_vpn: bool = False
    is_proxy: bool = False

    @property
    def flagged(self):
        return self.is_vpn or self.is_proxy


CLEAN = VpnVerdict()


class VpnLookup(Protocol):
    def lookup(self, address: str) -> VpnVerdict: ...


class NullVpnLookup:
    """Used when no provider credentials are configured."""

    def lookup(self, address):
        return CLEAN


class IpQualityScoreLookup:
    def __init__(self, api_key, session=None, timeout=3.0, cache=None, cache_ttl=3600):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.timeout = timeout
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._session = session or requests.Session()

    def lookup(self, address):
        ip = normalize_ip(address)
        if ip is None:
            return CLEAN

        cache_key = f"guard:vpn:{ip}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        try:
            resp = self._session.get(
                IPQUALITYSCORE_URL.format(key=self.api_key, ip=ip),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("VPN/proxy lookup failed for %s: %s", ip, e)
            return CLEAN

        if not data.get("success", True):
            logger.warning("VPN/proxy lookup rejected for %s: %s", ip, data.get("message", "unknown error"))
            return CLEAN

        verdict = VpnVerdict(is_vpn=bool(data.get("vpn")), is_proxy=bool(data.get("proxy")))
        self._cache_set(cache_key, verdict)
        return verdict

    def _cache_get(self, key):
        if self.cache is None:
            return None
        try:
            raw = self.cache.get(key)
            if raw:
                data = json.loads(raw)
                return VpnVerdict(is_vpn=bool(data.get("vpn")), is_proxy=bool(data.get("proxy")))
        except (redis.RedisError, ValueError) as e:
            logger.debug("VPN cache read failed: %s", e)
        return None

    def _cache_set(self, key, verdict):
        if self.cache is None:
            return
        try:
            self.cache.setex(key, self.cache_ttl, json.dumps({"vpn": verdict.is_vpn, "proxy": verdict.is_proxy}))
        except redis.RedisError as e:
            logger.debug("VPN cache write failed: %s", e)
