"""Build a RequestContext from a Django HttpRequest."""
import ipaddress
import logging

from django.core.exceptions import RequestDataTooBig
from django.http.request import RawPostDataException

from ip_reputation.addresses import normalize_ip

from .types import RequestContext

logger = logging.getLogger(__name__)

DEFAULT_PROXY_HEADERS = ("X-Forwarded-For", "X-Real-IP", "CF-Connecting-IP")
DEFAULT_COUNTRY_HEADERS = ("CF-IPCountry", "X-Country")


def trusted_networks(trusted_proxies):
    """Parse TRUSTED_PROXIES entries (addresses or CIDR ranges)."""
    networks = []
    for entry in trusted_proxies or ():
        if isinstance(entry, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
            networks.append(entry)
            continue
        try:
            networks.append(ipaddress.ip_network(str(entry).strip(), strict=False))
        except ValueError:
            logger.warning("Ignoring invalid TRUSTED_PROXIES entry %r", entry)
    return tuple(networks)


def _is_trusted(ip, networks):
    if ip is None or not networks:
        return False
    addr = ipaddress.ip_address(ip)
    return any(addr in net for net in networks)


def _peer(request):
    return normalize_ip(request.META.get("REMOTE_ADDR", ""))


def client_ip(request, proxy_headers=DEFAULT_PROXY_HEADERS, trusted_proxies=()):
    """Resolve the client address.

    Proxy headers are read only when the transport peer is a trusted proxy;
    with no trusted proxies configured the peer address is always used. A
    forwarded chain is walked right to left, skipping trusted hops, and the
    first untrusted hop is the client.
    """
    peer = _peer(request)
    networks = trusted_networks(trusted_proxies)

    if _is_trusted(peer, networks):
        for header in proxy_headers:
            value = request.headers.get(header)
            if not value:
                continue
            # X-Forwarded-For: client, proxy1, proxy2
            nearest = None
            for hop in reversed(value.split(",")):
                ip = normalize_ip(hop)
                if ip is None:
                    # nothing left of a malformed hop can be verified
                    break
                nearest = ip
                if not _is_trusted(ip, networks):
                    return ip
            if nearest:
                return nearest

    return peer or request.META.get("REMOTE_ADDR", "") or "unknown"


def country_code(request, country_headers=DEFAULT_COUNTRY_HEADERS, trusted_proxies=()):
    """Country from an edge proxy header; ignored unless the peer is trusted."""
    if not _is_trusted(_peer(request), trusted_networks(trusted_proxies)):
        return ""
    for header in country_headers:
        value = (request.headers.get(header) or "").strip()
        # Cloudflare: XX = unknown, T1 = Tor
        if value and value.upper() not in ("XX", "UNKNOWN"):
            return value.upper()
    return ""


def body_preview(request, limit):
    if limit <= 0:
        return ""
    try:
        body = request.body or b""
    except (RawPostDataException, RequestDataTooBig) as e:
        logger.debug("Body preview unavailable: %s", e)
        return ""
    return body[:limit].decode("utf-8", errors="replace")


def build_request_context(request, proxy_headers=DEFAULT_PROXY_HEADERS, trusted_proxies=(),
                          country_headers=DEFAULT_COUNTRY_HEADERS, body_preview_bytes=2048):
    networks = trusted_networks(trusted_proxies)
    return RequestContext.build(
        address=client_ip(request, proxy_headers, networks),
        headers=dict(request.headers.items()),
        method=request.method or "GET",
        # path is what gets logged and profiled, url (with query) is what gets inspected
        path=request.path,
        url=request.get_full_path(),
        country=country_code(request, country_headers, networks),
        body_preview=body_preview(request, body_preview_bytes),
    )
