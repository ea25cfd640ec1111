"""Known anonymizing relays (TOR exit nodes), refreshed from a public list.

Readers call ``is_known_relay`` on every request; it only dereferences the
current frozenset snapshot, which a refresh replaces wholesale. A failed
refresh keeps the previous snapshot (fail-stale, never fail-empty); if no
snapshot was ever loaded the small seed list is applied instead.
"""
import logging
import threading
import time

import requests

from .addresses import normalize_ip

logger = logging.getLogger(__name__)

TOR_BULK_EXIT_LIST_URL = "https://check.torproject.org/torbulkexitlist"
SEED_RELAYS = frozenset({
    "185.220.100.240",
    "185.220.100.241",
    "185.220.101.240",
})


def parse_relay_list(text):
    """Parse a bulk exit list or an ``exit-addresses`` document.

    Lines that are blank, comments, or not a valid address are skipped.
    """
    addresses = set()
    skipped = 0
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if parts[0] == "ExitAddress":
            candidate = parts[1] if len(parts) > 1 else ""
        elif len(parts) == 1:
            candidate = parts[0]
        else:
            # ExitNode / Published / LastStatus lines of exit-addresses
            continue
        ip = normalize_ip(candidate)
        if ip is None:
            skipped += 1
            continue
        addresses.add(ip)
    if skipped:
        logger.debug("Skipped %s malformed relay list entries", skipped)
    return addresses


class RelayRegistry:
    def __init__(self, source_url=TOR_BULK_EXIT_LIST_URL, session=None, timeout=5.0,
                 seed=SEED_RELAYS, clock=time.time):
        self.source_url = source_url
        self.timeout = timeout
        self.seed = frozenset(seed)
        self._session = session or requests.Session()
        self._clock = clock
        self._addresses = frozenset()
        self._refresh_lock = threading.Lock()
        self.last_successful_update = None

    def is_known_relay(self, address):
        ip = normalize_ip(address)
        if ip is None:
            return False
        return ip in self._addresses

    @property
    def refreshing(self):
        return self._refresh_lock.locked()

    @property
    def size(self):
        return len(self._addresses)

    def snapshot(self):
        return self._addresses

    def refresh(self):
        """Fetch the list and swap in a new snapshot.

        Returns True when a new snapshot was applied. Concurrent calls while
        a fetch is in flight return False immediately without fetching.
        """
        if not self._refresh_lock.acquire(blocking=False):
            logger.debug("Relay list refresh already in flight, skipping")
            return False
        try:
            try:
                resp = self._session.get(self.source_url, timeout=self.timeout)
                resp.raise_for_status()
                addresses = parse_relay_list(resp.text)
                if not addresses:
                    raise ValueError("relay list contained no valid addresses")
            except (requests.RequestException, ValueError) as e:
                logger.warning("Failed to update relay list from %s: %s", self.source_url, e)
                if not self._addresses:
                    self._addresses = self.seed
                    logger.warning("Relay registry empty, applied seed list (%s addresses)", len(self.seed))
                return False

            self._addresses = frozenset(addresses)
            self.last_successful_update = self._clock()
            logger.info("Updated relay list: %s addresses", len(addresses))
            return True
        finally:
            self._refresh_lock.release()
