import logging
import threading
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from .addresses import normalize_ip
from .models import ThreatIntel

logger = logging.getLogger(__name__)


class ThreatIntelStore:
    """Durable, decaying per-address risk scores.

    Entries older than ``ttl`` read as 0 even before the sweep deletes them.
    """

    def __init__(self, ttl=timedelta(hours=24)):
        self.ttl = ttl
        self._sweep_lock = threading.Lock()

    def get_score(self, address):
        ip = normalize_ip(address)
        if ip is None:
            return 0
        cutoff = timezone.now() - self.ttl
        score = (
            ThreatIntel.objects
            .filter(ip_address=ip, updated_at__gte=cutoff)
            .values_list("risk_score", flat=True)
            .first()
        )
        return score or 0

    def record_score(self, address, score):
        """Merge ``score`` into the entry for ``address``, keeping the maximum.

        A stale entry reads as 0, so it is overwritten instead of merged.
        """
        ip = normalize_ip(address)
        if ip is None:
            logger.debug("Not recording threat intel for invalid address %r", address)
            return None
        score = max(0, min(100, int(score)))
        now = timezone.now()

        with transaction.atomic():
            entry, created = (
                ThreatIntel.objects
                .select_for_update()
                .get_or_create(ip_address=ip, defaults={"risk_score": score, "updated_at": now})
            )
            if not created:
                if entry.is_stale(self.ttl, now):
                    entry.risk_score = score
                else:
                    entry.risk_score = max(entry.risk_score, score)
                entry.updated_at = now
                entry.save(update_fields=["risk_score", "updated_at"])
        return entry

    def sweep(self):
        """Delete stale entries. Skips (returns 0) if a sweep is already running."""
        if not self._sweep_lock.acquire(blocking=False):
            return 0
        try:
            cutoff = timezone.now() - self.ttl
            deleted, _ = ThreatIntel.objects.filter(updated_at__lt=cutoff).delete()
            if deleted:
                logger.info("Swept %s stale threat intel entries", deleted)
            return deleted
        finally:
            self._sweep_lock.release()
