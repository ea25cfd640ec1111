import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import DatabaseError

from ip_reputation.services import ThreatIntelStore

logger = logging.getLogger("ip_reputation")


class Command(BaseCommand):
    help = "Delete threat intel entries older than THREAT_INTEL_TTL_HOURS"

    def handle(self, *args, **kwargs):
        ttl = timedelta(hours=getattr(settings, "THREAT_INTEL_TTL_HOURS", 24))
        logger.info("=== Threat intel sweep started (ttl=%s) ===", ttl)

        try:
            deleted = ThreatIntelStore(ttl=ttl).sweep()
        except DatabaseError as e:
            logger.exception("Threat intel sweep failed due to: %s", str(e))
            raise

        logger.info("=== Threat intel sweep finished, %s entries deleted ===", deleted)
        self.stdout.write(f"Deleted {deleted} stale threat intel entries")
