from django.db import models
from django.utils import timezone


class ThreatIntel(models.Model):
    ip_address = models.GenericIPAddressField(unique=True)
    risk_score = models.PositiveSmallIntegerField(default=0)
    updated_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = "threat intel entry"
        verbose_name_plural = "threat intel"

    def is_stale(self, ttl, now=None):
        return self.updated_at < (now or timezone.now()) - ttl

    def __str__(self):
        return f"{self.ip_address} - {self.risk_score}"
