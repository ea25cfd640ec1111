import uuid

from django.db import models
from django.utils import timezone


class SecurityEvent(models.Model):
    """Append-only record of every blocked / suspicious decision."""

    class EventType(models.TextChoices):
        BLOCKED = "blocked", "Blocked"
        SUSPICIOUS = "suspicious", "Suspicious"
        RATE_LIMITED = "rate_limited", "Rate limited"
        ATTACK = "attack", "Attack"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=512, blank=True, default="")
    event_type = models.CharField(max_length=20, choices=EventType.choices)
    details = models.JSONField(default=dict, blank=True)
    path = models.CharField(max_length=255, blank=True, default="")
    method = models.CharField(max_length=10, blank=True, default="")
    country = models.CharField(max_length=8, blank=True, default="")
    is_relay = models.BooleanField(default=False)
    is_vpn = models.BooleanField(default=False)
    risk_score = models.PositiveSmallIntegerField(default=0)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        indexes = [models.Index(fields=["ip_address", "timestamp"], name="secevent_ip_ts_idx")]

    def __str__(self):
        return f"[{self.event_type.upper()}] {self.ip_address} {self.path} ({self.risk_score})"


class RequestLog(models.Model):
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=10)
    user_agent = models.CharField(max_length=512, blank=True, default="")
    score = models.PositiveSmallIntegerField(default=0)
    decision = models.CharField(max_length=20)   # Outcome value
    reason = models.CharField(max_length=255, blank=True, null=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        indexes = [models.Index(fields=["ip_address", "timestamp"], name="requestlog_ip_ts_idx")]

    def __str__(self):
        return f"[{self.decision.upper()}] {self.ip_address} {self.path} ({self.score})"
