import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SecurityEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, default="", max_length=512)),
                ("event_type", models.CharField(
                    choices=[
                        ("blocked", "Blocked"),
                        ("suspicious", "Suspicious"),
                        ("rate_limited", "Rate limited"),
                        ("attack", "Attack"),
                    ],
                    max_length=20,
                )),
                ("details", models.JSONField(blank=True, default=dict)),
                ("path", models.CharField(blank=True, default="", max_length=255)),
                ("method", models.CharField(blank=True, default="", max_length=10)),
                ("country", models.CharField(blank=True, default="", max_length=8)),
                ("is_relay", models.BooleanField(default=False)),
                ("is_vpn", models.BooleanField(default=False)),
                ("risk_score", models.PositiveSmallIntegerField(default=0)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [models.Index(fields=["ip_address", "timestamp"], name="secevent_ip_ts_idx")],
            },
        ),
        migrations.CreateModel(
            name="RequestLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("path", models.CharField(max_length=255)),
                ("method", models.CharField(max_length=10)),
                ("user_agent", models.CharField(blank=True, default="", max_length=512)),
                ("score", models.PositiveSmallIntegerField(default=0)),
                ("decision", models.CharField(max_length=20)),
                ("reason", models.CharField(blank=True, max_length=255, null=True)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [models.Index(fields=["ip_address", "timestamp"], name="requestlog_ip_ts_idx")],
            },
        ),
    ]
