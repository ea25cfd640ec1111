from django.contrib import admin
from .models import ThreatIntel

@admin.register(ThreatIntel)
class ThreatIntelAdmin(admin.ModelAdmin):
    list_display = ("ip_address", "risk_score", "updated_at")
    search_fields = ("ip_address",)
    list_filter = ("updated_at",)
    ordering = ("-updated_at",)
