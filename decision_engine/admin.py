from django.contrib import admin
from .models import RequestLog, SecurityEvent


@admin.register(SecurityEvent)
class SecurityEventAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "event_type", "ip_address", "path", "risk_score", "country", "is_relay", "is_vpn")
    search_fields = ("ip_address", "path", "user_agent")
    list_filter = ("event_type", "is_relay", "is_vpn", "country")
    ordering = ("-timestamp",)

    # append-only
    def has_change_permission(self, request, obj=None):
        return False


@admin.register(RequestLog)
class RequestLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "decision", "ip_address", "method", "path", "score")
    search_fields = ("ip_address", "path")
    list_filter = ("decision",)
    ordering = ("-timestamp",)

    def has_change_permission(self, request, obj=None):
        return False
