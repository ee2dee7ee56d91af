"""
Django admin configuration for notifications.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Provides read-only view of notifications for debugging and support.
    """

    list_display = [
        "id",
        "recipient",
        "notification_type",
        "title",
        "is_read",
        "emailed_at",
        "created_at",
    ]
    list_filter = ["notification_type", "is_read", "created_at"]
    search_fields = ["title", "recipient__email", "idempotency_key"]
    raw_id_fields = ["recipient", "donation", "campaign"]
    readonly_fields = [
        "recipient",
        "notification_type",
        "title",
        "body",
        "data",
        "donation",
        "campaign",
        "idempotency_key",
        "read_at",
        "emailed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request):
        return False
