"""
Django admin configuration for campaigns.

Ledger fields are read-only: current_amount is maintained by the
donation ledger and status COMPLETED is derived from it.
"""

from django.contrib import admin

from campaigns.models import Campaign


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    """Admin configuration for Campaign model."""

    list_display = (
        "title",
        "owner",
        "status",
        "current_amount",
        "goal_amount",
        "currency",
        "created_at",
    )
    list_filter = ("status", "currency", "created_at")
    search_fields = ("title", "owner__email")
    raw_id_fields = ("owner",)
    readonly_fields = ("id", "current_amount", "created_at", "updated_at")
    ordering = ("-created_at",)
