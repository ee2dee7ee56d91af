"""
Django admin configuration for donations.

Donations are read-only in the admin: status, amounts and Stripe
references only change through reconciliation.
"""

from django.contrib import admin

from donations.models import Donation, WebhookEvent


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    """Admin configuration for Donation model."""

    list_display = [
        "id",
        "campaign",
        "donor",
        "amount",
        "currency",
        "status",
        "is_anonymous",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "currency", "is_anonymous", "created_at"]
    search_fields = [
        "id",
        "stripe_payment_intent_id",
        "stripe_charge_id",
        "donor__email",
        "campaign__title",
    ]
    raw_id_fields = ["campaign", "donor"]
    readonly_fields = [
        "id",
        "campaign",
        "donor",
        "amount",
        "currency",
        "status",
        "stripe_payment_intent_id",
        "stripe_charge_id",
        "processed_at",
        "failure_reason",
        "metadata",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "campaign", "donor", "status"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "currency"),
            },
        ),
        (
            "Donor Preferences",
            {
                "fields": ("is_anonymous", "message"),
            },
        ),
        (
            "Stripe",
            {
                "fields": (
                    "stripe_payment_intent_id",
                    "stripe_charge_id",
                    "processed_at",
                    "failure_reason",
                ),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing for debugging.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
