"""
WebhookEvent model for Stripe webhook event tracking.

Every verified Stripe event is stored before processing so that failed
events can be retried and every ledger change can be traced back to the
signal that caused it. Event-level dedup via the unique stripe_event_id
only saves work; the donation status guard is what keeps reconciliation
exactly-once.

Usage:
    from donations.models import WebhookEvent
    from donations.state_machines import WebhookEventStatus

    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_1234567890",
        defaults={
            "event_type": "payment_intent.succeeded",
            "payload": webhook_payload,
        },
    )
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from donations.state_machines import WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Stored Stripe webhook event with its processing status.

    Processing Flow:
        1. Webhook arrives, Stripe signature verified
        2. Insert/get WebhookEvent by stripe_event_id
        3. If PROCESSED -> return 200 (duplicate delivery)
        4. Queue process_webhook_event
        5. Task marks PROCESSING, dispatches to a handler
        6. Task marks PROCESSED or FAILED (retried later)

    Fields:
        stripe_event_id: Unique Stripe Event ID (evt_xxx)
        event_type: Type of webhook event
        payload: Full JSON payload from Stripe
        status: Processing status
        processed_at: When event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx)",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'payment_intent.succeeded')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload from Stripe (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with event ID and type."""
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Failed events are retried until MAX_WEBHOOK_RETRIES attempts."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < MAX_WEBHOOK_RETRIES
        )

    # ==========================================================================
    # Helper Methods (do not save - caller must save)
    # ==========================================================================

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    # ==========================================================================
    # Payload Accessors
    # ==========================================================================

    def get_data_object(self) -> dict:
        """Return payload.data.object, or an empty dict if malformed."""
        try:
            data_object = self.payload.get("data", {}).get("object", {})
        except AttributeError:
            return {}
        return data_object if isinstance(data_object, dict) else {}

    def get_object_id(self) -> str | None:
        """
        Extract the primary object ID from the webhook payload.

        For payment_intent.* events this is the PaymentIntent id, for
        charge.dispute.* events the Dispute id.
        """
        return self.get_data_object().get("id")
