"""
Notification models.

Notifications are one-shot messages to campaign owners produced by the
donation ledger (a donation was applied, a campaign reached its goal, a
charge was disputed). Each is created at most once per event, enforced
by a unique idempotency key, and never changed afterwards except for its
read status.

Usage:
    from notifications.models import Notification, NotificationType

    unread = Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Kinds of notification the donation ledger produces."""

    DONATION_RECEIVED = "donation_received", "Donation Received"
    CAMPAIGN_COMPLETED = "campaign_completed", "Campaign Completed"
    DONATION_DISPUTED = "donation_disputed", "Donation Disputed"


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Title and body are fully rendered strings kept as a historical
    record; data carries the machine-readable context.

    Fields:
        recipient: User receiving the notification (scopes all queries)
        notification_type: NotificationType value
        title: Fully rendered title string
        body: Fully rendered body string
        data: JSON context (amounts, ids, donor name)
        donation: Donation that triggered the notification (optional)
        campaign: Campaign the notification is about (optional)
        idempotency_key: One notification per key, ever
        is_read / read_at: Inbox state
        emailed_at: When the email copy was sent

    Note:
        - recipient CASCADE: Notifications deleted when user deleted
        - donation/campaign SET_NULL: Notification outlives its source
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        db_index=True,
        help_text="User receiving this notification",
    )

    notification_type = models.CharField(
        max_length=50,
        choices=NotificationType.choices,
        db_index=True,
        help_text="Type of this notification",
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Context data (ids, amounts, donor name)",
    )

    donation = models.ForeignKey(
        "donations.Donation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Donation that triggered this notification",
    )

    campaign = models.ForeignKey(
        "campaigns.Campaign",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Campaign this notification is about",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient read this notification",
    )

    emailed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email copy was sent",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]  # Newest first
        indexes = [
            # Primary query: user's unread notifications
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
            models.Index(
                fields=["recipient", "notification_type"],
                name="notif_recipient_type_idx",
            ),
        ]
        constraints = [
            # Unique constraint on idempotency_key when not null
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )
