"""
State enums for donation models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Donation States:
    pending → completed (payment succeeded, amount applied to campaign)
    pending → failed (payment failed or was canceled)
    completed and failed are terminal for reconciliation; refunded is
    reserved for manual refunds and never reached automatically.

WebhookEvent States:
    pending → processing → processed
    pending → processing → failed → processing (retry)
"""

from django.db import models


class DonationStatus(models.TextChoices):
    """
    States for the Donation lifecycle.

    Terminal states: COMPLETED, FAILED, REFUNDED

    State Flow:
        PENDING → COMPLETED
        PENDING → FAILED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


TERMINAL_DONATION_STATUSES = frozenset(
    {DonationStatus.COMPLETED, DonationStatus.FAILED, DonationStatus.REFUNDED}
)


class PaymentOutcome(models.TextChoices):
    """
    Terminal outcome of an external payment authorization.

    Resolved before the ledger transaction opens: from the webhook event
    type, or from the PaymentIntent status on the synchronous path.
    PENDING means the processor has not settled the intent yet.
    """

    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    PENDING = "pending", "Pending"


class ConfirmationSource(models.TextChoices):
    """Which delivery path produced a confirmation signal."""

    WEBHOOK = "webhook", "Webhook"
    CLIENT_CONFIRM = "client_confirm", "Client Confirm"
    SWEEP = "sweep", "Pending Sweep"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED → PROCESSING (retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
