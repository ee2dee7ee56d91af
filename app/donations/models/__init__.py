"""
Donation domain models.

- Donation: A single donation and its payment lifecycle
- WebhookEvent: Stripe webhook event tracking for async processing
"""

from donations.models.donation import Donation
from donations.models.webhook_event import MAX_WEBHOOK_RETRIES, WebhookEvent

__all__ = [
    "MAX_WEBHOOK_RETRIES",
    "Donation",
    "WebhookEvent",
]
