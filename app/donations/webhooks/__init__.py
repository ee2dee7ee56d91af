"""
Webhook handling for donation events from Stripe.

Webhooks are verified, stored, and processed asynchronously via Celery
tasks; each payment event ends up in ConfirmationReconciler.

Usage:
    # In urls.py
    from donations.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from donations.webhooks.handlers import dispatch_webhook, register_handler
from donations.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
