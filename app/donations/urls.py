"""
URL configuration for donations app.

Routes:
    POST /intents/ - Create donation intent
    POST /confirm/ - Confirm donation
    GET /<uuid>/ - Donation snapshot
    POST /webhooks/stripe/ - Stripe webhook
"""

from django.urls import path

from donations.views import (
    ConfirmDonationView,
    CreateDonationIntentView,
    DonationDetailView,
)
from donations.webhooks.views import stripe_webhook

app_name = "donations"

urlpatterns = [
    path("intents/", CreateDonationIntentView.as_view(), name="create-intent"),
    path("confirm/", ConfirmDonationView.as_view(), name="confirm"),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    path("<uuid:donation_id>/", DonationDetailView.as_view(), name="detail"),
]
