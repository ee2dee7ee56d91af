"""
DRF serializers for the donations app.

This module provides serializers for:
- Donation intent requests and responses
- Client confirmation requests
- Donation + campaign snapshots

Related files:
    - services/: DonationIntentIssuer, ConfirmationReconciler
    - views.py: Donation API views
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers


class CreateDonationIntentSerializer(serializers.Serializer):
    """
    Request body for POST /api/v1/donations/intents/.

    Fields:
        campaign_id: Campaign receiving the donation
        amount: Amount in major currency units (> 0)
        currency: ISO 4217 code (defaults to the campaign currency)
        is_anonymous: Hide the donor from the campaign owner
        message: Optional message to the campaign owner
    """

    campaign_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
    )
    currency = serializers.CharField(
        max_length=3,
        min_length=3,
        required=False,
    )
    is_anonymous = serializers.BooleanField(default=False)
    message = serializers.CharField(
        max_length=1000,
        required=False,
        allow_blank=True,
        default="",
    )

    def validate_currency(self, value: str) -> str:
        if not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter ISO code.")
        return value.lower()


class DonationIntentResponseSerializer(serializers.Serializer):
    """Response body for a created donation intent."""

    donation_id = serializers.UUIDField()
    payment_intent_id = serializers.CharField()
    client_secret = serializers.CharField(allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    status = serializers.CharField()


class ConfirmDonationSerializer(serializers.Serializer):
    """Request body for POST /api/v1/donations/confirm/."""

    payment_intent_id = serializers.CharField(max_length=255)

    def validate_payment_intent_id(self, value: str) -> str:
        value = value.strip()
        if not value.startswith("pi_"):
            raise serializers.ValidationError("Not a PaymentIntent id.")
        return value


class SnapshotDonationSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    status = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    processed_at = serializers.DateTimeField(allow_null=True)


class SnapshotCampaignSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    title = serializers.CharField()
    current_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    goal_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    progress_percentage = serializers.FloatField()


class DonationSnapshotSerializer(serializers.Serializer):
    """
    Donation + campaign view returned by confirm and detail endpoints.

    Usage:
        snapshot = ConfirmationReconciler.confirm(payment_intent_id)
        DonationSnapshotSerializer(snapshot.to_dict()).data
    """

    donation = SnapshotDonationSerializer()
    campaign = SnapshotCampaignSerializer()


class ErrorResponseSerializer(serializers.Serializer):
    """Shape of every donation error response."""

    error = serializers.CharField()
    error_code = serializers.CharField()
    details = serializers.DictField(required=False)
    retryable = serializers.BooleanField(required=False)
