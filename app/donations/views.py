"""
DRF views for the donations app.

Endpoints:
    POST /api/v1/donations/intents/ - Create a donation PaymentIntent
    POST /api/v1/donations/confirm/ - Confirm a donation after payment
    GET /api/v1/donations/{id}/ - Donation + campaign snapshot
    POST /api/v1/donations/webhooks/stripe/ - Stripe webhook (webhooks/views.py)

Security:
    - Intent and confirm accept anonymous callers; the donor is the
      authenticated user when there is one
    - Confirm is idempotent and only ever reports committed state

Related files:
    - services/: DonationIntentIssuer, ConfirmationReconciler
    - serializers.py: Request/response serializers
    - urls.py: URL routing
"""

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiResponse, extend_schema

from core.exceptions import BaseApplicationError

from donations.exceptions import DonationValidationError
from donations.models import Donation
from donations.serializers import (
    ConfirmDonationSerializer,
    CreateDonationIntentSerializer,
    DonationIntentResponseSerializer,
    DonationSnapshotSerializer,
    ErrorResponseSerializer,
)
from donations.services import (
    ConfirmationReconciler,
    CreateDonationIntentParams,
    DonationIntentIssuer,
    DonationSnapshot,
)

logger = logging.getLogger(__name__)


def error_response(exc: BaseApplicationError) -> Response:
    """Translate an application error into its HTTP response."""
    log = logger.warning if exc.http_status < 500 else logger.error
    log(
        f"Donation request failed: {exc}",
        extra={"error_code": exc.error_code, "http_status": exc.http_status},
    )
    return Response(exc.to_dict(), status=exc.http_status)


def invalid_request_response(errors) -> Response:
    """Report serializer errors in the same shape as every other 400."""
    return error_response(
        DonationValidationError(
            "Invalid request body",
            details={"fields": errors},
        )
    )


class CreateDonationIntentView(APIView):
    """
    Create a donation and its PaymentIntent.

    POST /api/v1/donations/intents/

    Request body:
        {
            "campaign_id": "<uuid>",
            "amount": "25.00",
            "currency": "usd",
            "is_anonymous": false,
            "message": "Good luck!"
        }

    Returns:
        201 with donation_id, payment_intent_id and client_secret
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="create_donation_intent",
        summary="Create donation intent",
        request=CreateDonationIntentSerializer,
        responses={
            201: DonationIntentResponseSerializer,
            400: OpenApiResponse(
                ErrorResponseSerializer,
                description="Invalid amount or campaign not accepting donations",
            ),
            404: OpenApiResponse(ErrorResponseSerializer, description="Campaign not found"),
            502: OpenApiResponse(ErrorResponseSerializer, description="Payment processor failure"),
        },
        tags=["Donations"],
    )
    def post(self, request):
        serializer = CreateDonationIntentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer.errors)
        data = serializer.validated_data

        try:
            result = DonationIntentIssuer.create_intent(
                CreateDonationIntentParams(
                    campaign_id=data["campaign_id"],
                    amount=data["amount"],
                    currency=data.get("currency"),
                    is_anonymous=data["is_anonymous"],
                    message=data["message"],
                    donor=request.user if request.user.is_authenticated else None,
                )
            )
        except BaseApplicationError as e:
            return error_response(e)

        donation = result.donation
        response = DonationIntentResponseSerializer(
            {
                "donation_id": donation.id,
                "payment_intent_id": donation.stripe_payment_intent_id,
                "client_secret": result.client_secret,
                "amount": donation.amount,
                "currency": donation.currency,
                "status": donation.status,
            }
        )
        return Response(response.data, status=status.HTTP_201_CREATED)


class ConfirmDonationView(APIView):
    """
    Confirm a donation after the browser completed the payment.

    POST /api/v1/donations/confirm/

    Request body:
        {"payment_intent_id": "pi_xxx"}

    Safe to call any number of times: once the donation is applied,
    every call returns the same committed snapshot.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="confirm_donation",
        summary="Confirm donation",
        request=ConfirmDonationSerializer,
        responses={
            200: DonationSnapshotSerializer,
            400: OpenApiResponse(ErrorResponseSerializer, description="Payment not completed yet"),
            404: OpenApiResponse(ErrorResponseSerializer, description="Unknown payment intent"),
            502: OpenApiResponse(ErrorResponseSerializer, description="Payment processor failure"),
            503: OpenApiResponse(
                ErrorResponseSerializer,
                description="Ledger unavailable, safe to retry",
            ),
        },
        tags=["Donations"],
    )
    def post(self, request):
        serializer = ConfirmDonationSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer.errors)

        try:
            snapshot = ConfirmationReconciler.confirm(
                serializer.validated_data["payment_intent_id"]
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(DonationSnapshotSerializer(snapshot.to_dict()).data)


class DonationDetailView(APIView):
    """
    Read-only donation + campaign snapshot.

    GET /api/v1/donations/{id}/
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_donation",
        summary="Get donation",
        responses={200: DonationSnapshotSerializer},
        tags=["Donations"],
    )
    def get(self, request, donation_id):
        donation = get_object_or_404(
            Donation.objects.select_related("campaign"), pk=donation_id
        )
        snapshot = DonationSnapshot.from_models(donation, donation.campaign)
        return Response(DonationSnapshotSerializer(snapshot.to_dict()).data)
