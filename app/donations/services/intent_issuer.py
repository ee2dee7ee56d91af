"""
Donation intent issuer.

Creates the PENDING donation that a later confirmation reconciles, paired
with a Stripe PaymentIntent whose client secret the browser uses to
collect the payment.

Flow:
    1. Check the amount is a positive number
    2. Load the campaign and check it accepts donations
    3. Default the currency to the campaign currency, reject any other,
       and round the amount to that currency's minor unit
    4. Create the PaymentIntent (donation id in metadata + idempotency key)
    5. Insert the Donation(PENDING) carrying the PaymentIntent id

The donation id is generated before the Stripe call so it can travel in
the PaymentIntent metadata; the row is only inserted once Stripe has
answered, so a Stripe failure leaves nothing behind.

Usage:
    from donations.services import DonationIntentIssuer, CreateDonationIntentParams

    result = DonationIntentIssuer.create_intent(
        CreateDonationIntentParams(
            campaign_id=campaign.id,
            amount=Decimal("25.00"),
            currency="usd",
            donor=request.user,
        )
    )
    client_secret = result.client_secret
"""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db import DatabaseError

from core.services import BaseService

from campaigns.models import Campaign
from donations.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
    ZERO_DECIMAL_CURRENCIES,
    to_minor_units,
)
from donations.exceptions import (
    CampaignNotAcceptingDonationsError,
    CampaignNotFoundError,
    DonationValidationError,
    PersistenceError,
)
from donations.models import Donation

from .types import CreateDonationIntentParams, DonationIntentResult

# Stripe rejects amounts above this in the smallest currency unit
MAX_AMOUNT_MINOR_UNITS = 99_999_999


class DonationIntentIssuer(BaseService):
    """
    Issues PaymentIntents for new donations.

    All methods are class methods - no instance state is maintained.
    Stripe errors propagate unchanged (StripeError, 502) and are not
    retried here; the caller decides whether to try again.
    """

    @classmethod
    def create_intent(cls, params: CreateDonationIntentParams) -> DonationIntentResult:
        """
        Create a PENDING donation and its PaymentIntent.

        Raises:
            DonationValidationError: amount <= 0, currency differs from the
                campaign currency, or a fractional zero-decimal amount
            CampaignNotFoundError: Campaign does not exist
            CampaignNotAcceptingDonationsError: Campaign is not ACTIVE
            StripeError: PaymentIntent could not be created
            PersistenceError: Donation row could not be written
        """
        logger = cls.get_logger()

        requested_amount = cls._parse_amount(params.amount)

        campaign = Campaign.objects.filter(pk=params.campaign_id).first()
        if campaign is None:
            raise CampaignNotFoundError(
                f"Campaign {params.campaign_id} not found",
                details={"campaign_id": str(params.campaign_id)},
            )

        if not campaign.accepts_donations:
            raise CampaignNotAcceptingDonationsError(
                "Campaign is not accepting donations",
                details={"campaign_id": str(campaign.id), "status": campaign.status},
            )

        currency = cls._resolve_currency(params.currency, campaign)
        amount = cls._normalize_amount(requested_amount, currency)

        donor = params.donor if params.donor and params.donor.is_authenticated else None
        donation_id = uuid.uuid4()

        metadata = {
            "donation_id": str(donation_id),
            "campaign_id": str(campaign.id),
            "donor_id": str(donor.pk) if donor else "anonymous",
            "is_anonymous": str(params.is_anonymous).lower(),
        }
        if params.message:
            # Stripe metadata values are limited to 500 characters
            metadata["message"] = params.message[:500]

        intent = StripeAdapter.create_payment_intent(
            CreatePaymentIntentParams(
                amount_cents=to_minor_units(amount, currency),
                currency=currency,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    operation="create_intent",
                    entity_id=donation_id,
                ),
                metadata=metadata,
                description=f"Donation for: {campaign.title}",
                receipt_email=donor.email if donor else None,
            ),
            trace_id=str(donation_id),
        )

        try:
            donation = Donation.objects.create(
                id=donation_id,
                campaign=campaign,
                donor=donor,
                amount=amount,
                currency=currency.upper(),
                message=params.message or "",
                is_anonymous=params.is_anonymous,
                stripe_payment_intent_id=intent.id,
                client_secret=intent.client_secret,
                metadata=metadata,
            )
        except DatabaseError as e:
            logger.error(
                "Failed to persist donation after creating PaymentIntent",
                extra={
                    "donation_id": str(donation_id),
                    "payment_intent_id": intent.id,
                },
                exc_info=True,
            )
            raise PersistenceError(
                "Could not record the donation",
                details={"payment_intent_id": intent.id, "error": str(e)},
            ) from e

        logger.info(
            "Donation intent created",
            extra={
                "donation_id": str(donation.id),
                "campaign_id": str(campaign.id),
                "payment_intent_id": intent.id,
                "amount": str(amount),
                "currency": donation.currency,
                "is_anonymous": params.is_anonymous,
            },
        )

        return DonationIntentResult(donation=donation, client_secret=intent.client_secret)

    @staticmethod
    def _parse_amount(amount: Decimal) -> Decimal:
        """Coerce the requested amount to a positive Decimal."""
        try:
            parsed = Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise DonationValidationError(
                "Donation amount must be a number",
                details={"amount": str(amount)},
            ) from e

        if not parsed.is_finite() or parsed <= 0:
            raise DonationValidationError(
                "Donation amount must be positive",
                details={"amount": str(amount)},
            )
        return parsed

    @staticmethod
    def _resolve_currency(requested: str | None, campaign: Campaign) -> str:
        """Default to the campaign currency and reject any other."""
        campaign_currency = campaign.currency.lower()
        currency = (requested or campaign_currency).strip().lower()

        if len(currency) != 3 or not currency.isalpha():
            raise DonationValidationError(
                "Currency must be a 3-letter ISO code",
                details={"currency": currency},
            )

        if currency != campaign_currency:
            raise DonationValidationError(
                "Donation currency must match the campaign currency",
                details={
                    "currency": currency,
                    "campaign_currency": campaign_currency,
                },
            )
        return currency

    @staticmethod
    def _normalize_amount(amount: Decimal, currency: str) -> Decimal:
        """
        Round to the currency's minor unit.

        Zero-decimal currencies only accept whole units, so the recorded
        amount always equals what Stripe charges.
        """
        if currency in ZERO_DECIMAL_CURRENCIES:
            if amount != amount.to_integral_value():
                raise DonationValidationError(
                    f"{currency.upper()} donations must be whole units",
                    details={"amount": str(amount), "currency": currency},
                )
            normalized = amount.quantize(Decimal("1"))
        else:
            normalized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        if normalized <= 0:
            raise DonationValidationError(
                "Donation amount must be positive",
                details={"amount": str(amount)},
            )

        if to_minor_units(normalized, currency) > MAX_AMOUNT_MINOR_UNITS:
            raise DonationValidationError(
                "Donation amount is too large",
                details={"amount": str(amount)},
            )

        return normalized
