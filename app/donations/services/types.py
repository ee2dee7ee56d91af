"""
Parameter and result types for donation services.

Types:
    CreateDonationIntentParams: Input for DonationIntentIssuer.create_intent
    DonationIntentResult: Donation + client secret returned to the browser
    ReconciliationResult: What a reconciliation call observed and changed
    DonationSnapshot: Donation + campaign view returned by confirm
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from donations.state_machines import ConfirmationSource

if TYPE_CHECKING:
    from authentication.models import User
    from campaigns.models import Campaign
    from donations.models import Donation


@dataclass
class CreateDonationIntentParams:
    """
    Parameters for issuing a donation PaymentIntent.

    Attributes:
        campaign_id: Campaign receiving the donation
        amount: Amount in major currency units (validated by the issuer)
        currency: ISO 4217 currency code (defaults to the campaign currency)
        is_anonymous: Hide the donor from the campaign owner
        message: Optional message to the campaign owner
        donor: Authenticated donor, None for guest checkouts

    Example:
        params = CreateDonationIntentParams(
            campaign_id=campaign.id,
            amount=Decimal("25.00"),
            donor=request.user,
        )
    """

    campaign_id: uuid.UUID
    amount: Decimal
    currency: str | None = None
    is_anonymous: bool = False
    message: str = ""
    donor: User | None = None


@dataclass
class DonationIntentResult:
    """Result of issuing a donation intent."""

    donation: Donation
    client_secret: str | None

    @property
    def payment_intent_id(self) -> str | None:
        return self.donation.stripe_payment_intent_id


@dataclass
class ReconciliationResult:
    """
    Result of ConfirmationReconciler.reconcile.

    Attributes:
        donation: Donation as committed
        campaign: Campaign as committed
        outcome: PaymentOutcome that was reconciled
        source: ConfirmationSource that delivered the signal
        applied: True only if this call moved the donation out of PENDING
        campaign_completed: True only if this call completed the campaign
    """

    donation: Donation
    campaign: Campaign
    outcome: str
    source: str = ConfirmationSource.WEBHOOK
    applied: bool = False
    campaign_completed: bool = False

    def to_snapshot(self) -> DonationSnapshot:
        return DonationSnapshot.from_models(self.donation, self.campaign)


@dataclass
class DonationSnapshot:
    """
    Consistent donation + campaign view returned by the confirm endpoint.

    Identical whether the call applied the donation or found it already
    applied by another path.
    """

    donation_id: uuid.UUID
    status: str
    amount: Decimal
    currency: str
    processed_at: datetime | None
    campaign_id: uuid.UUID
    campaign_title: str
    current_amount: Decimal
    goal_amount: Decimal
    progress_percentage: float

    @classmethod
    def from_models(cls, donation: Donation, campaign: Campaign) -> DonationSnapshot:
        return cls(
            donation_id=donation.id,
            status=donation.status,
            amount=donation.amount,
            currency=donation.currency,
            processed_at=donation.processed_at,
            campaign_id=campaign.id,
            campaign_title=campaign.title,
            current_amount=campaign.current_amount,
            goal_amount=campaign.goal_amount,
            progress_percentage=campaign.progress_percentage,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize into the nested confirm response shape."""
        return {
            "donation": {
                "id": str(self.donation_id),
                "status": self.status,
                "amount": str(self.amount),
                "currency": self.currency,
                "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            },
            "campaign": {
                "id": str(self.campaign_id),
                "title": self.campaign_title,
                "current_amount": str(self.current_amount),
                "goal_amount": str(self.goal_amount),
                "progress_percentage": self.progress_percentage,
            },
        }
