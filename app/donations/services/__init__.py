"""
Donation services.

This module provides:
- DonationIntentIssuer: Creates PENDING donations paired with PaymentIntents
- ConfirmationReconciler: Applies payment outcomes to the ledger exactly once
- DisputeHandler: Notifies campaign owners about charge disputes

Usage:
    from donations.services import (
        ConfirmationReconciler,
        CreateDonationIntentParams,
        DonationIntentIssuer,
    )

    result = DonationIntentIssuer.create_intent(
        CreateDonationIntentParams(campaign_id=campaign.id, amount=Decimal("25.00"))
    )

    snapshot = ConfirmationReconciler.confirm(result.payment_intent_id)
"""

from donations.services.dispute_handler import DisputeHandler
from donations.services.intent_issuer import DonationIntentIssuer
from donations.services.reconciler import ConfirmationReconciler
from donations.services.types import (
    CreateDonationIntentParams,
    DonationIntentResult,
    DonationSnapshot,
    ReconciliationResult,
)

__all__ = [
    # Services
    "ConfirmationReconciler",
    "DisputeHandler",
    "DonationIntentIssuer",
    # Types
    "CreateDonationIntentParams",
    "DonationIntentResult",
    "DonationSnapshot",
    "ReconciliationResult",
]
