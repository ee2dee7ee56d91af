"""
Dispute handler.

A dispute (chargeback) is advisory in this system: the campaign owner is
told about it, but the donation stays COMPLETED and the campaign total is
not reduced. Nothing here writes to Donation or Campaign.

Usage:
    from donations.services import DisputeHandler

    result = DisputeHandler.handle_dispute(
        charge_id="ch_123",
        dispute_id="dp_123",
        reason="fraudulent",
        amount_cents=15000,
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from campaigns.models import Campaign
from donations.ledger import LedgerService
from donations.notifier import DonationNotifier

if TYPE_CHECKING:
    from notifications.models import Notification


class DisputeHandler(BaseService):
    """Turns charge disputes into owner notifications."""

    @classmethod
    def handle_dispute(
        cls,
        charge_id: str | None,
        dispute_id: str,
        reason: str | None = None,
        amount_cents: int | None = None,
    ) -> ServiceResult[Notification | None]:
        """
        Notify the campaign owner about a dispute on one of its donations.

        Never raises: an unknown charge is logged and dropped, since no
        caller is waiting on the result.

        Returns:
            ServiceResult with the Notification, or None when the charge
            matched no donation or the dispute was already announced
        """
        logger = cls.get_logger()
        log_context = {
            "charge_id": charge_id,
            "dispute_id": dispute_id,
            "reason": reason,
            "amount_cents": amount_cents,
        }

        try:
            donation = LedgerService.get_donation_by_charge(charge_id)
            if donation is None:
                logger.warning(
                    "Dispute for unknown charge, dropping",
                    extra=log_context,
                )
                return ServiceResult.success(None)

            campaign = Campaign.objects.get(pk=donation.campaign_id)
            notification = DonationNotifier.donation_disputed(
                donation, campaign, dispute_id=dispute_id, reason=reason
            )
        except Exception as e:
            return cls.handle_exception(e, "handle_dispute")

        logger.info(
            "Dispute recorded for donation",
            extra={
                **log_context,
                "donation_id": str(donation.id),
                "campaign_id": str(campaign.id),
                "notified": notification is not None,
            },
        )
        return ServiceResult.success(notification)
