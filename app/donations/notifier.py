"""
Donation notifier - owner-facing messages for ledger events.

Builds the message for each donation event and hands it to
notifications.services.NotificationService. Delivery is fire-and-forget:
a failure here is logged and swallowed so it can never roll back or
undo a committed ledger change.

Reconciliation schedules these calls with after_commit(), so a message
is only ever sent for a ledger change that actually committed.

Usage:
    from donations.notifier import DonationNotifier

    DonationNotifier.after_commit(
        lambda: DonationNotifier.donation_received(donation, campaign)
    )
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import transaction

from notifications.models import NotificationType
from notifications.services import NotificationService

if TYPE_CHECKING:
    from campaigns.models import Campaign
    from donations.models import Donation
    from notifications.models import Notification

logger = logging.getLogger(__name__)


def _format_amount(amount: Decimal, currency: str) -> str:
    return f"{amount:,.2f} {currency.upper()}"


class DonationNotifier:
    """
    Produces donation notifications for campaign owners.

    All methods are class methods - no instance state is maintained.
    Each message carries an idempotency key, so replaying a call never
    produces a second notification for the same event.
    """

    @classmethod
    def after_commit(cls, callback: Callable[[], Any]) -> None:
        """Run callback once the current transaction commits (now if none)."""
        transaction.on_commit(callback)

    @classmethod
    def notify(
        cls,
        recipient_id: uuid.UUID | int,
        notification_type: str,
        payload: dict[str, Any],
    ) -> Notification | None:
        """
        Deliver one notification.

        Args:
            recipient_id: User receiving the notification
            notification_type: NotificationType value
            payload: title, body, data and optional donation_id,
                campaign_id and idempotency_key

        Returns:
            The created Notification, or None when it was a duplicate or
            delivery failed
        """
        try:
            result = NotificationService.create_notification(
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=payload["title"],
                body=payload["body"],
                data=payload.get("data"),
                donation_id=payload.get("donation_id"),
                campaign_id=payload.get("campaign_id"),
                idempotency_key=payload.get("idempotency_key"),
            )
        except Exception:
            logger.error(
                "Failed to deliver donation notification",
                extra={
                    "recipient_id": str(recipient_id),
                    "notification_type": notification_type,
                    "idempotency_key": payload.get("idempotency_key"),
                },
                exc_info=True,
            )
            return None

        if not result.success:
            logger.info(
                f"Notification not created: {result.error}",
                extra={
                    "recipient_id": str(recipient_id),
                    "notification_type": notification_type,
                    "error_code": result.error_code,
                },
            )
            return None

        return result.data

    # =========================================================================
    # Donation Events
    # =========================================================================

    @classmethod
    def donation_received(cls, donation: Donation, campaign: Campaign) -> Notification | None:
        """Tell the owner a donation was applied to their campaign."""
        amount = _format_amount(donation.amount, donation.currency)
        donor_name = donation.donor_display_name

        data: dict[str, Any] = {
            "donation_id": str(donation.id),
            "campaign_id": str(campaign.id),
            "amount": str(donation.amount),
            "currency": donation.currency,
        }

        if donor_name:
            title = "New donation received"
            body = f'{donor_name} donated {amount} to your campaign "{campaign.title}"'
            data["donor_name"] = donor_name
        else:
            title = "New anonymous donation received"
            body = (
                f'You received an anonymous donation of {amount} '
                f'for your campaign "{campaign.title}"'
            )
            data["is_anonymous"] = True

        if donation.message:
            data["message"] = donation.message

        return cls.notify(
            campaign.owner_id,
            NotificationType.DONATION_RECEIVED,
            {
                "title": title,
                "body": body,
                "data": data,
                "donation_id": donation.id,
                "campaign_id": campaign.id,
                "idempotency_key": f"donation:{donation.id}:received",
            },
        )

    @classmethod
    def campaign_completed(cls, campaign: Campaign) -> Notification | None:
        """Tell the owner their campaign reached its goal."""
        goal = _format_amount(campaign.goal_amount, campaign.currency)
        return cls.notify(
            campaign.owner_id,
            NotificationType.CAMPAIGN_COMPLETED,
            {
                "title": "Campaign completed!",
                "body": f'Your campaign "{campaign.title}" has reached its goal of {goal}',
                "data": {
                    "campaign_id": str(campaign.id),
                    "goal_amount": str(campaign.goal_amount),
                    "final_amount": str(campaign.current_amount),
                },
                "campaign_id": campaign.id,
                "idempotency_key": f"campaign:{campaign.id}:completed",
            },
        )

    @classmethod
    def donation_disputed(
        cls,
        donation: Donation,
        campaign: Campaign,
        dispute_id: str,
        reason: str | None = None,
    ) -> Notification | None:
        """Tell the owner a donor opened a dispute on a charge."""
        amount = _format_amount(donation.amount, donation.currency)
        return cls.notify(
            campaign.owner_id,
            NotificationType.DONATION_DISPUTED,
            {
                "title": "Payment disputed",
                "body": (
                    f'A dispute was opened for a donation of {amount} '
                    f'to your campaign "{campaign.title}"'
                ),
                "data": {
                    "donation_id": str(donation.id),
                    "campaign_id": str(campaign.id),
                    "dispute_id": dispute_id,
                    "amount": str(donation.amount),
                    "reason": reason,
                },
                "donation_id": donation.id,
                "campaign_id": campaign.id,
                "idempotency_key": f"dispute:{dispute_id}",
            },
        )
