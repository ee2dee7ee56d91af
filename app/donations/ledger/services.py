"""
Ledger service for donation reconciliation.

This module is the only writer of Donation.status and
Campaign.current_amount. Every write happens inside a database
transaction and is guarded so that replaying the same confirmation, or
racing two confirmations for the same donation, changes the ledger once:

- The donation row is re-read with SELECT ... FOR UPDATE and the
  transition only proceeds if it is still PENDING.
- Donation.save() is itself conditional on the loaded status
  (django-fsm ConcurrentTransitionMixin).
- The campaign total is incremented with an F() expression, never
  read-modify-written in Python.
- Goal completion is a conditional UPDATE, so exactly one concurrent
  reconciliation observes it.

Usage:
    from donations.ledger import LedgerService

    application = LedgerService.apply_confirmed_donation(donation.id, "ch_123")
    LedgerService.update_donation_status(
        donation.id,
        DonationStatus.PENDING,
        DonationStatus.FAILED,
        {"reason": "card_declined"},
    )
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from django_fsm import ConcurrentTransition

from campaigns.models import GOAL_COMPLETABLE_STATUSES, Campaign, CampaignStatus
from donations.exceptions import (
    CampaignNotFoundError,
    DonationNotFoundError,
    DonationValidationError,
    InvalidStateTransitionError,
    PersistenceError,
)
from donations.models import Donation
from donations.state_machines import DonationStatus

from .types import LedgerApplication

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger(__name__)


# Allowed (guard, target) pairs and the django-fsm transition implementing each
DONATION_TRANSITIONS: dict[tuple[str, str], str] = {
    (DonationStatus.PENDING, DonationStatus.COMPLETED): "complete",
    (DonationStatus.PENDING, DonationStatus.FAILED): "fail",
}


class LedgerService:
    """
    Service class for ledger operations.

    All methods are static - no instance state is maintained.
    Database failures are re-raised as PersistenceError after the
    transaction has rolled back, so callers never observe partial state.
    """

    # =========================================================================
    # Transactions
    # =========================================================================

    @staticmethod
    @contextmanager
    def atomic() -> Generator[None, None, None]:
        """Begin/commit/rollback boundary for ledger writes."""
        with transaction.atomic():
            yield

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def get_donation_by_payment_intent(payment_intent_id: str) -> Donation | None:
        """Find a donation by its authorization reference (pi_xxx)."""
        if not payment_intent_id:
            return None
        return Donation.objects.filter(
            stripe_payment_intent_id=payment_intent_id
        ).first()

    @staticmethod
    def get_donation_by_charge(charge_id: str) -> Donation | None:
        """Find a donation by its charge reference (ch_xxx)."""
        if not charge_id:
            return None
        return Donation.objects.filter(stripe_charge_id=charge_id).first()

    # =========================================================================
    # Guarded Writes
    # =========================================================================

    @staticmethod
    def update_donation_status(
        donation_id: uuid.UUID,
        guard_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """
        Move a donation from guard_status to new_status if it is still there.

        Args:
            donation_id: Donation to update
            guard_status: Status the donation must currently have
            new_status: Target status
            fields: Keyword arguments for the transition
                (charge_id for COMPLETED, reason for FAILED)

        Returns:
            True if this call performed the transition, False if the
            donation had already left guard_status

        Raises:
            InvalidStateTransitionError: The pair is not a legal transition
            DonationNotFoundError: Donation does not exist
            PersistenceError: The write could not be committed
        """
        transition_name = DONATION_TRANSITIONS.get((guard_status, new_status))
        if transition_name is None:
            raise InvalidStateTransitionError(
                f"Cannot move donation from '{guard_status}' to '{new_status}'",
                details={
                    "donation_id": str(donation_id),
                    "current_state": guard_status,
                    "target_state": new_status,
                },
            )

        try:
            with LedgerService.atomic():
                donation = (
                    Donation.objects.select_for_update()
                    .filter(pk=donation_id)
                    .first()
                )
                if donation is None:
                    raise DonationNotFoundError(
                        f"Donation {donation_id} not found",
                        details={"donation_id": str(donation_id)},
                    )

                if donation.status != guard_status:
                    logger.info(
                        "Donation already left guard status, skipping",
                        extra={
                            "donation_id": str(donation_id),
                            "status": donation.status,
                            "guard_status": guard_status,
                        },
                    )
                    return False

                getattr(donation, transition_name)(**(fields or {}))
                donation.save()
        except ConcurrentTransition:
            logger.info(
                "Concurrent transition detected, another worker won",
                extra={"donation_id": str(donation_id), "target": new_status},
            )
            return False
        except DatabaseError as e:
            logger.error(
                "Failed to commit donation status change",
                extra={"donation_id": str(donation_id), "target": new_status},
                exc_info=True,
            )
            raise PersistenceError(
                "Could not commit donation status change",
                details={"donation_id": str(donation_id), "error": str(e)},
            ) from e

        logger.info(
            f"Donation moved to {new_status}",
            extra={"donation_id": str(donation_id), "guard_status": guard_status},
        )
        return True

    @staticmethod
    def increment_campaign_amount(campaign_id: uuid.UUID, delta: Decimal) -> Decimal:
        """
        Atomically add delta to a campaign's current_amount.

        Must be called inside a transaction together with the donation
        transition that justifies it.

        Returns:
            The campaign's new current_amount

        Raises:
            DonationValidationError: delta is not positive
            CampaignNotFoundError: Campaign does not exist
        """
        if delta <= 0:
            raise DonationValidationError(
                "Campaign totals can only grow",
                details={"campaign_id": str(campaign_id), "delta": str(delta)},
            )

        updated = Campaign.objects.filter(pk=campaign_id).update(
            current_amount=F("current_amount") + delta,
            updated_at=timezone.now(),
        )
        if not updated:
            raise CampaignNotFoundError(
                f"Campaign {campaign_id} not found",
                details={"campaign_id": str(campaign_id)},
            )

        return Campaign.objects.values_list("current_amount", flat=True).get(
            pk=campaign_id
        )

    @staticmethod
    def complete_campaign_if_goal_reached(campaign_id: uuid.UUID) -> bool:
        """
        Mark the campaign COMPLETED if its total has reached the goal.

        Conditional on the campaign still being ACTIVE or PAUSED, so among
        concurrent reconciliations only the first to commit gets True.
        """
        updated = Campaign.objects.filter(
            pk=campaign_id,
            status__in=GOAL_COMPLETABLE_STATUSES,
            current_amount__gte=F("goal_amount"),
        ).update(status=CampaignStatus.COMPLETED, updated_at=timezone.now())
        return updated == 1

    # =========================================================================
    # Reconciliation Unit
    # =========================================================================

    @staticmethod
    def apply_confirmed_donation(
        donation_id: uuid.UUID,
        charge_id: str | None = None,
    ) -> LedgerApplication:
        """
        Apply a succeeded payment to the ledger as one atomic unit.

        Steps (single transaction):
            1. Lock and re-read the donation
            2. If it is no longer PENDING, stop (replay or lost race)
            3. PENDING -> COMPLETED with processed_at and charge reference
            4. Increment the campaign total by the donation amount
            5. Complete the campaign if the goal has been reached

        Returns:
            LedgerApplication describing what this call changed

        Raises:
            DonationNotFoundError: Donation does not exist
            CampaignNotFoundError: Campaign does not exist
            PersistenceError: The transaction could not be committed
        """
        log_context = {"donation_id": str(donation_id), "charge_id": charge_id}

        try:
            with LedgerService.atomic():
                donation = (
                    Donation.objects.select_for_update()
                    .filter(pk=donation_id)
                    .first()
                )
                if donation is None:
                    raise DonationNotFoundError(
                        f"Donation {donation_id} not found",
                        details={"donation_id": str(donation_id)},
                    )

                if donation.status != DonationStatus.PENDING:
                    logger.info(
                        "Donation already reconciled, no ledger change",
                        extra={**log_context, "status": donation.status},
                    )
                    return LedgerApplication(
                        applied=False,
                        donation=donation,
                        campaign=Campaign.objects.get(pk=donation.campaign_id),
                    )

                donation.complete(charge_id=charge_id)
                donation.save()

                new_total = LedgerService.increment_campaign_amount(
                    donation.campaign_id, donation.amount
                )
                campaign_completed = LedgerService.complete_campaign_if_goal_reached(
                    donation.campaign_id
                )
                campaign = Campaign.objects.get(pk=donation.campaign_id)

        except ConcurrentTransition:
            logger.info(
                "Concurrent confirmation won the race, no ledger change",
                extra=log_context,
            )
            donation = Donation.objects.get(pk=donation_id)
            return LedgerApplication(
                applied=False,
                donation=donation,
                campaign=Campaign.objects.get(pk=donation.campaign_id),
            )
        except DatabaseError as e:
            logger.error(
                "Failed to commit ledger update",
                extra=log_context,
                exc_info=True,
            )
            raise PersistenceError(
                "Could not commit ledger update",
                details={"donation_id": str(donation_id), "error": str(e)},
            ) from e

        logger.info(
            "Donation applied to campaign ledger",
            extra={
                **log_context,
                "campaign_id": str(campaign.id),
                "amount": str(donation.amount),
                "new_total": str(new_total),
                "campaign_completed": campaign_completed,
            },
        )

        return LedgerApplication(
            applied=True,
            donation=donation,
            campaign=campaign,
            campaign_completed=campaign_completed,
        )
