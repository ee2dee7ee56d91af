"""
Confirmation reconciler - the donation state machine.

Both confirmation paths funnel through ConfirmationReconciler.reconcile:

    Stripe webhook ─┐
    client confirm ─┼─> reconcile(payment_intent_id, outcome) ─> LedgerService
    pending sweep  ─┘

The only idempotency barrier is the guarded transition inside
LedgerService: whichever call first observes the donation as PENDING
applies it, every other call observes a terminal donation and returns
the same committed state without changing anything.

State Flow:
    PENDING --succeeded--> COMPLETED (amount applied to campaign)
    PENDING --failed-----> FAILED    (campaign untouched)
    COMPLETED / FAILED    terminal, every further signal is a no-op

The payment outcome is always resolved before the ledger transaction is
opened; no Stripe call is ever made while rows are locked.

Usage:
    from donations.services import ConfirmationReconciler

    # Webhook path - outcome comes from the verified event type
    ConfirmationReconciler.reconcile(
        payment_intent_id="pi_123",
        outcome=PaymentOutcome.SUCCEEDED,
        charge_id="ch_123",
        source=ConfirmationSource.WEBHOOK,
    )

    # Client path - outcome is looked up from Stripe
    snapshot = ConfirmationReconciler.confirm("pi_123")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService

from campaigns.models import Campaign
from donations.adapters import StripeAdapter
from donations.exceptions import (
    DonationNotFoundError,
    DonationValidationError,
    PaymentNotSettledError,
)
from donations.ledger import LedgerService
from donations.models import Donation
from donations.notifier import DonationNotifier
from donations.state_machines import (
    ConfirmationSource,
    DonationStatus,
    PaymentOutcome,
)

from .types import DonationSnapshot, ReconciliationResult

if TYPE_CHECKING:
    from donations.adapters import PaymentIntentResult
    from donations.ledger import LedgerApplication


class ConfirmationReconciler(BaseService):
    """
    Applies payment outcomes to the donation ledger exactly once.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def reconcile(
        cls,
        payment_intent_id: str,
        outcome: str,
        charge_id: str | None = None,
        failure_reason: str | None = None,
        source: str = ConfirmationSource.WEBHOOK,
    ) -> ReconciliationResult:
        """
        Reconcile a payment outcome against the donation it belongs to.

        Args:
            payment_intent_id: Authorization reference (pi_xxx)
            outcome: PaymentOutcome resolved by the caller
            charge_id: Charge reference (ch_xxx) for succeeded payments
            failure_reason: Processor message for failed payments
            source: Which delivery path sent the signal

        Returns:
            ReconciliationResult; applied is False when the donation had
            already been reconciled

        Raises:
            DonationNotFoundError: No donation for payment_intent_id
            PaymentNotSettledError: outcome is PENDING
            DonationValidationError: outcome is not a PaymentOutcome
            PersistenceError: Ledger transaction could not commit
        """
        logger = cls.get_logger()
        log_context = {
            "payment_intent_id": payment_intent_id,
            "outcome": outcome,
            "source": source,
        }

        donation = LedgerService.get_donation_by_payment_intent(payment_intent_id)
        if donation is None:
            logger.warning(
                "No donation for payment intent, rejecting confirmation",
                extra=log_context,
            )
            raise DonationNotFoundError(
                f"No donation found for payment intent {payment_intent_id}",
                details={"payment_intent_id": payment_intent_id},
            )

        log_context["donation_id"] = str(donation.id)

        if outcome == PaymentOutcome.PENDING:
            raise PaymentNotSettledError(
                "Payment has not completed yet",
                details={
                    "payment_intent_id": payment_intent_id,
                    "donation_status": donation.status,
                },
            )

        if outcome == PaymentOutcome.FAILED:
            applied = LedgerService.update_donation_status(
                donation.id,
                DonationStatus.PENDING,
                DonationStatus.FAILED,
                {"reason": failure_reason},
            )
            donation = Donation.objects.select_related("campaign").get(pk=donation.id)
            logger.info(
                "Failed payment reconciled" if applied else "Failed payment already reconciled",
                extra={**log_context, "applied": applied, "status": donation.status},
            )
            return ReconciliationResult(
                donation=donation,
                campaign=donation.campaign,
                outcome=outcome,
                source=source,
                applied=applied,
            )

        if outcome != PaymentOutcome.SUCCEEDED:
            raise DonationValidationError(
                f"Unknown payment outcome: {outcome}",
                details=log_context,
            )

        application = LedgerService.apply_confirmed_donation(donation.id, charge_id)

        if application.applied:
            cls._schedule_notifications(application)
        else:
            logger.info(
                "Donation already reconciled, returning committed state",
                extra={**log_context, "status": application.donation.status},
            )

        return ReconciliationResult(
            donation=application.donation,
            campaign=application.campaign,
            outcome=outcome,
            source=source,
            applied=application.applied,
            campaign_completed=application.campaign_completed,
        )

    @classmethod
    def confirm(cls, payment_intent_id: str) -> DonationSnapshot:
        """
        Synchronous client confirmation.

        Looks the outcome up from Stripe, then reconciles. Safe to call
        any number of times for the same reference.

        Raises:
            DonationNotFoundError: No donation for payment_intent_id
            PaymentNotSettledError: PaymentIntent is still in flight
            StripeError: Stripe lookup failed (nothing was mutated)
            PersistenceError: Ledger transaction could not commit
        """
        donation = LedgerService.get_donation_by_payment_intent(payment_intent_id)
        if donation is None:
            cls.get_logger().warning(
                "Confirm called for unknown payment intent",
                extra={"payment_intent_id": payment_intent_id},
            )
            raise DonationNotFoundError(
                f"No donation found for payment intent {payment_intent_id}",
                details={"payment_intent_id": payment_intent_id},
            )

        # Already terminal: answer from the ledger without calling Stripe
        if donation.is_terminal:
            return DonationSnapshot.from_models(
                donation, Campaign.objects.get(pk=donation.campaign_id)
            )

        intent = StripeAdapter.retrieve_payment_intent(
            payment_intent_id, trace_id=str(donation.id)
        )
        outcome = cls.resolve_outcome(intent)

        result = cls.reconcile(
            payment_intent_id=payment_intent_id,
            outcome=outcome,
            charge_id=intent.latest_charge_id,
            failure_reason=intent.last_payment_error,
            source=ConfirmationSource.CLIENT_CONFIRM,
        )
        return result.to_snapshot()

    @staticmethod
    def resolve_outcome(intent: PaymentIntentResult) -> str:
        """
        Map a PaymentIntent status onto a terminal outcome.

        succeeded -> SUCCEEDED. canceled -> FAILED, as is
        requires_payment_method carrying a last_payment_error, which is
        what a payment_intent.payment_failed webhook reports. Anything
        else (processing, requires_action, a fresh requires_payment_method)
        stays PENDING.
        """
        if intent.succeeded:
            return PaymentOutcome.SUCCEEDED
        if intent.canceled or intent.payment_failed:
            return PaymentOutcome.FAILED
        return PaymentOutcome.PENDING

    @classmethod
    def _schedule_notifications(cls, application: LedgerApplication) -> None:
        """Queue owner notifications to run once the ledger change commits."""
        donation = application.donation
        campaign = application.campaign

        DonationNotifier.after_commit(
            lambda: DonationNotifier.donation_received(donation, campaign)
        )
        if application.campaign_completed:
            DonationNotifier.after_commit(
                lambda: DonationNotifier.campaign_completed(campaign)
            )
