"""
Tests for ConfirmationReconciler.

These tests verify that:
- A succeeded outcome applies the donation exactly once
- A failed outcome never touches the campaign
- Replays return committed state and notify nobody
- confirm() resolves the outcome from Stripe before reconciling
- Notifications are only sent once the ledger change commits
"""

from decimal import Decimal

import pytest

from campaigns.models import Campaign, CampaignStatus
from donations.exceptions import (
    DonationNotFoundError,
    DonationValidationError,
    PaymentNotSettledError,
    StripeAPIUnavailableError,
)
from donations.models import Donation
from donations.services import ConfirmationReconciler
from donations.state_machines import ConfirmationSource, DonationStatus, PaymentOutcome
from donations.tests.factories import DonationFactory, build_payment_intent
from notifications.models import Notification, NotificationType


class TestReconcileSucceeded:
    """Tests for reconcile() with a succeeded outcome."""

    def test_applies_donation(self, pending_donation, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            result = ConfirmationReconciler.reconcile(
                pending_donation.stripe_payment_intent_id,
                PaymentOutcome.SUCCEEDED,
                charge_id="ch_1",
            )

        assert result.applied is True
        assert result.source == ConfirmationSource.WEBHOOK
        assert result.donation.status == DonationStatus.COMPLETED
        assert result.campaign.current_amount == Decimal("150.00")

    def test_owner_notified_after_commit(
        self, pending_donation, owner, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            ConfirmationReconciler.reconcile(
                pending_donation.stripe_payment_intent_id,
                PaymentOutcome.SUCCEEDED,
            )

            # Nothing is sent while the ledger transaction is open
            assert Notification.objects.count() == 0

        assert len(callbacks) == 1
        callbacks[0]()

        notification = Notification.objects.get(recipient=owner)
        assert notification.notification_type == NotificationType.DONATION_RECEIVED
        assert notification.title == "New donation received"
        assert "Ana Donor donated 150.00 USD" in notification.body
        assert notification.donation_id == pending_donation.id

    def test_anonymous_donation_hides_donor(
        self, campaign, donor, owner, django_capture_on_commit_callbacks
    ):
        donation = DonationFactory(campaign=campaign, donor=donor, is_anonymous=True)

        with django_capture_on_commit_callbacks(execute=True):
            ConfirmationReconciler.reconcile(
                donation.stripe_payment_intent_id, PaymentOutcome.SUCCEEDED
            )

        notification = Notification.objects.get(recipient=owner)
        assert notification.title == "New anonymous donation received"
        assert "Ana Donor" not in notification.body
        assert "donor_name" not in notification.data

    def test_goal_crossing_sends_completion_notice(
        self, nearly_funded_campaign, donor, owner, django_capture_on_commit_callbacks
    ):
        donation = DonationFactory(campaign=nearly_funded_campaign, donor=donor)

        with django_capture_on_commit_callbacks(execute=True):
            result = ConfirmationReconciler.reconcile(
                donation.stripe_payment_intent_id, PaymentOutcome.SUCCEEDED
            )

        assert result.campaign_completed is True
        types = set(
            Notification.objects.filter(recipient=owner).values_list(
                "notification_type", flat=True
            )
        )
        assert types == {
            NotificationType.DONATION_RECEIVED,
            NotificationType.CAMPAIGN_COMPLETED,
        }

    def test_replay_is_noop(self, pending_donation, django_capture_on_commit_callbacks):
        """The second signal returns the same committed state."""
        pi = pending_donation.stripe_payment_intent_id
        with django_capture_on_commit_callbacks(execute=True):
            ConfirmationReconciler.reconcile(pi, PaymentOutcome.SUCCEEDED, charge_id="ch_1")

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            replay = ConfirmationReconciler.reconcile(
                pi, PaymentOutcome.SUCCEEDED, charge_id="ch_1"
            )

        assert replay.applied is False
        assert replay.donation.status == DonationStatus.COMPLETED
        assert replay.campaign.current_amount == Decimal("150.00")
        assert callbacks == []
        assert Notification.objects.count() == 1

    def test_late_success_after_failure_is_ignored(self, campaign):
        donation = DonationFactory(campaign=campaign, failed=True)

        result = ConfirmationReconciler.reconcile(
            donation.stripe_payment_intent_id, PaymentOutcome.SUCCEEDED
        )

        assert result.applied is False
        assert result.donation.status == DonationStatus.FAILED
        assert Campaign.objects.get(pk=campaign.id).current_amount == Decimal("0.00")


class TestReconcileFailed:
    """Tests for reconcile() with a failed outcome."""

    def test_marks_failed_and_leaves_campaign(self, pending_donation, campaign):
        result = ConfirmationReconciler.reconcile(
            pending_donation.stripe_payment_intent_id,
            PaymentOutcome.FAILED,
            failure_reason="Your card was declined.",
        )

        assert result.applied is True
        assert result.donation.status == DonationStatus.FAILED
        assert result.donation.failure_reason == "Your card was declined."
        assert Campaign.objects.get(pk=campaign.id).current_amount == Decimal("0.00")
        assert Notification.objects.count() == 0

    def test_late_failure_after_success_is_ignored(self, completed_donation, campaign):
        result = ConfirmationReconciler.reconcile(
            completed_donation.stripe_payment_intent_id,
            PaymentOutcome.FAILED,
            failure_reason="late",
        )

        assert result.applied is False
        assert result.donation.status == DonationStatus.COMPLETED
        assert Campaign.objects.get(pk=campaign.id).current_amount == Decimal("150.00")


class TestReconcileRejections:
    """Signals that cannot be reconciled raise without mutating anything."""

    def test_unknown_payment_intent(self, db):
        with pytest.raises(DonationNotFoundError) as exc_info:
            ConfirmationReconciler.reconcile("pi_unknown", PaymentOutcome.SUCCEEDED)

        assert exc_info.value.http_status == 404

    def test_pending_outcome(self, pending_donation):
        with pytest.raises(PaymentNotSettledError):
            ConfirmationReconciler.reconcile(
                pending_donation.stripe_payment_intent_id, PaymentOutcome.PENDING
            )

        assert Donation.objects.get(pk=pending_donation.pk).status == DonationStatus.PENDING

    def test_unknown_outcome(self, pending_donation):
        with pytest.raises(DonationValidationError):
            ConfirmationReconciler.reconcile(
                pending_donation.stripe_payment_intent_id, "refunded"
            )


class TestConfirm:
    """Tests for the synchronous client confirmation path."""

    def test_confirm_succeeded_payment(
        self, pending_donation, mock_stripe, django_capture_on_commit_callbacks
    ):
        pi = pending_donation.stripe_payment_intent_id
        mock_stripe.retrieve.return_value = build_payment_intent(pi, latest_charge_id="ch_9")

        with django_capture_on_commit_callbacks(execute=True):
            snapshot = ConfirmationReconciler.confirm(pi)

        assert snapshot.status == DonationStatus.COMPLETED
        assert snapshot.current_amount == Decimal("150.00")
        assert snapshot.progress_percentage == 15.0
        assert Donation.objects.get(pk=pending_donation.pk).stripe_charge_id == "ch_9"

    def test_confirm_canceled_payment(self, pending_donation, mock_stripe):
        pi = pending_donation.stripe_payment_intent_id
        mock_stripe.retrieve.return_value = build_payment_intent(
            pi, status="canceled", latest_charge_id=None
        )

        snapshot = ConfirmationReconciler.confirm(pi)

        assert snapshot.status == DonationStatus.FAILED
        assert snapshot.current_amount == Decimal("0.00")

    @pytest.mark.parametrize(
        "status", ["processing", "requires_action", "requires_payment_method"]
    )
    def test_confirm_unsettled_payment(self, pending_donation, mock_stripe, status):
        pi = pending_donation.stripe_payment_intent_id
        mock_stripe.retrieve.return_value = build_payment_intent(pi, status=status)

        with pytest.raises(PaymentNotSettledError):
            ConfirmationReconciler.confirm(pi)

        assert Donation.objects.get(pk=pending_donation.pk).status == DonationStatus.PENDING

    def test_confirm_terminal_donation_skips_stripe(self, completed_donation, mock_stripe):
        snapshot = ConfirmationReconciler.confirm(completed_donation.stripe_payment_intent_id)

        mock_stripe.retrieve.assert_not_called()
        assert snapshot.status == DonationStatus.COMPLETED
        assert snapshot.current_amount == Decimal("150.00")

    def test_confirm_unknown_reference(self, db, mock_stripe):
        with pytest.raises(DonationNotFoundError):
            ConfirmationReconciler.confirm("pi_nope")

        mock_stripe.retrieve.assert_not_called()

    def test_stripe_outage_mutates_nothing(self, pending_donation, mock_stripe):
        mock_stripe.retrieve.side_effect = StripeAPIUnavailableError("down")

        with pytest.raises(StripeAPIUnavailableError):
            ConfirmationReconciler.confirm(pending_donation.stripe_payment_intent_id)

        assert Donation.objects.get(pk=pending_donation.pk).status == DonationStatus.PENDING

    def test_snapshot_to_dict(self, completed_donation, mock_stripe):
        data = ConfirmationReconciler.confirm(
            completed_donation.stripe_payment_intent_id
        ).to_dict()

        assert data["donation"]["id"] == str(completed_donation.id)
        assert data["donation"]["status"] == "completed"
        assert data["donation"]["amount"] == "150.00"
        assert data["campaign"]["current_amount"] == "150.00"
        assert data["campaign"]["goal_amount"] == "1000.00"


class TestResolveOutcome:
    """Tests for PaymentIntent status mapping."""

    @pytest.mark.parametrize(
        "status,outcome",
        [
            ("succeeded", PaymentOutcome.SUCCEEDED),
            ("canceled", PaymentOutcome.FAILED),
            ("processing", PaymentOutcome.PENDING),
            ("requires_capture", PaymentOutcome.PENDING),
        ],
    )
    def test_mapping(self, status, outcome):
        intent = build_payment_intent("pi_1", status=status)

        assert ConfirmationReconciler.resolve_outcome(intent) == outcome

    def test_declined_attempt_is_failed(self):
        """A declined attempt resolves the same way the payment_failed webhook does."""
        intent = build_payment_intent(
            "pi_1",
            status="requires_payment_method",
            latest_charge_id=None,
            last_payment_error="Your card was declined.",
        )

        assert ConfirmationReconciler.resolve_outcome(intent) == PaymentOutcome.FAILED

    def test_fresh_intent_is_pending(self):
        intent = build_payment_intent(
            "pi_1", status="requires_payment_method", latest_charge_id=None
        )

        assert ConfirmationReconciler.resolve_outcome(intent) == PaymentOutcome.PENDING


@pytest.mark.django_db
def test_campaign_status_unchanged_below_goal(pending_donation, campaign):
    ConfirmationReconciler.reconcile(
        pending_donation.stripe_payment_intent_id, PaymentOutcome.SUCCEEDED
    )

    assert Campaign.objects.get(pk=campaign.id).status == CampaignStatus.ACTIVE
