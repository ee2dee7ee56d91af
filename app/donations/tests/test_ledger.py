"""
Tests for LedgerService.

These tests verify that:
- Guarded status updates only apply while the guard holds
- Campaign totals are incremented in the database, never overwritten
- Goal completion is observed exactly once
- apply_confirmed_donation is all-or-nothing
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.db import DatabaseError
from django_fsm import ConcurrentTransition

from campaigns.models import Campaign, CampaignStatus
from campaigns.tests.factories import CampaignFactory
from donations.exceptions import (
    CampaignNotFoundError,
    DonationNotFoundError,
    DonationValidationError,
    InvalidStateTransitionError,
    PersistenceError,
)
from donations.ledger import LedgerService
from donations.models import Donation
from donations.state_machines import DonationStatus
from donations.tests.factories import DonationFactory


class TestLookups:
    """Tests for donation lookups by external reference."""

    def test_by_payment_intent(self, pending_donation):
        found = LedgerService.get_donation_by_payment_intent(
            pending_donation.stripe_payment_intent_id
        )

        assert found == pending_donation

    def test_by_charge(self, completed_donation):
        assert LedgerService.get_donation_by_charge("ch_test_completed") == completed_donation

    def test_unknown_or_empty_reference(self, db):
        assert LedgerService.get_donation_by_payment_intent("pi_missing") is None
        assert LedgerService.get_donation_by_payment_intent("") is None
        assert LedgerService.get_donation_by_charge(None) is None


class TestUpdateDonationStatus:
    """Tests for the guarded status update."""

    def test_applies_when_guard_holds(self, pending_donation):
        applied = LedgerService.update_donation_status(
            pending_donation.id,
            DonationStatus.PENDING,
            DonationStatus.FAILED,
            {"reason": "Your card was declined."},
        )

        donation = Donation.objects.get(pk=pending_donation.id)
        assert applied is True
        assert donation.status == DonationStatus.FAILED
        assert donation.failure_reason == "Your card was declined."

    def test_noop_when_guard_no_longer_holds(self, completed_donation):
        """A donation that already left PENDING is left untouched."""
        applied = LedgerService.update_donation_status(
            completed_donation.id,
            DonationStatus.PENDING,
            DonationStatus.FAILED,
            {"reason": "late failure"},
        )

        donation = Donation.objects.get(pk=completed_donation.id)
        assert applied is False
        assert donation.status == DonationStatus.COMPLETED
        assert donation.failure_reason is None

    def test_second_call_is_noop(self, pending_donation):
        args = (pending_donation.id, DonationStatus.PENDING, DonationStatus.COMPLETED)

        assert LedgerService.update_donation_status(*args, {"charge_id": "ch_1"}) is True
        assert LedgerService.update_donation_status(*args, {"charge_id": "ch_2"}) is False
        assert Donation.objects.get(pk=pending_donation.id).stripe_charge_id == "ch_1"

    def test_illegal_transition(self, completed_donation):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            LedgerService.update_donation_status(
                completed_donation.id,
                DonationStatus.COMPLETED,
                DonationStatus.PENDING,
            )

        assert exc_info.value.http_status == 409

    def test_missing_donation(self, db):
        with pytest.raises(DonationNotFoundError):
            LedgerService.update_donation_status(
                uuid.uuid4(), DonationStatus.PENDING, DonationStatus.FAILED
            )

    def test_database_error_becomes_persistence_error(self, pending_donation):
        with patch.object(Donation, "save", side_effect=DatabaseError("disk full")):
            with pytest.raises(PersistenceError) as exc_info:
                LedgerService.update_donation_status(
                    pending_donation.id,
                    DonationStatus.PENDING,
                    DonationStatus.FAILED,
                )

        assert exc_info.value.is_retryable is True
        assert Donation.objects.get(pk=pending_donation.id).status == DonationStatus.PENDING


class TestIncrementCampaignAmount:
    """Tests for the campaign total increment."""

    def test_adds_delta(self, nearly_funded_campaign):
        new_total = LedgerService.increment_campaign_amount(
            nearly_funded_campaign.id, Decimal("150.00")
        )

        assert new_total == Decimal("1050.00")
        assert Campaign.objects.get(pk=nearly_funded_campaign.id).current_amount == Decimal(
            "1050.00"
        )

    def test_increment_is_relative_to_database_value(self, campaign):
        """A stale in-memory total never overwrites a concurrent increment."""
        stale = Campaign.objects.get(pk=campaign.id)
        Campaign.objects.filter(pk=campaign.id).update(current_amount=Decimal("400.00"))

        LedgerService.increment_campaign_amount(stale.id, Decimal("100.00"))

        assert Campaign.objects.get(pk=campaign.id).current_amount == Decimal("500.00")

    @pytest.mark.parametrize("delta", [Decimal("0"), Decimal("-5.00")])
    def test_rejects_non_positive_delta(self, campaign, delta):
        with pytest.raises(DonationValidationError):
            LedgerService.increment_campaign_amount(campaign.id, delta)

    def test_missing_campaign(self, db):
        with pytest.raises(CampaignNotFoundError):
            LedgerService.increment_campaign_amount(uuid.uuid4(), Decimal("1.00"))


class TestCompleteCampaignIfGoalReached:
    """Tests for the conditional goal transition."""

    def test_completes_when_goal_reached(self, db):
        campaign = CampaignFactory(current_amount=Decimal("1000.00"))

        assert LedgerService.complete_campaign_if_goal_reached(campaign.id) is True
        assert Campaign.objects.get(pk=campaign.id).status == CampaignStatus.COMPLETED

    def test_only_first_call_observes_completion(self, db):
        campaign = CampaignFactory(current_amount=Decimal("1200.00"))

        assert LedgerService.complete_campaign_if_goal_reached(campaign.id) is True
        assert LedgerService.complete_campaign_if_goal_reached(campaign.id) is False

    def test_below_goal_stays_active(self, nearly_funded_campaign):
        assert LedgerService.complete_campaign_if_goal_reached(nearly_funded_campaign.id) is False
        assert (
            Campaign.objects.get(pk=nearly_funded_campaign.id).status == CampaignStatus.ACTIVE
        )

    def test_paused_campaign_can_complete(self, db):
        campaign = CampaignFactory(
            status=CampaignStatus.PAUSED, current_amount=Decimal("1000.00")
        )

        assert LedgerService.complete_campaign_if_goal_reached(campaign.id) is True

    def test_cancelled_campaign_never_completes(self, db):
        campaign = CampaignFactory(
            status=CampaignStatus.CANCELLED, current_amount=Decimal("1000.00")
        )

        assert LedgerService.complete_campaign_if_goal_reached(campaign.id) is False


class TestApplyConfirmedDonation:
    """Tests for the single-transaction reconciliation unit."""

    def test_applies_donation_and_increments_campaign(self, pending_donation):
        application = LedgerService.apply_confirmed_donation(pending_donation.id, "ch_1")

        assert application.applied is True
        assert application.campaign_completed is False
        assert application.donation.status == DonationStatus.COMPLETED
        assert application.donation.stripe_charge_id == "ch_1"
        assert application.campaign.current_amount == Decimal("150.00")

    def test_goal_crossing_completes_campaign(self, nearly_funded_campaign, donor):
        donation = DonationFactory(campaign=nearly_funded_campaign, donor=donor)

        application = LedgerService.apply_confirmed_donation(donation.id, "ch_goal")

        assert application.campaign_completed is True
        assert application.campaign.status == CampaignStatus.COMPLETED
        assert application.campaign.current_amount == Decimal("1050.00")

    def test_replay_is_noop(self, pending_donation):
        """The second application returns committed state without changes."""
        LedgerService.apply_confirmed_donation(pending_donation.id, "ch_1")

        replay = LedgerService.apply_confirmed_donation(pending_donation.id, "ch_1")

        assert replay.applied is False
        assert replay.campaign_completed is False
        assert replay.donation.status == DonationStatus.COMPLETED
        assert replay.campaign.current_amount == Decimal("150.00")

    def test_failed_donation_is_never_applied(self, campaign):
        donation = DonationFactory(campaign=campaign, failed=True)

        application = LedgerService.apply_confirmed_donation(donation.id, "ch_late")

        assert application.applied is False
        assert Campaign.objects.get(pk=campaign.id).current_amount == Decimal("0.00")

    def test_completed_campaign_still_accepts_late_donation(self, db, owner, donor):
        """Overshoot is accepted in full; completion is not re-reported."""
        campaign = CampaignFactory(
            owner=owner,
            status=CampaignStatus.COMPLETED,
            current_amount=Decimal("1000.00"),
        )
        donation = DonationFactory(campaign=campaign, donor=donor, amount=Decimal("50.00"))

        application = LedgerService.apply_confirmed_donation(donation.id)

        assert application.applied is True
        assert application.campaign_completed is False
        assert application.campaign.current_amount == Decimal("1050.00")

    def test_missing_donation(self, db):
        with pytest.raises(DonationNotFoundError):
            LedgerService.apply_confirmed_donation(uuid.uuid4())

    def test_failure_rolls_back_donation_transition(self, pending_donation):
        """If the increment fails the donation stays PENDING."""
        with patch.object(
            LedgerService,
            "increment_campaign_amount",
            side_effect=DatabaseError("connection lost"),
        ):
            with pytest.raises(PersistenceError):
                LedgerService.apply_confirmed_donation(pending_donation.id, "ch_1")

        donation = Donation.objects.get(pk=pending_donation.id)
        assert donation.status == DonationStatus.PENDING
        assert donation.stripe_charge_id is None
        assert Campaign.objects.get(pk=pending_donation.campaign_id).current_amount == Decimal(
            "0.00"
        )

    def test_concurrent_transition_is_not_applied(self, pending_donation):
        """
        A worker whose guarded save finds the row already moved gets
        applied=False and the campaign is not incremented.
        """
        with patch.object(Donation, "save", side_effect=ConcurrentTransition("lost")):
            application = LedgerService.apply_confirmed_donation(
                pending_donation.id, "ch_loser"
            )

        assert application.applied is False
        assert Campaign.objects.get(pk=pending_donation.campaign_id).current_amount == Decimal(
            "0.00"
        )


def locked_read_returning(donation):
    """Stand-in for select_for_update() whose locked read yields a given copy."""
    queryset = MagicMock()
    queryset.filter.return_value.first.return_value = donation
    return queryset


class TestStaleReaderRace:
    """
    Two workers each hold a PENDING copy of the same donation, as they
    would if both read it before either committed. Runs on every
    backend; the threaded version lives in test_concurrency.py.
    """

    def test_only_one_stale_reader_applies(self, nearly_funded_campaign, donor):
        donation = DonationFactory(campaign=nearly_funded_campaign, donor=donor)
        webhook_copy = Donation.objects.get(pk=donation.pk)
        confirm_copy = Donation.objects.get(pk=donation.pk)

        with patch.object(
            Donation.objects,
            "select_for_update",
            side_effect=[
                locked_read_returning(webhook_copy),
                locked_read_returning(confirm_copy),
            ],
        ):
            first = LedgerService.apply_confirmed_donation(donation.id, "ch_webhook")
            second = LedgerService.apply_confirmed_donation(donation.id, "ch_confirm")

        assert first.applied is True
        assert first.campaign_completed is True
        assert second.applied is False
        assert second.campaign_completed is False

        stored = Donation.objects.get(pk=donation.pk)
        assert stored.status == DonationStatus.COMPLETED
        assert stored.stripe_charge_id == "ch_webhook"
        campaign = Campaign.objects.get(pk=nearly_funded_campaign.pk)
        assert campaign.current_amount == Decimal("1050.00")
        assert campaign.status == CampaignStatus.COMPLETED

    def test_stale_failure_cannot_undo_completion(self, pending_donation):
        stale = Donation.objects.get(pk=pending_donation.pk)
        LedgerService.apply_confirmed_donation(pending_donation.id, "ch_1")

        with patch.object(
            Donation.objects, "select_for_update", return_value=locked_read_returning(stale)
        ):
            applied = LedgerService.update_donation_status(
                pending_donation.id,
                DonationStatus.PENDING,
                DonationStatus.FAILED,
                {"reason": "late decline"},
            )

        assert applied is False
        assert Donation.objects.get(pk=pending_donation.pk).status == DonationStatus.COMPLETED
        assert Campaign.objects.get(pk=pending_donation.campaign_id).current_amount == Decimal(
            "150.00"
        )
