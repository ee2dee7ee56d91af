"""
Tests for the Campaign model.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from campaigns.models import CampaignStatus
from campaigns.tests.factories import CampaignFactory


@pytest.mark.django_db
class TestCampaignProgress:
    """Tests for progress_percentage and goal_reached."""

    def test_progress_is_ratio_of_goal(self):
        """Half the goal raised is 50%."""
        campaign = CampaignFactory(
            goal_amount=Decimal("1000.00"), current_amount=Decimal("500.00")
        )

        assert campaign.progress_percentage == 50.0
        assert not campaign.goal_reached

    def test_progress_capped_at_100(self):
        """Overshooting the goal still reports 100%."""
        campaign = CampaignFactory(
            goal_amount=Decimal("1000.00"), current_amount=Decimal("1050.00")
        )

        assert campaign.progress_percentage == 100.0
        assert campaign.goal_reached


@pytest.mark.django_db
class TestCampaignAcceptsDonations:
    """Only active campaigns accept donations."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            (CampaignStatus.ACTIVE, True),
            (CampaignStatus.DRAFT, False),
            (CampaignStatus.PAUSED, False),
            (CampaignStatus.COMPLETED, False),
            (CampaignStatus.CANCELLED, False),
        ],
    )
    def test_accepts_donations_by_status(self, status, expected):
        """accepts_donations follows the status."""
        campaign = CampaignFactory(status=status)

        assert campaign.accepts_donations is expected


@pytest.mark.django_db
class TestCampaignConstraints:
    """Database-level constraints on ledger fields."""

    def test_goal_amount_must_be_positive(self):
        """A zero goal is rejected by the check constraint."""
        with pytest.raises(IntegrityError), transaction.atomic():
            CampaignFactory(goal_amount=Decimal("0.00"))

    def test_current_amount_cannot_be_negative(self):
        """A negative total is rejected by the check constraint."""
        with pytest.raises(IntegrityError), transaction.atomic():
            CampaignFactory(current_amount=Decimal("-1.00"))
