"""
Pytest fixtures for donation tests.

Fixtures provide campaigns and donations in the states the ledger cares
about, plus a patched StripeAdapter so no test talks to Stripe.

Usage:
    def test_confirm(pending_donation, mock_stripe):
        mock_stripe.retrieve.return_value = build_payment_intent(
            pending_donation.stripe_payment_intent_id
        )
        ConfirmationReconciler.confirm(pending_donation.stripe_payment_intent_id)
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from authentication.tests.factories import UserFactory
from campaigns.tests.factories import CampaignFactory
from donations.adapters import StripeAdapter
from donations.tests.factories import DonationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def owner(db):
    """Campaign owner who receives notifications."""
    return UserFactory(full_name="Campaign Owner")


@pytest.fixture
def donor(db):
    """Authenticated donor."""
    return UserFactory(full_name="Ana Donor")


# =============================================================================
# Campaign Fixtures
# =============================================================================


@pytest.fixture
def campaign(db, owner):
    """Active campaign with a 1000.00 goal and nothing raised."""
    return CampaignFactory(owner=owner, title="School roof")


@pytest.fixture
def nearly_funded_campaign(db, owner):
    """Active campaign at 900.00 of a 1000.00 goal."""
    return CampaignFactory(
        owner=owner,
        title="Community garden",
        current_amount=Decimal("900.00"),
    )


# =============================================================================
# Donation Fixtures
# =============================================================================


@pytest.fixture
def pending_donation(db, campaign, donor):
    """PENDING 150.00 donation waiting for confirmation."""
    return DonationFactory(campaign=campaign, donor=donor)


@pytest.fixture
def completed_donation(db, campaign, donor):
    """Donation already applied to the campaign (total raised 150.00)."""
    campaign.current_amount = Decimal("150.00")
    campaign.save(update_fields=["current_amount"])
    return DonationFactory(
        campaign=campaign,
        donor=donor,
        completed=True,
        stripe_charge_id="ch_test_completed",
    )


# =============================================================================
# Stripe Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe():
    """
    Patch StripeAdapter's network operations.

    Yields a namespace with .create and .retrieve mocks; configure
    return_value or side_effect per test.
    """
    with patch.object(StripeAdapter, "create_payment_intent") as create, patch.object(
        StripeAdapter, "retrieve_payment_intent"
    ) as retrieve:
        yield SimpleNamespace(create=create, retrieve=retrieve)
