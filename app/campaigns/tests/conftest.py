"""
Test configuration and fixtures for campaign tests.
"""

import pytest

from campaigns.tests.factories import CampaignFactory


@pytest.fixture
def campaign(db):
    """Active campaign with a 1000.00 goal and nothing raised."""
    return CampaignFactory()
