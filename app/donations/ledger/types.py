"""
Data types for ledger operations.

Types:
    LedgerApplication: Outcome of applying a confirmed donation to the ledger

Usage:
    from donations.ledger.types import LedgerApplication

    application = LedgerService.apply_confirmed_donation(donation.id, "ch_123")
    if application.applied and application.campaign_completed:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from campaigns.models import Campaign
    from donations.models import Donation


@dataclass
class LedgerApplication:
    """
    Result of LedgerService.apply_confirmed_donation.

    Attributes:
        applied: True only for the call that moved the donation out of
            PENDING; every replay of the same signal gets False
        donation: Donation as committed
        campaign: Campaign as committed (fresh read, includes the increment)
        campaign_completed: True only for the call whose increment moved
            the campaign to COMPLETED
    """

    applied: bool
    donation: Donation
    campaign: Campaign
    campaign_completed: bool = False
