"""
Ledger - guarded writes to donation status and campaign totals.

Public API:
    Service:
        LedgerService - Class with all ledger operations
        DONATION_TRANSITIONS - Legal (guard, target) status pairs

    Types:
        LedgerApplication - Outcome of applying a confirmed donation

Usage:
    from donations.ledger import LedgerService

    application = LedgerService.apply_confirmed_donation(donation.id, "ch_123")
    print(application.applied, application.campaign.current_amount)
"""

from .services import DONATION_TRANSITIONS, LedgerService
from .types import LedgerApplication

__all__ = [
    "DONATION_TRANSITIONS",
    "LedgerApplication",
    "LedgerService",
]
