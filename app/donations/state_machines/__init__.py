"""
State machine enums for donation models.

This module defines the state enums used by donation models with django-fsm.
"""

from donations.state_machines.states import (
    TERMINAL_DONATION_STATUSES,
    ConfirmationSource,
    DonationStatus,
    PaymentOutcome,
    WebhookEventStatus,
)

__all__ = [
    "TERMINAL_DONATION_STATUSES",
    "ConfirmationSource",
    "DonationStatus",
    "PaymentOutcome",
    "WebhookEventStatus",
]
