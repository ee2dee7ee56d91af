"""
Donation-specific exceptions.

Every error a donation operation can surface maps onto one of the
core.exceptions categories, so views translate them with a single
helper using the error's http_status.

Exception Hierarchy:
    NotFoundError (404)
    ├── DonationNotFoundError - No donation for an authorization/charge reference
    └── CampaignNotFoundError - Campaign lookup failed
    ValidationError (400)
    ├── DonationValidationError - Invalid amount or currency
    ├── CampaignNotAcceptingDonationsError - Campaign is not ACTIVE
    └── PaymentNotSettledError - PaymentIntent has no terminal outcome yet
    WebhookAuthenticityError (400) - Webhook signature could not be verified
    ExternalServiceError (502)
    └── StripeError - Base for all Stripe errors
        ├── StripeCardDeclinedError - Card declined (permanent)
        ├── StripeInvalidRequestError - Invalid request params (permanent)
        ├── StripeRateLimitError - Rate limited (transient, retry)
        ├── StripeAPIUnavailableError - API unavailable (transient, retry)
        └── StripeTimeoutError - Request timeout (transient, retry)
    ConflictError (409)
    └── InvalidStateTransitionError - Donation transition not allowed
    PersistenceError (503, retryable) - re-exported from core.exceptions

Usage:
    from donations.exceptions import DonationNotFoundError

    raise DonationNotFoundError(
        f"No donation for payment intent {payment_intent_id}",
        details={"payment_intent_id": payment_intent_id},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Lookup Failures
# =============================================================================


class DonationNotFoundError(NotFoundError):
    """
    Raised when no donation matches an authorization or charge reference.

    Usually means a webhook for a PaymentIntent created outside this
    platform, or a confirm call with a mistyped id.
    """

    default_error_code: str = "DONATION_NOT_FOUND"


class CampaignNotFoundError(NotFoundError):
    """Raised when the target campaign of a donation does not exist."""

    default_error_code: str = "CAMPAIGN_NOT_FOUND"


# =============================================================================
# Invalid Input / Invalid State
# =============================================================================


class DonationValidationError(ValidationError):
    """
    Raised when donation input fails business validation.

    Example:
        if amount <= 0:
            raise DonationValidationError(
                "Donation amount must be positive",
                details={"amount": str(amount)},
            )
    """

    default_error_code: str = "DONATION_VALIDATION_ERROR"


class CampaignNotAcceptingDonationsError(ValidationError):
    """Raised when a donation targets a campaign that is not ACTIVE."""

    default_error_code: str = "CAMPAIGN_NOT_ACCEPTING_DONATIONS"


class PaymentNotSettledError(ValidationError):
    """
    Raised on client confirm when the PaymentIntent is still in flight.

    Nothing was mutated; the client may confirm again once the payment
    settles, or simply wait for the webhook.
    """

    default_error_code: str = "PAYMENT_NOT_COMPLETED"


class WebhookAuthenticityError(BaseApplicationError):
    """
    Raised when a webhook signature cannot be verified.

    Unverified events are never stored or reconciled.
    """

    default_error_code: str = "WEBHOOK_SIGNATURE_INVALID"
    http_status: int = 400


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(ExternalServiceError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Example:
        try:
            StripeAdapter.retrieve_payment_intent(pi_id)
        except StripeError as e:
            if e.is_retryable:
                raise self.retry(exc=e)
            raise
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (insufficient_funds, expired_card, ...).
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    The request itself is malformed (unknown PaymentIntent id, bad
    currency, revoked API key) and will never succeed unchanged.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    Covers network connectivity issues and Stripe server errors (5xx).
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The request may have been applied on Stripe's side. Intent creation
    is retried with the same idempotency key; reads are always safe.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# State Conflicts
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a donation status transition is not allowed.

    Example:
        raise InvalidStateTransitionError(
            "Cannot move donation from 'pending' to 'refunded'",
            details={"current_state": "pending", "target_state": "refunded"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Lookup
    "DonationNotFoundError",
    "CampaignNotFoundError",
    # Input / state
    "DonationValidationError",
    "CampaignNotAcceptingDonationsError",
    "PaymentNotSettledError",
    "WebhookAuthenticityError",
    # Stripe-specific
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # Conflicts / persistence
    "InvalidStateTransitionError",
    "PersistenceError",
]
