"""
External service adapters for donation payments.

Usage:
    from donations.adapters import StripeAdapter, CreatePaymentIntentParams
"""

from donations.adapters.stripe_adapter import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    StripeAdapter,
    ZERO_DECIMAL_CURRENCIES,
    to_minor_units,
)

__all__ = [
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "StripeAdapter",
    "ZERO_DECIMAL_CURRENCIES",
    "to_minor_units",
]
