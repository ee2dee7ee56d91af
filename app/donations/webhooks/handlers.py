"""
Webhook event handlers for Stripe events.

This module provides a handler registry and the donation handlers.
Payment handlers translate the event type into a PaymentOutcome and hand
it to ConfirmationReconciler, the same funnel the client confirm
endpoint uses, so a webhook racing a confirm call can never apply a
donation twice.

Usage:
    from donations.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from core.services import ServiceResult

from donations.exceptions import DonationNotFoundError
from donations.models import WebhookEvent
from donations.services import ConfirmationReconciler, DisputeHandler
from donations.state_machines import ConfirmationSource, PaymentOutcome

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Stripe event type (e.g., "payment_intent.succeeded")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are acknowledged with success so Stripe stops
    resending them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )

    return handler(webhook_event)


# =============================================================================
# Payload Helpers
# =============================================================================


def _extract_id(value: Any) -> str | None:
    """Stripe sends related objects either as an id or expanded."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def _extract_failure_reason(data_object: dict, default: str) -> str:
    last_error = data_object.get("last_payment_error") or {}
    return last_error.get("message") or default


def _reconcile_from_event(
    webhook_event: WebhookEvent,
    outcome: str,
    failure_reason: str | None = None,
) -> ServiceResult:
    payment_intent_id = webhook_event.get_object_id()

    if not payment_intent_id:
        logger.error(
            f"{webhook_event.event_type}: Could not extract payment_intent_id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Could not extract payment_intent_id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    data_object = webhook_event.get_data_object()

    logger.info(
        f"Processing {webhook_event.event_type}",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent_id,
            "outcome": outcome,
        },
    )

    try:
        result = ConfirmationReconciler.reconcile(
            payment_intent_id=payment_intent_id,
            outcome=outcome,
            charge_id=_extract_id(data_object.get("latest_charge")),
            failure_reason=failure_reason,
            source=ConfirmationSource.WEBHOOK,
        )
    except DonationNotFoundError as e:
        # The donation row may not be written yet; the event is retried
        return ServiceResult.failure(e.message, error_code=e.error_code)

    return ServiceResult.success(result)


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle successful payment confirmation.

    Applies the donation to its campaign unless the client confirm call
    (or an earlier delivery of this event) already did.
    """
    return _reconcile_from_event(webhook_event, PaymentOutcome.SUCCEEDED)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Handle payment failure notification. The campaign is never touched."""
    reason = _extract_failure_reason(webhook_event.get_data_object(), "Payment failed")
    return _reconcile_from_event(webhook_event, PaymentOutcome.FAILED, reason)


@register_handler("payment_intent.canceled")
def handle_payment_intent_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle payment cancellation notification.

    A canceled PaymentIntent can never succeed, so the donation is
    reconciled as failed.
    """
    data_object = webhook_event.get_data_object()
    cancellation_reason = data_object.get("cancellation_reason")
    reason = (
        f"Payment canceled: {cancellation_reason}"
        if cancellation_reason
        else "Payment canceled"
    )
    return _reconcile_from_event(webhook_event, PaymentOutcome.FAILED, reason)


# =============================================================================
# Dispute Handlers
# =============================================================================


@register_handler("charge.dispute.created")
def handle_charge_dispute_created(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a new charge dispute.

    Advisory only: the owner is notified, the ledger is left alone.
    Disputes for unknown charges are dropped with success.
    """
    data_object = webhook_event.get_data_object()
    dispute_id = webhook_event.get_object_id() or webhook_event.stripe_event_id

    return DisputeHandler.handle_dispute(
        charge_id=_extract_id(data_object.get("charge")),
        dispute_id=dispute_id,
        reason=data_object.get("reason"),
        amount_cents=data_object.get("amount"),
    )
