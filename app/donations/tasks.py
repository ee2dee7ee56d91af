"""
Celery tasks for donation processing.

This module provides async tasks for:
- Processing Stripe webhook events
- Retrying failed or never-queued webhook events
- Periodic cleanup of old/stuck events
- Sweeping PENDING donations whose confirmation never arrived

Usage:
    from donations.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)

    # Re-check abandoned donations (typically via celery-beat)
    from donations.tasks import sweep_pending_donations
    sweep_pending_donations.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from donations.models import MAX_WEBHOOK_RETRIES, Donation, WebhookEvent
from donations.state_machines import DonationStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
UNQUEUED_PENDING_THRESHOLD_MINUTES = 5
SWEEP_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a Stripe webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips it if already processed
    3. Marks as processing
    4. Dispatches to the handler inside a transaction
    5. Marks as processed or failed

    Owner notifications queued by the reconciler run after the dispatch
    transaction commits.

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    from donations.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    logger.info(
        "Processing webhook event",
        extra={"webhook_event_id": str(webhook_event_id)},
    )

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()

        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error": error_msg,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
            "error_code": result.error_code,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Re-queues failed webhooks that haven't exceeded max retries, plus
    PENDING events that were stored but never made it onto the queue.

    Returns:
        Dict with count of webhooks queued for retry
    """
    unqueued_before = timezone.now() - timedelta(minutes=UNQUEUED_PENDING_THRESHOLD_MINUTES)

    retryable_webhooks = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED, retry_count__lt=MAX_WEBHOOK_RETRIES)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=unqueued_before)
    ).order_by("created_at")[:100]

    queued_count = 0
    for webhook in retryable_webhooks:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception:
            logger.error(
                "Failed to queue webhook for retry",
                extra={"webhook_event_id": str(webhook.id)},
                exc_info=True,
            )
            continue

        queued_count += 1
        logger.info(
            "Queued webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "retry_count": webhook.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} webhooks for retry",
        extra={"queued_count": queued_count},
    )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Webhooks left in PROCESSING (worker crashed mid-dispatch) are reset
    to FAILED so retry_failed_webhooks picks them up. The dispatch
    transaction rolled back with the worker, so the retry starts clean.
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck webhooks",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Periodic task to clean up old processed webhook events.

    Only successfully processed events are deleted; failed ones are
    kept for debugging.
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Pending Donation Sweep
# =============================================================================


@shared_task
def sweep_pending_donations(older_than_minutes: int | None = None) -> dict:
    """
    Re-check PENDING donations whose confirmation never arrived.

    Each stale donation's PaymentIntent is looked up on Stripe and the
    outcome is funnelled through ConfirmationReconciler, so a donation
    settled concurrently by a webhook or confirm call is left alone.
    Intents still in flight are skipped until the next run.

    Args:
        older_than_minutes: Age threshold (default:
            settings.DONATION_PENDING_SWEEP_MINUTES)

    Returns:
        Dict with stats about the sweep
    """
    from donations.adapters import StripeAdapter
    from donations.services import ConfirmationReconciler
    from donations.state_machines import ConfirmationSource, PaymentOutcome

    minutes = older_than_minutes or getattr(settings, "DONATION_PENDING_SWEEP_MINUTES", 30)
    cutoff = timezone.now() - timedelta(minutes=minutes)

    stale_donations = (
        Donation.objects.filter(
            status=DonationStatus.PENDING,
            created_at__lt=cutoff,
            stripe_payment_intent_id__isnull=False,
        )
        .order_by("created_at")
        .values_list("id", "stripe_payment_intent_id")[:SWEEP_BATCH_SIZE]
    )

    stats = {
        "checked": 0,
        "completed": 0,
        "failed": 0,
        "still_pending": 0,
        "errors": 0,
    }

    for donation_id, payment_intent_id in stale_donations:
        stats["checked"] += 1

        try:
            intent = StripeAdapter.retrieve_payment_intent(
                payment_intent_id, trace_id=str(donation_id)
            )
            outcome = ConfirmationReconciler.resolve_outcome(intent)

            if outcome == PaymentOutcome.PENDING:
                stats["still_pending"] += 1
                continue

            result = ConfirmationReconciler.reconcile(
                payment_intent_id=payment_intent_id,
                outcome=outcome,
                charge_id=intent.latest_charge_id,
                failure_reason=intent.last_payment_error or "Payment canceled",
                source=ConfirmationSource.SWEEP,
            )
        except Exception:
            stats["errors"] += 1
            logger.error(
                "Failed to sweep pending donation",
                extra={
                    "donation_id": str(donation_id),
                    "payment_intent_id": payment_intent_id,
                },
                exc_info=True,
            )
            continue

        if result.applied:
            key = "completed" if outcome == PaymentOutcome.SUCCEEDED else "failed"
            stats[key] += 1

    logger.info("Pending donation sweep completed", extra=stats)

    return stats
