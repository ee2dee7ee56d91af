"""
Tests for donation Celery tasks.

Tasks are called directly (synchronously); .delay() is patched where a
task queues another.
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from campaigns.models import Campaign
from donations.exceptions import StripeAPIUnavailableError
from donations.models import MAX_WEBHOOK_RETRIES, Donation, WebhookEvent
from donations.state_machines import DonationStatus, WebhookEventStatus
from donations.tasks import (
    cleanup_old_webhooks,
    cleanup_stuck_webhooks,
    process_webhook_event,
    retry_failed_webhooks,
    sweep_pending_donations,
)
from donations.tests.factories import (
    DonationFactory,
    WebhookEventFactory,
    build_event_payload,
    build_payment_intent,
)


def age(instance, **delta):
    """Backdate created_at/updated_at, bypassing auto_now."""
    past = timezone.now() - timedelta(**delta)
    type(instance).objects.filter(pk=instance.pk).update(created_at=past, updated_at=past)


class TestProcessWebhookEvent:
    """Tests for process_webhook_event."""

    def test_processes_succeeded_event(self, pending_donation, campaign):
        event = WebhookEventFactory(
            payload=build_event_payload(
                "payment_intent.succeeded",
                {"id": pending_donation.stripe_payment_intent_id, "latest_charge": "ch_1"},
            ),
        )

        result = process_webhook_event(str(event.id))

        event = WebhookEvent.objects.get(pk=event.pk)
        assert result["status"] == "processed"
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.retry_count == 1
        assert event.processed_at is not None
        assert Donation.objects.get(pk=pending_donation.pk).status == DonationStatus.COMPLETED
        assert Campaign.objects.get(pk=campaign.pk).current_amount == Decimal("150.00")

    def test_missing_event(self, db):
        result = process_webhook_event(str(uuid.uuid4()))

        assert result["status"] == "not_found"

    def test_already_processed_event_is_skipped(self, db):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        result = process_webhook_event(str(event.id))

        assert result["status"] == "already_processed"
        assert WebhookEvent.objects.get(pk=event.pk).retry_count == 0

    def test_handler_failure_marks_event_failed(self, db):
        event = WebhookEventFactory(
            payload=build_event_payload("payment_intent.succeeded", {"id": "pi_unknown"}),
        )

        result = process_webhook_event(str(event.id))

        event = WebhookEvent.objects.get(pk=event.pk)
        assert result["status"] == "handler_failed"
        assert result["error_code"] == "DONATION_NOT_FOUND"
        assert event.status == WebhookEventStatus.FAILED
        assert event.can_retry is True

    def test_exception_marks_failed_and_reraises(self, pending_donation):
        event = WebhookEventFactory(
            payload=build_event_payload(
                "payment_intent.succeeded",
                {"id": pending_donation.stripe_payment_intent_id},
            ),
        )

        with patch(
            "donations.webhooks.handlers.ConfirmationReconciler.reconcile",
            side_effect=RuntimeError("database exploded"),
        ):
            with pytest.raises(RuntimeError):
                process_webhook_event(str(event.id))

        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.FAILED
        assert "RuntimeError: database exploded" in event.error_message

    def test_redelivered_event_applies_once(self, pending_donation, campaign):
        """Two stored events for the same PaymentIntent change the ledger once."""
        for _ in range(2):
            event = WebhookEventFactory(
                payload=build_event_payload(
                    "payment_intent.succeeded",
                    {"id": pending_donation.stripe_payment_intent_id},
                ),
            )
            assert process_webhook_event(str(event.id))["status"] == "processed"

        assert Campaign.objects.get(pk=campaign.pk).current_amount == Decimal("150.00")


@pytest.mark.django_db
class TestRetryFailedWebhooks:
    """Tests for retry_failed_webhooks."""

    def test_queues_retryable_events(self):
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch.object(process_webhook_event, "delay") as delay:
            result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        delay.assert_called_once_with(str(retryable.id))

    def test_requeues_stale_pending_events(self):
        stale = WebhookEventFactory()
        age(stale, minutes=10)
        WebhookEventFactory()  # fresh, still in the queue

        with patch.object(process_webhook_event, "delay") as delay:
            result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        delay.assert_called_once_with(str(stale.id))


@pytest.mark.django_db
class TestCleanupTasks:
    """Tests for the webhook housekeeping tasks."""

    def test_resets_stuck_processing_events(self):
        stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        age(stuck, minutes=45)
        active = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 1}
        assert WebhookEvent.objects.get(pk=stuck.pk).status == WebhookEventStatus.FAILED
        assert WebhookEvent.objects.get(pk=active.pk).status == WebhookEventStatus.PROCESSING

    def test_deletes_old_processed_events(self):
        old = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=120),
        )
        recent = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED, processed_at=timezone.now()
        )
        failed = WebhookEventFactory(status=WebhookEventStatus.FAILED)

        result = cleanup_old_webhooks(days=90)

        assert result == {"deleted_count": 1}
        assert not WebhookEvent.objects.filter(pk=old.pk).exists()
        assert WebhookEvent.objects.filter(pk__in=[recent.pk, failed.pk]).count() == 2


class TestSweepPendingDonations:
    """Tests for sweep_pending_donations."""

    def test_settles_stale_donations(self, campaign, mock_stripe):
        succeeded = DonationFactory(campaign=campaign)
        canceled = DonationFactory(campaign=campaign)
        in_flight = DonationFactory(campaign=campaign)
        for donation in (succeeded, canceled, in_flight):
            age(donation, hours=1)
        fresh = DonationFactory(campaign=campaign)

        intents = {
            succeeded.stripe_payment_intent_id: build_payment_intent(
                succeeded.stripe_payment_intent_id, latest_charge_id="ch_sweep"
            ),
            canceled.stripe_payment_intent_id: build_payment_intent(
                canceled.stripe_payment_intent_id, status="canceled", latest_charge_id=None
            ),
            in_flight.stripe_payment_intent_id: build_payment_intent(
                in_flight.stripe_payment_intent_id, status="processing"
            ),
        }
        mock_stripe.retrieve.side_effect = lambda pi, trace_id=None: intents[pi]

        stats = sweep_pending_donations(older_than_minutes=30)

        assert stats == {
            "checked": 3,
            "completed": 1,
            "failed": 1,
            "still_pending": 1,
            "errors": 0,
        }
        assert Donation.objects.get(pk=succeeded.pk).stripe_charge_id == "ch_sweep"
        assert Donation.objects.get(pk=canceled.pk).failure_reason == "Payment canceled"
        assert Donation.objects.get(pk=in_flight.pk).status == DonationStatus.PENDING
        assert Donation.objects.get(pk=fresh.pk).status == DonationStatus.PENDING
        assert Campaign.objects.get(pk=campaign.pk).current_amount == Decimal("150.00")

    def test_settles_donation_whose_failure_webhook_was_lost(self, pending_donation, mock_stripe):
        age(pending_donation, hours=1)
        mock_stripe.retrieve.return_value = build_payment_intent(
            pending_donation.stripe_payment_intent_id,
            status="requires_payment_method",
            latest_charge_id=None,
            last_payment_error="Your card was declined.",
        )

        stats = sweep_pending_donations(older_than_minutes=30)

        donation = Donation.objects.get(pk=pending_donation.pk)
        assert stats["failed"] == 1
        assert stats["still_pending"] == 0
        assert donation.status == DonationStatus.FAILED
        assert donation.failure_reason == "Your card was declined."

    def test_stripe_errors_are_counted(self, pending_donation, mock_stripe):
        age(pending_donation, hours=1)
        mock_stripe.retrieve.side_effect = StripeAPIUnavailableError("down")

        stats = sweep_pending_donations(older_than_minutes=30)

        assert stats["checked"] == 1
        assert stats["errors"] == 1
        assert Donation.objects.get(pk=pending_donation.pk).status == DonationStatus.PENDING

    def test_uses_configured_threshold(self, pending_donation, mock_stripe, settings):
        settings.DONATION_PENDING_SWEEP_MINUTES = 120
        age(pending_donation, hours=1)

        stats = sweep_pending_donations()

        assert stats["checked"] == 0
        mock_stripe.retrieve.assert_not_called()
