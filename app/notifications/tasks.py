"""
Celery tasks for notification delivery.

Tasks:
    send_notification_email: Send the email copy of a notification

Design:
    - Enqueued by NotificationService after the notification commits
    - Idempotent: a notification that was already emailed is skipped
    - SMTP/network failures are retried by Celery; they never touch the
      donation ledger

Usage:
    from notifications.tasks import send_notification_email

    send_notification_email.delay(notification.id)
"""

from __future__ import annotations

import logging
import smtplib

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_notification_email(self, notification_id: int) -> bool:
    """
    Send a notification to its recipient by email.

    Returns:
        True if sent, False if skipped (missing, already sent, no email)
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(pk=notification_id)
        .first()
    )
    if notification is None:
        logger.warning(f"Notification {notification_id} not found, skipping email")
        return False

    if notification.emailed_at is not None:
        logger.debug(f"Notification {notification_id} already emailed")
        return False

    recipient = notification.recipient
    if not recipient.email:
        logger.info(
            f"Email skipped for notification {notification_id}: recipient has no email"
        )
        return False

    send_mail(
        subject=notification.title,
        message=notification.body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
    )

    Notification.objects.filter(pk=notification.pk).update(emailed_at=timezone.now())

    logger.info(
        f"Email sent for notification {notification_id}",
        extra={
            "notification_id": notification_id,
            "notification_type": notification.notification_type,
        },
    )
    return True
