"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Idempotency keys guarantee one notification per event, even when
      two workers race to create it
    - The email copy is enqueued only after the notification commits

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient_id=campaign.owner_id,
        notification_type=NotificationType.CAMPAIGN_COMPLETED,
        title="Campaign completed!",
        body='Your campaign "Clean Water" has reached its goal',
        campaign_id=campaign.id,
        idempotency_key=f"campaign:{campaign.id}:completed",
    )

    # Mark as read
    result = NotificationService.mark_as_read(notification, user)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a notification exactly once per key
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def create_notification(
        cls,
        recipient_id: uuid.UUID | int,
        notification_type: str,
        title: str,
        body: str = "",
        data: dict | None = None,
        donation_id: uuid.UUID | None = None,
        campaign_id: uuid.UUID | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        Args:
            recipient_id: User receiving the notification
            notification_type: NotificationType value
            title: Rendered title
            body: Rendered body
            data: JSON context
            donation_id: Related donation (optional)
            campaign_id: Related campaign (optional)
            idempotency_key: Optional key to prevent duplicate notifications

        Returns:
            ServiceResult with created Notification if successful

        Error codes:
            INVALID_TYPE: notification_type is not a NotificationType
            RECIPIENT_NOT_FOUND: No user with recipient_id
            DUPLICATE: Notification with this idempotency_key already exists
        """
        from notifications import tasks

        if notification_type not in NotificationType.values:
            return ServiceResult.failure(
                f"Unknown notification type: {notification_type}",
                error_code="INVALID_TYPE",
            )

        if not get_user_model().objects.filter(pk=recipient_id).exists():
            cls.get_logger().warning(f"Notification recipient not found: {recipient_id}")
            return ServiceResult.failure(
                f"Recipient not found: {recipient_id}",
                error_code="RECIPIENT_NOT_FOUND",
            )

        if idempotency_key and Notification.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            cls.get_logger().info(
                f"Duplicate notification prevented: idempotency_key={idempotency_key}"
            )
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        try:
            # Savepoint so a lost race does not poison an outer transaction
            with cls.atomic():
                notification = Notification.objects.create(
                    recipient_id=recipient_id,
                    notification_type=notification_type,
                    title=title,
                    body=body,
                    data=data or {},
                    donation_id=donation_id,
                    campaign_id=campaign_id,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            if not idempotency_key:
                raise
            cls.get_logger().info(
                f"Duplicate notification prevented on insert: idempotency_key={idempotency_key}"
            )
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        cls.get_logger().info(
            f"Created notification {notification.id} of type {notification_type} "
            f"for user {recipient_id}"
        )

        notification_id = notification.id
        transaction.on_commit(
            lambda: tasks.send_notification_email.delay(notification_id)
        )

        return ServiceResult.success(notification)

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Validates that the user owns the notification before marking.
        Operation is idempotent - marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.pk:
            cls.get_logger().warning(
                f"User {user.pk} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])
            cls.get_logger().debug(f"Marked notification {notification.id} as read")

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """
        Mark all user's unread notifications as read.

        Returns:
            ServiceResult with count of notifications marked as read
        """
        now = timezone.now()
        count = Notification.objects.filter(
            recipient=user,
            is_read=False,
        ).update(is_read=True, read_at=now, updated_at=now)

        cls.get_logger().info(f"Marked {count} notifications as read for user {user.pk}")

        return ServiceResult.success(count)
