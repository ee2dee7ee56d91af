"""
Tests for NotificationService.

Test Classes:
    TestCreateNotification: Creation, validation and idempotency
    TestMarkAsRead: Single notification read status
    TestMarkAllAsRead: Bulk read status
"""

from unittest.mock import patch

from django.db import IntegrityError

from notifications.models import Notification, NotificationType
from notifications.services import NotificationService
from notifications.tests.factories import NotificationFactory


class TestCreateNotification:
    """Tests for NotificationService.create_notification."""

    def test_creates_notification(self, user):
        result = NotificationService.create_notification(
            recipient_id=user.pk,
            notification_type=NotificationType.DONATION_RECEIVED,
            title="New donation",
            body="You received 150.00 USD",
            data={"amount": "150.00"},
            idempotency_key="donation:abc:received",
        )

        assert result.success is True
        notification = result.data
        assert notification.recipient_id == user.pk
        assert notification.data == {"amount": "150.00"}
        assert notification.is_read is False

    def test_email_queued_after_commit(self, user, django_capture_on_commit_callbacks):
        with patch("notifications.tasks.send_notification_email.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                result = NotificationService.create_notification(
                    recipient_id=user.pk,
                    notification_type=NotificationType.DONATION_RECEIVED,
                    title="New donation",
                )

        mock_delay.assert_called_once_with(result.data.id)

    def test_unknown_type_rejected(self, user):
        result = NotificationService.create_notification(
            recipient_id=user.pk,
            notification_type="friend_request",
            title="Hello",
        )

        assert result.success is False
        assert result.error_code == "INVALID_TYPE"
        assert Notification.objects.count() == 0

    def test_missing_recipient_rejected(self, db):
        result = NotificationService.create_notification(
            recipient_id=999999,
            notification_type=NotificationType.DONATION_RECEIVED,
            title="Hello",
        )

        assert result.success is False
        assert result.error_code == "RECIPIENT_NOT_FOUND"

    def test_duplicate_key_returns_duplicate(self, user):
        key = "campaign:xyz:completed"
        first = NotificationService.create_notification(
            recipient_id=user.pk,
            notification_type=NotificationType.CAMPAIGN_COMPLETED,
            title="Campaign completed!",
            idempotency_key=key,
        )

        second = NotificationService.create_notification(
            recipient_id=user.pk,
            notification_type=NotificationType.CAMPAIGN_COMPLETED,
            title="Campaign completed!",
            idempotency_key=key,
        )

        assert first.success is True
        assert second.success is False
        assert second.error_code == "DUPLICATE"
        assert Notification.objects.filter(idempotency_key=key).count() == 1

    def test_lost_insert_race_returns_duplicate(self, user):
        """The unique constraint catches a concurrent insert the pre-check missed."""
        with patch.object(
            Notification.objects, "create", side_effect=IntegrityError("duplicate key")
        ):
            result = NotificationService.create_notification(
                recipient_id=user.pk,
                notification_type=NotificationType.CAMPAIGN_COMPLETED,
                title="Campaign completed!",
                idempotency_key="campaign:race:completed",
            )

        assert result.success is False
        assert result.error_code == "DUPLICATE"


class TestMarkAsRead:
    """Tests for NotificationService.mark_as_read."""

    def test_marks_unread(self, user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, user)

        assert result.success is True
        unread_notification.refresh_from_db()
        assert unread_notification.is_read is True
        assert unread_notification.read_at is not None

    def test_already_read_is_unchanged(self, user, read_notification):
        read_at = read_notification.read_at

        result = NotificationService.mark_as_read(read_notification, user)

        assert result.success is True
        read_notification.refresh_from_db()
        assert read_notification.read_at == read_at

    def test_other_user_rejected(self, other_user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, other_user)

        assert result.success is False
        assert result.error_code == "NOT_OWNER"
        unread_notification.refresh_from_db()
        assert unread_notification.is_read is False


class TestMarkAllAsRead:
    """Tests for NotificationService.mark_all_as_read."""

    def test_marks_only_unread(self, user, mixed_notifications):
        result = NotificationService.mark_all_as_read(user)

        assert result.success is True
        assert result.data == 3
        assert not Notification.objects.filter(recipient=user, is_read=False).exists()

    def test_scoped_to_user(self, user, other_user_notifications):
        NotificationFactory(recipient=user)

        result = NotificationService.mark_all_as_read(user)

        assert result.data == 1
        assert all(
            not n.is_read
            for n in Notification.objects.filter(pk__in=[n.pk for n in other_user_notifications])
        )

    def test_nothing_to_mark(self, user):
        assert NotificationService.mark_all_as_read(user).data == 0
