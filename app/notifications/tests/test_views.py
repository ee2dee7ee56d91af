"""
API tests for the notification endpoints.

Test Classes:
    TestNotificationList: GET /api/v1/notifications/
    TestUnreadCount: GET /api/v1/notifications/unread-count/
    TestMarkRead: POST /api/v1/notifications/{id}/read/
    TestMarkAllRead: POST /api/v1/notifications/read-all/
"""

from django.urls import reverse
from rest_framework import status

from notifications.models import Notification, NotificationType
from notifications.tests.factories import NotificationFactory


class TestNotificationList:
    """Tests for the list endpoint."""

    url_name = "notifications:notification-list"

    def test_requires_authentication(self, api_client, db):
        response = api_client.get(reverse(self.url_name))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_own_notifications_only(
        self, authenticated_client, mixed_notifications, other_user_notifications
    ):
        response = authenticated_client.get(reverse(self.url_name))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 5
        returned = {item["id"] for item in response.data["results"]}
        assert returned == {n.id for n in mixed_notifications["all"]}

    def test_filter_by_read_status(self, authenticated_client, mixed_notifications):
        response = authenticated_client.get(reverse(self.url_name), {"is_read": "false"})

        assert response.data["count"] == 3
        assert all(not item["is_read"] for item in response.data["results"])

    def test_filter_by_type(self, authenticated_client, user):
        NotificationFactory(recipient=user)
        NotificationFactory(
            recipient=user, notification_type=NotificationType.CAMPAIGN_COMPLETED
        )

        response = authenticated_client.get(
            reverse(self.url_name), {"type": NotificationType.CAMPAIGN_COMPLETED}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["notification_type"] == "campaign_completed"


class TestUnreadCount:
    """Tests for the unread-count endpoint."""

    url_name = "notifications:notification-unread-count"

    def test_counts_unread(self, authenticated_client, mixed_notifications):
        response = authenticated_client.get(reverse(self.url_name))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"unread_count": 3}


class TestMarkRead:
    """Tests for the read action."""

    url_name = "notifications:notification-read"

    def test_marks_read(self, authenticated_client, unread_notification):
        response = authenticated_client.post(
            reverse(self.url_name, kwargs={"pk": unread_notification.pk})
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_read"] is True
        assert Notification.objects.get(pk=unread_notification.pk).is_read is True

    def test_other_users_notification_is_not_found(
        self, authenticated_client, other_user_notifications
    ):
        target = other_user_notifications[0]

        response = authenticated_client.post(reverse(self.url_name, kwargs={"pk": target.pk}))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert Notification.objects.get(pk=target.pk).is_read is False


class TestMarkAllRead:
    """Tests for the read-all action."""

    url_name = "notifications:notification-read-all"

    def test_marks_all(self, authenticated_client, user, mixed_notifications):
        response = authenticated_client.post(reverse(self.url_name))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"marked_count": 3}
        assert not Notification.objects.filter(recipient=user, is_read=False).exists()
