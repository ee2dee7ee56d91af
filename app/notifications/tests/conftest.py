"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(user, unread_notification, authenticated_client):
        response = authenticated_client.get("/api/v1/notifications/")
        assert response.status_code == 200
"""

import pytest
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Campaign owner receiving notifications."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Another user, for scoping tests."""
    return UserFactory()


# =============================================================================
# Notification Fixtures
# =============================================================================


@pytest.fixture
def unread_notification(db, user):
    return NotificationFactory(recipient=user, title="New donation")


@pytest.fixture
def read_notification(db, user):
    return NotificationFactory(recipient=user, is_read=True, read_at=timezone.now())


@pytest.fixture
def mixed_notifications(db, user):
    """
    Three unread and two read notifications for the user.

    Returns dict with 'unread', 'read', and 'all' keys.
    """
    unread = NotificationFactory.create_batch(3, recipient=user)
    read = NotificationFactory.create_batch(
        2, recipient=user, is_read=True, read_at=timezone.now()
    )
    return {"unread": unread, "read": read, "all": unread + read}


@pytest.fixture
def other_user_notifications(db, other_user):
    return NotificationFactory.create_batch(3, recipient=other_user)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with a JWT for the default user fixture."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client
